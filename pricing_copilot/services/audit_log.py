"""Append-only JSON audit log of approved and applied pricing actions."""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any

from pricing_copilot.services.action_store import utc_now_iso

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 1000


def create_audit_entry(
    *,
    operator: str,
    prompt: str,
    intent: str,
    action_name: str,
    parameters: dict[str, Any],
    result: dict[str, Any],
    operator_name: str | None = None,
) -> dict[str, Any]:
    """Build one audit entry for an executed action (approval + outcome)."""

    now = utc_now_iso()
    return {
        "time": now,
        "operator": operator,
        "operator_name": operator_name or operator,
        "prompt": prompt,
        "intent": intent,
        "approvals": [
            {
                "action_name": action_name,
                "parameters": parameters,
                "approved": True,
                "timestamp": now,
            }
        ],
        "applied": [
            {
                "success": bool(result.get("success")),
                "message": result.get("message", ""),
                "data": result.get("data"),
                "action_name": action_name,
                "parameters": parameters,
                "timestamp": now,
            }
        ],
        "is_temporary": action_name == "apply_temporary_pricing",
    }


class AuditLog:
    """JSON array on disk, capped to the most recent `max_entries` entries."""

    def __init__(self, *, path: str | Path, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self.path = Path(path)
        self.max_entries = max(1, int(max_entries))
        self._lock = threading.Lock()

    def _read(self) -> list[dict[str, Any]]:
        if not self.path.exists():
            return []
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read audit log %s: %s", self.path, e)
            return []
        return [entry for entry in data if isinstance(entry, dict)] if isinstance(data, list) else []

    def append(self, entry: dict[str, Any]) -> bool:
        """Append one entry, dropping the oldest beyond the cap. False when the write fails."""

        with self._lock:
            entries = self._read()
            entries.append(entry)
            if len(entries) > self.max_entries:
                entries = entries[-self.max_entries :]
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(json.dumps(entries, indent=2, default=str), encoding="utf-8")
            except OSError as e:
                logger.warning("Failed to write audit log %s: %s", self.path, e)
                return False
        return True

    def recent(self, limit: int = 50) -> list[dict[str, Any]]:
        """Newest entries first."""

        with self._lock:
            entries = self._read()
        return list(reversed(entries[-max(1, limit) :]))
