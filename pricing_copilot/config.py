"""Centralized runtime settings loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_COMPETITOR_NAMES = [
    "Hilton Garden Inn",
    "Marriott Courtyard",
    "Hampton Inn",
]


@dataclass
class Settings:
    """Application settings shared by the store, executor, approval flow and scheduler."""

    actions_store_path: str
    audit_log_path: str
    audit_log_max_entries: int
    room_catalog_path: str
    room_price_csv_path: str | None
    competitor_names: list[str]
    revert_scheduler_enabled: bool
    revert_scheduler_interval_seconds: int
    pending_proposal_ttl_seconds: int
    pending_proposal_max_sessions: int
    local_timezone: str
    default_operator: str


def load_settings() -> Settings:
    """Load settings from environment with safe defaults for local development."""

    def parse_bool(value: str | None, default: bool) -> bool:
        if value is None:
            return default
        lowered = value.strip().lower()
        return lowered in {"1", "true", "yes", "on"}

    def parse_int(value: str | None, default: int, *, minimum: int = 1) -> int:
        if value is None or value.strip() == "":
            return default
        try:
            return max(minimum, int(value))
        except ValueError:
            return default

    competitors_raw = os.getenv("COMPETITOR_NAMES")
    if competitors_raw is None:
        competitor_names = list(DEFAULT_COMPETITOR_NAMES)
    else:
        competitor_names = [x.strip() for x in competitors_raw.split(",") if x.strip()]

    csv_path = (os.getenv("ROOM_PRICE_CSV_PATH") or "").strip() or None
    return Settings(
        actions_store_path=os.getenv("ACTIONS_STORE_PATH", "data/actions_config.json"),
        audit_log_path=os.getenv("AUDIT_LOG_PATH", "data/audit.json"),
        audit_log_max_entries=parse_int(os.getenv("AUDIT_LOG_MAX_ENTRIES"), 1000),
        room_catalog_path=os.getenv("ROOM_CATALOG_PATH", "data/rooms.json"),
        room_price_csv_path=csv_path,
        competitor_names=competitor_names,
        revert_scheduler_enabled=parse_bool(os.getenv("REVERT_SCHEDULER_ENABLED"), True),
        revert_scheduler_interval_seconds=parse_int(
            os.getenv("REVERT_SCHEDULER_INTERVAL_SECONDS"),
            3600,
        ),
        pending_proposal_ttl_seconds=parse_int(os.getenv("PENDING_PROPOSAL_TTL_SECONDS"), 1800),
        pending_proposal_max_sessions=parse_int(os.getenv("PENDING_PROPOSAL_MAX_SESSIONS"), 1000),
        local_timezone=os.getenv("LOCAL_TIMEZONE", "UTC").strip() or "UTC",
        default_operator=os.getenv("DEFAULT_OPERATOR", "system").strip() or "system",
    )
