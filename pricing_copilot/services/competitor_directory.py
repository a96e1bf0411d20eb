"""Known competitor properties used to validate weight and differential actions."""

from __future__ import annotations

from pricing_copilot.config import DEFAULT_COMPETITOR_NAMES


class CompetitorDirectory:
    def __init__(self, names: list[str] | None = None) -> None:
        source = DEFAULT_COMPETITOR_NAMES if names is None else names
        self._names = [name.strip() for name in source if name and name.strip()]

    def names(self) -> list[str]:
        return list(self._names)

    def find(self, query: str | None) -> str | None:
        """Case-insensitive substring match in either direction; first hit wins."""

        lowered = (query or "").strip().lower()
        if not lowered:
            return None
        for name in self._names:
            candidate = name.lower()
            if lowered in candidate or candidate in lowered:
                return name
        return None

    def not_found_message(self, query: str) -> str:
        return f'Competitor "{query}" not found. Available: {", ".join(self._names)}'
