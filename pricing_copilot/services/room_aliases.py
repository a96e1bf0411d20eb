"""Shared lookup between internal room codenames and their AI-facing aliases."""

from __future__ import annotations

from dataclasses import dataclass, field


ROOM_CODENAMES = ["Bernard", "LaRua", "Santiago", "Pilar", "Mariana"]

DISPLAY_NAMES = {
    "Bernard": "Standard Room",
    "LaRua": "Deluxe Room",
    "Santiago": "Executive Suite",
    "Pilar": "Premium Suite",
    "Mariana": "Presidential Suite",
}

# Normalized alias (lowercase, no whitespace) -> codename.
ALIASES = {
    "standard": "Bernard",
    "standardroom": "Bernard",
    "basic": "Bernard",
    "basicroom": "Bernard",
    "deluxe": "LaRua",
    "deluxeroom": "LaRua",
    "executive": "Santiago",
    "executivesuite": "Santiago",
    "premium": "Pilar",
    "premiumsuite": "Pilar",
    "presidential": "Mariana",
    "presidentialsuite": "Mariana",
    "penthouse": "Mariana",
    "penthousesuite": "Mariana",
}

# Keywords recognised inside free-form operator messages.
MESSAGE_KEYWORDS = {
    "standard": "Bernard",
    "deluxe": "LaRua",
    "executive": "Santiago",
    "premium": "Pilar",
    "presidential": "Mariana",
}


def normalize_room_name(value: str | None) -> str:
    """Lowercase and strip all whitespace so 'Executive Suite' == 'executivesuite'."""

    if not value:
        return ""
    return "".join(value.lower().split())


@dataclass
class RoomAliasTable:
    """Single source of truth for room-name resolution across the copilot."""

    codenames: list[str] = field(default_factory=lambda: list(ROOM_CODENAMES))
    display_names: dict[str, str] = field(default_factory=lambda: dict(DISPLAY_NAMES))
    aliases: dict[str, str] = field(default_factory=lambda: dict(ALIASES))
    message_keywords: dict[str, str] = field(default_factory=lambda: dict(MESSAGE_KEYWORDS))

    def __post_init__(self) -> None:
        self._lookup: dict[str, str] = dict(self.aliases)
        for codename in self.codenames:
            self._lookup[normalize_room_name(codename)] = codename

    def resolve(self, value: str | None) -> str | None:
        """Return the codename for a codename or alias, or None when unknown."""

        normalized = normalize_room_name(value)
        if not normalized:
            return None
        if normalized in self._lookup:
            return self._lookup[normalized]
        if len(normalized) < 4:
            return None
        # Partial match, e.g. "the executive suite room"; generic words like "suite" stay unresolved.
        candidates = {
            codename for key, codename in self._lookup.items() if key in normalized or normalized in key
        }
        if len(candidates) == 1:
            return candidates.pop()
        return None

    def to_room_type(self, value: str) -> str:
        """Map an alias onto its codename, leaving unknown names untouched."""

        return self.resolve(value) or value

    def display_name(self, room_type: str) -> str:
        return self.display_names.get(room_type, room_type)

    def rooms_match(self, left: str | None, right: str | None) -> bool:
        if not left or not right:
            return False
        return normalize_room_name(self.to_room_type(left)) == normalize_room_name(self.to_room_type(right))

    def variations(self, value: str) -> list[str]:
        """All spellings that refer to the same room, de-duplicated."""

        room_type = self.to_room_type(value)
        out = [room_type, normalize_room_name(room_type)]
        display = self.display_names.get(room_type)
        if display:
            out.extend([display, normalize_room_name(display)])
        out.extend(key for key, codename in self.aliases.items() if codename == room_type)
        return list(dict.fromkeys(out))

    def extract_rooms(self, message: str) -> list[str]:
        """Codenames mentioned in a message (by codename or alias), in order of first appearance."""

        lowered = (message or "").lower()
        positions: dict[str, int] = {}
        candidates = [(codename.lower(), codename) for codename in self.codenames]
        candidates.extend(self.message_keywords.items())
        for keyword, codename in candidates:
            index = lowered.find(keyword)
            if index < 0:
                continue
            if codename not in positions or index < positions[codename]:
                positions[codename] = index
        return sorted(positions, key=lambda codename: positions[codename])
