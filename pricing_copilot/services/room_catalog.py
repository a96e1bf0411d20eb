"""In-memory room catalog backed by a JSON document keyed by room type."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

from pricing_copilot.services.room_aliases import RoomAliasTable

logger = logging.getLogger(__name__)

# room_type -> (total_rooms, base_price)
DEFAULT_ROOMS: dict[str, tuple[int, float]] = {
    "Bernard": (8, 165.0),
    "LaRua": (6, 195.0),
    "Santiago": (10, 215.0),
    "Pilar": (5, 240.0),
    "Mariana": (4, 399.0),
}


@dataclass
class Room:
    """One sellable room type and its canonical nightly price."""

    room_type: str
    base_price: float
    total_rooms: int
    rate_floor: float
    rate_ceiling: float

    @classmethod
    def with_default_bounds(cls, room_type: str, base_price: float, total_rooms: int) -> "Room":
        return cls(
            room_type=room_type,
            base_price=float(base_price),
            total_rooms=int(total_rooms),
            rate_floor=float(round(base_price * 0.8)),
            rate_ceiling=float(round(base_price * 1.5)),
        )


def default_rooms() -> list[Room]:
    return [
        Room.with_default_bounds(room_type, base_price, total_rooms)
        for room_type, (total_rooms, base_price) in DEFAULT_ROOMS.items()
    ]


class RoomCatalog:
    """Owns Room entries. Prices are written only through `PriceMutator`."""

    def __init__(
        self,
        *,
        path: str | Path | None,
        aliases: RoomAliasTable | None = None,
        rooms: list[Room] | None = None,
    ) -> None:
        self.path = Path(path) if path else None
        self.aliases = aliases or RoomAliasTable()
        self._lock = threading.RLock()
        loaded = rooms if rooms is not None else self._load()
        self._rooms: dict[str, Room] = {room.room_type: room for room in loaded}

    def _load(self) -> list[Room]:
        if self.path is None or not self.path.exists():
            return default_rooms()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read room catalog %s, using defaults: %s", self.path, e)
            return default_rooms()
        if not isinstance(data, dict) or not data:
            return default_rooms()
        rooms: list[Room] = []
        for room_type, raw in data.items():
            if not isinstance(raw, dict):
                continue
            try:
                base_price = float(raw.get("base_price", 0))
                rooms.append(
                    Room(
                        room_type=str(raw.get("room_type") or room_type),
                        base_price=base_price,
                        total_rooms=int(raw.get("total_rooms", 0)),
                        rate_floor=float(raw.get("rate_floor", round(base_price * 0.8))),
                        rate_ceiling=float(raw.get("rate_ceiling", round(base_price * 1.5))),
                    )
                )
            except (TypeError, ValueError) as e:
                logger.warning("Skipping malformed room entry %s: %s", room_type, e)
        return rooms or default_rooms()

    def save(self) -> bool:
        """Persist the catalog document; returns False when the write fails."""

        if self.path is None:
            return True
        with self._lock:
            payload: dict[str, Any] = {
                room_type: asdict(room) for room_type, room in self._rooms.items()
            }
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            return True
        except OSError as e:
            logger.warning("Failed to write room catalog %s: %s", self.path, e)
            return False

    def get(self, name: str | None) -> Room | None:
        """Look a room up by codename or alias, case-insensitively."""

        if not name:
            return None
        with self._lock:
            if name in self._rooms:
                return self._rooms[name]
            resolved = self.aliases.resolve(name)
            if resolved and resolved in self._rooms:
                return self._rooms[resolved]
            lowered = name.strip().lower()
            for room_type, room in self._rooms.items():
                if room_type.lower() == lowered:
                    return room
        return None

    def price_of(self, name: str) -> float | None:
        room = self.get(name)
        return room.base_price if room else None

    def list_rooms(self) -> list[Room]:
        with self._lock:
            return sorted(self._rooms.values(), key=lambda room: room.base_price)

    def room_types(self) -> list[str]:
        with self._lock:
            return list(self._rooms)

    def write_price(self, room_type: str, new_price: float) -> Room | None:
        """In-memory price write used by `PriceMutator.set_price`; other callers must not use it."""

        with self._lock:
            room = self.get(room_type)
            if room is None:
                return None
            room.base_price = float(new_price)
            return room
