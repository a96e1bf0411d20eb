"""Single writer of canonical room prices (catalog document + CSV price mirror)."""

from __future__ import annotations

import csv
import logging
import threading
from pathlib import Path

from pricing_copilot.services.room_catalog import RoomCatalog

logger = logging.getLogger(__name__)

CSV_FIELDS = ["room_type", "total_rooms", "base_price"]


def format_price(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:.2f}"


class PriceMutator:
    """Applies validated price changes; only the executor and revert path call this."""

    def __init__(self, *, catalog: RoomCatalog, csv_mirror_path: str | Path | None = None) -> None:
        self.catalog = catalog
        self.csv_mirror_path = Path(csv_mirror_path) if csv_mirror_path else None
        self._lock = threading.Lock()

    def set_price(self, room_type: str, new_price: float) -> bool:
        """Update the in-memory room and its durable records.

        False when the room is unknown or the catalog write fails; in the latter
        case the in-memory price is restored.
        """

        with self._lock:
            current = self.catalog.get(room_type)
            if current is None:
                logger.warning("set_price: room %s not found", room_type)
                return False
            previous = current.base_price
            room = self.catalog.write_price(current.room_type, new_price)
            if room is None:
                return False
            if not self.catalog.save():
                self.catalog.write_price(room.room_type, previous)
                logger.warning("set_price: catalog write failed for %s, price left at %s", room.room_type, previous)
                return False
            self._sync_csv_mirror(room.room_type)
        logger.info("Room price updated: %s -> %s", room.room_type, format_price(room.base_price))
        return True

    def _sync_csv_mirror(self, room_type: str) -> None:
        """Rewrite the CSV row for `room_type`, creating the mirror from the catalog if missing."""

        path = self.csv_mirror_path
        if path is None:
            return
        rows: list[dict[str, str]] = []
        if path.exists():
            try:
                with path.open(newline="", encoding="utf-8") as fh:
                    rows = [dict(row) for row in csv.DictReader(fh)]
            except (OSError, csv.Error) as e:
                logger.warning("Failed to read room price mirror %s: %s", path, e)
                rows = []

        known = {(row.get("room_type") or "").lower() for row in rows}
        for room in self.catalog.list_rooms():
            if room.room_type.lower() not in known:
                rows.append(
                    {
                        "room_type": room.room_type,
                        "total_rooms": str(room.total_rooms),
                        "base_price": format_price(room.base_price),
                    }
                )
        target = self.catalog.get(room_type)
        for row in rows:
            if target is not None and (row.get("room_type") or "").lower() == target.room_type.lower():
                row["base_price"] = format_price(target.base_price)

        fieldnames = list(rows[0].keys()) if rows else CSV_FIELDS
        for name in CSV_FIELDS:
            if name not in fieldnames:
                fieldnames.append(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", newline="", encoding="utf-8") as fh:
                writer = csv.DictWriter(fh, fieldnames=fieldnames)
                writer.writeheader()
                writer.writerows(rows)
        except OSError as e:
            logger.warning("Failed to write room price mirror %s: %s", path, e)
