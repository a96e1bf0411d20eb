"""Durable JSON document of pricing action records (overrides, clamps, offers, reverts, ...)."""

from __future__ import annotations

import copy
import json
import logging
import threading
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Iterator

logger = logging.getLogger(__name__)

COLLECTIONS = (
    "overrides",
    "clamps",
    "weights",
    "differentials",
    "adjustments",
    "temporary_offers",
    "scheduled_reverts",
)

ActionDocument = dict[str, list[dict[str, Any]]]


def utc_now_iso() -> str:
    return datetime.now(UTC).isoformat()


def empty_document() -> ActionDocument:
    return {name: [] for name in COLLECTIONS}


class ActionStoreError(RuntimeError):
    """Raised when the action document cannot be durably written."""


@dataclass
class _Record:
    def to_dict(self) -> dict[str, Any]:
        """Serialize, dropping optional fields that were never set."""

        return {key: value for key, value in asdict(self).items() if value is not None}


@dataclass
class OverrideRecord(_Record):
    room_id: str
    mapped_room_type: str
    date: str
    new_price: float
    original_price: float | None = None
    is_temporary: bool | None = None
    temp_offer_id: str | None = None
    reason: str | None = None
    is_revert: bool | None = None
    reverted_from: str | None = None
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class ClampRecord(_Record):
    room_type: str
    clamp_type: str
    new_value: float
    start_date: str
    end_date: str
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class WeightRecord(_Record):
    competitor_name: str
    old_weight: float | None
    new_weight: float
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class DifferentialRecord(_Record):
    competitor_name: str
    new_differential: float
    strategy: str
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class AdjustmentRecord(_Record):
    room_types: list[str]
    percentage: float
    scope: str
    promotion_type: str | None = None
    old_price: float | None = None
    new_price: float | None = None
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class OriginalPrice(_Record):
    room_id: str
    room_type: str
    mapped_room_type: str
    original_price: float


@dataclass
class TemporaryOfferRecord(_Record):
    temp_offer_id: str
    reason: str
    start_date: str
    end_date: str
    room_pricing: list[dict[str, Any]]
    original_prices: list[dict[str, Any]]
    applied_at: str = field(default_factory=utc_now_iso)
    timestamp: str = field(default_factory=utc_now_iso)


@dataclass
class ScheduledRevertRecord(_Record):
    temp_offer_id: str
    revert_date: str
    original_prices: list[dict[str, Any]]
    is_time_based: bool
    status: str = "scheduled"
    completed_at: str | None = None
    timestamp: str = field(default_factory=utc_now_iso)


class JsonActionStore:
    """Whole-document JSON store; every mutation is a locked read-modify-write."""

    def __init__(self, *, path: str | Path) -> None:
        self.path = Path(path)
        self._lock = threading.RLock()

    def _read(self) -> ActionDocument:
        document = empty_document()
        if not self.path.exists():
            return document
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Failed to read action store %s, using empty document: %s", self.path, e)
            return document
        if not isinstance(data, dict):
            logger.warning("Action store %s is not a JSON object, using empty document", self.path)
            return document
        for name in COLLECTIONS:
            items = data.get(name)
            if isinstance(items, list):
                document[name] = [item for item in items if isinstance(item, dict)]
        return document

    def get(self) -> ActionDocument:
        """Return a snapshot of the document; never raises."""

        with self._lock:
            return self._read()

    def save(self, document: ActionDocument) -> None:
        """Durably replace the document. Raises ActionStoreError on write failure."""

        payload = empty_document()
        for name in COLLECTIONS:
            payload[name] = list(document.get(name) or [])
        with self._lock:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
                tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
                tmp_path.replace(self.path)
            except (OSError, TypeError, ValueError) as e:
                raise ActionStoreError(f"Failed to write action store {self.path}: {e}") from e

    @contextmanager
    def transaction(self) -> Iterator[ActionDocument]:
        """Hold the store lock across one read-modify-write; writes only on normal exit."""

        with self._lock:
            document = self._read()
            yield document
            self.save(document)

    def append(self, collection: str, record: dict[str, Any] | _Record) -> None:
        if collection not in COLLECTIONS:
            raise KeyError(f"Unknown action collection: {collection}")
        item = record.to_dict() if isinstance(record, _Record) else copy.deepcopy(record)
        with self.transaction() as document:
            document[collection].append(item)

    def replace_where(
        self,
        collection: str,
        predicate: Callable[[dict[str, Any]], bool],
        record: dict[str, Any] | _Record,
    ) -> None:
        """Upsert: drop every item matching `predicate`, then append `record`."""

        if collection not in COLLECTIONS:
            raise KeyError(f"Unknown action collection: {collection}")
        item = record.to_dict() if isinstance(record, _Record) else copy.deepcopy(record)
        with self.transaction() as document:
            document[collection] = [x for x in document[collection] if not predicate(x)]
            document[collection].append(item)
