"""Bounded per-session cache of proposals awaiting operator confirmation."""

from __future__ import annotations

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Callable

from pricing_copilot.schemas import ActionProposal


@dataclass
class PendingProposal:
    session_id: str
    proposal: ActionProposal | None
    created_at: float = field(default_factory=time.time)
    status: str = "pending"


class PendingProposalCache:
    """LRU cache with TTL; the oldest session is evicted once `max_sessions` is exceeded."""

    def __init__(
        self,
        *,
        max_sessions: int = 1000,
        ttl_seconds: float = 1800,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_sessions = max(1, int(max_sessions))
        self.ttl_seconds = float(ttl_seconds)
        self._clock = clock
        self._items: OrderedDict[str, PendingProposal] = OrderedDict()
        self._lock = threading.Lock()

    def set(self, session_id: str, proposal: ActionProposal | None, *, status: str = "pending") -> PendingProposal:
        """Store the session's proposal; a non-pending status keeps it only as a resolved marker."""

        pending = PendingProposal(
            session_id=session_id,
            proposal=proposal,
            created_at=self._clock(),
            status=status,
        )
        with self._lock:
            self._items[session_id] = pending
            self._items.move_to_end(session_id)
            while len(self._items) > self.max_sessions:
                self._items.popitem(last=False)
        return pending

    def get(self, session_id: str) -> PendingProposal | None:
        with self._lock:
            pending = self._items.get(session_id)
            if pending is None:
                return None
            if self._clock() - pending.created_at > self.ttl_seconds:
                del self._items[session_id]
                return None
            self._items.move_to_end(session_id)
            return pending

    def clear(self, session_id: str) -> None:
        with self._lock:
            self._items.pop(session_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
