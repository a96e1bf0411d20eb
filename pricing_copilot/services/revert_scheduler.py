"""Background loop that completes due temporary-pricing reverts."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from pricing_copilot.services.action_executor import ActionResult


class RevertScheduler:
    """In-process periodic reconciliation of scheduled reverts."""

    def __init__(
        self,
        *,
        enabled: bool,
        interval_seconds: int,
        run_job: Callable[[], ActionResult],
        logger: logging.Logger,
    ) -> None:
        self.enabled = enabled
        self.interval_seconds = max(1, int(interval_seconds))
        self.run_job = run_job
        self.logger = logger
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._run_lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive())

    def start(self) -> bool:
        """Start the background loop when enabled."""

        if not self.enabled:
            self.logger.info("revert scheduler not started: disabled")
            return False
        if self.is_running:
            return False

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="revert-scheduler",
            daemon=True,
        )
        self._thread.start()
        self.logger.info("revert scheduler started (interval_seconds=%s)", self.interval_seconds)
        return True

    def stop(self) -> None:
        """Request scheduler stop and wait briefly for thread shutdown."""

        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)

    def _run_loop(self) -> None:
        """Run one pass on startup, then continue periodically."""

        self.run_once()
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()

    def run_once(self) -> ActionResult | None:
        """Execute one pass with overlap protection; returns None when skipped or failed."""

        if not self._run_lock.acquire(blocking=False):
            self.logger.warning("revert scheduler skipped overlapping run")
            return None

        try:
            result = self.run_job()
            if not result.success:
                self.logger.warning("revert scheduler pass failed: %s", result.message)
            return result
        except Exception:  # pragma: no cover - background job guard
            self.logger.exception("revert scheduler run failed")
            return None
        finally:
            self._run_lock.release()
