"""Background task that expires old sessions."""

import asyncio
import logging
from dataclasses import dataclass, field

from expiry_tracker.domain.sessions import SweepReport
from expiry_tracker.services.store import SessionStore

_logger = logging.getLogger(__name__)


@dataclass
class SessionSweeper:
    """Runs the store's TTL sweep on a fixed interval."""

    store: SessionStore
    interval_seconds: float = 300.0
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)

    def run_once(self) -> SweepReport:
        """Run a single sweep."""
        return self.store.sweep_expired()

    def start(self) -> asyncio.Task:
        """Start the sweep loop as a background task on the running loop."""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop())
        return self._task

    async def stop(self) -> None:
        """Cancel the sweep loop and wait for it to finish."""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _loop(self) -> None:
        _logger.info("Session sweeper started (every %ss)", self.interval_seconds)
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                self.run_once()
            except Exception:
                _logger.exception("Session sweep failed")
