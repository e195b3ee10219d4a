"""Poll loop that waits for the capture app to deliver images."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from expiry_tracker.client.api_client import HandoffApiClient
from expiry_tracker.client.board import ImageBoard
from expiry_tracker.client.models import ImageItem, SessionSnapshot
from expiry_tracker.client.pipeline import BatchAnalysisPipeline
from expiry_tracker.domain.errors import SessionNotFoundError

_logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 1.0
DEFAULT_MAX_POLL_ATTEMPTS = 60


class PollState(str, Enum):
    """States of a handoff from the primary device's side."""

    IDLE = "idle"
    AWAITING_HANDOFF = "awaiting_handoff"
    IMAGES_RECEIVED = "images_received"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class HandoffResult:
    """Terminal outcome of one handoff run."""

    state: PollState
    session_id: str | None
    items: tuple[ImageItem, ...] = ()
    attempts: int = 0
    error: str | None = None


@dataclass
class HandoffPoller:
    """Drives one handoff at a time from session creation to a terminal state.

    The loop is a single coroutine, so a tick never starts while the previous
    request is pending. Each run carries a generation number; ``cancel`` bumps
    it, and a tick whose generation is stale never touches the board.
    """

    api_client: HandoffApiClient
    board: ImageBoard
    pipeline: BatchAnalysisPipeline
    interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_attempts: int = DEFAULT_MAX_POLL_ATTEMPTS
    open_link: Callable[[str], None] | None = None
    state: PollState = field(default=PollState.IDLE, init=False)
    session_id: str | None = field(default=None, init=False)
    last_result: HandoffResult | None = field(default=None, init=False)
    _generation: int = field(default=0, init=False)
    _attempt: int = field(default=0, init=False)
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)

    @property
    def is_active(self) -> bool:
        return self.state is PollState.AWAITING_HANDOFF

    def start(self) -> "asyncio.Task[HandoffResult]":
        """Begin a new handoff, cancelling any handoff already running."""
        self.cancel()
        self._generation += 1
        self.state = PollState.AWAITING_HANDOFF
        self.session_id = None
        self._attempt = 0
        self._task = asyncio.create_task(self._run(self._generation))
        return self._task

    async def run(self) -> HandoffResult:
        """Begin a new handoff and wait for its outcome."""
        return await self.start()

    def cancel(self) -> None:
        """Stop the active loop immediately. Safe to call more than once."""
        task, self._task = self._task, None
        if not self.is_active:
            return
        self._generation += 1
        if task is not None and not task.done():
            task.cancel()
        self._finish(PollState.CANCELLED, attempts=self._attempt)

    async def _run(self, generation: int) -> HandoffResult:
        try:
            return await self._poll(generation)
        except asyncio.CancelledError:
            if self._is_current(generation):
                return self._finish(PollState.CANCELLED, attempts=self._attempt)
            return HandoffResult(state=PollState.CANCELLED, session_id=None)

    async def _poll(self, generation: int) -> HandoffResult:
        try:
            ticket = await self.api_client.start_handoff()
        except Exception as exc:
            if not self._is_current(generation):
                return self._stale()
            _logger.exception("Failed to start handoff")
            return self._finish(PollState.FAILED, attempts=0, error=str(exc))
        if not self._is_current(generation):
            return self._stale()

        self.session_id = ticket.session_id
        self._open(ticket.deep_link)

        for attempt in range(1, self.max_attempts + 1):
            await asyncio.sleep(self.interval_seconds)
            if not self._is_current(generation):
                return self._stale()
            self._attempt = attempt
            try:
                snapshot = await self.api_client.get_session(ticket.session_id)
            except SessionNotFoundError as exc:
                if not self._is_current(generation):
                    return self._stale()
                _logger.warning("Handoff session %s vanished", ticket.session_id)
                return self._finish(PollState.FAILED, attempts=attempt, error=str(exc))
            except Exception as exc:
                if not self._is_current(generation):
                    return self._stale()
                _logger.warning("Poll attempt %s failed: %s", attempt, exc)
                continue
            if not self._is_current(generation):
                return self._stale()
            if snapshot.images:
                items = self._receive(snapshot)
                return self._finish(
                    PollState.IMAGES_RECEIVED, attempts=attempt, items=items
                )

        _logger.info("Handoff session %s timed out", ticket.session_id)
        return self._finish(PollState.TIMED_OUT, attempts=self.max_attempts)

    def _receive(self, snapshot: SessionSnapshot) -> list[ImageItem]:
        items = self.board.add_received(snapshot.images)
        _logger.info(
            "Received %s images from session %s", len(items), snapshot.session_id
        )
        self.pipeline.dispatch(items)
        return items

    def _open(self, deep_link: str) -> None:
        if self.open_link is None:
            _logger.info("Open %s on the capture device", deep_link)
            return
        self.open_link(deep_link)

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation and self.is_active

    def _stale(self) -> HandoffResult:
        return HandoffResult(state=PollState.CANCELLED, session_id=None)

    def _finish(
        self,
        state: PollState,
        *,
        attempts: int,
        items: list[ImageItem] | None = None,
        error: str | None = None,
    ) -> HandoffResult:
        result = HandoffResult(
            state=state,
            session_id=self.session_id,
            items=tuple(items or ()),
            attempts=attempts,
            error=error,
        )
        _logger.info("Handoff finished: %s", state.value)
        self.last_result = result
        self.state = PollState.IDLE
        self.session_id = None
        return result
