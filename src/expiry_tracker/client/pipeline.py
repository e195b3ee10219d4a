"""Concurrent per-image analysis merged back into the board."""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Protocol

from expiry_tracker.client.board import ImageBoard
from expiry_tracker.client.models import ImageFile, ImageItem
from expiry_tracker.domain.vision import NO_TEXT_DETECTED, ProductFields

_logger = logging.getLogger(__name__)

TEXT_EXTRACTION_ERROR = "Error extracting text"


class AnalysisClient(Protocol):
    """The calls the pipeline makes per image."""

    async def extract_fields(
        self, image: ImageFile, hint_product: str, hint_date: str
    ) -> ProductFields:
        """Return product name and expiry date for an image."""

    async def extract_text(self, image: ImageFile) -> str:
        """Return the readable text of an image."""


@dataclass(frozen=True)
class BatchResult:
    """How each member of a batch settled."""

    updated: tuple[str, ...] = ()
    failed: tuple[str, ...] = ()
    removed: tuple[str, ...] = ()


@dataclass
class BatchAnalysisPipeline:
    """Fans analysis calls out per item and merges results by item id.

    One item's failure never aborts its batch: the item simply keeps its
    previous product and expiry date.
    """

    client: AnalysisClient
    board: ImageBoard
    _outstanding_batches: int = field(default=0, init=False)
    _tasks: set[asyncio.Task] = field(default_factory=set, init=False)

    @property
    def is_analyzing(self) -> bool:
        """True while any dispatched batch still has unsettled items."""
        return self._outstanding_batches > 0

    def dispatch(self, items: Iterable[ImageItem]) -> list[asyncio.Task]:
        """Schedule text extraction per item and field analysis for the batch.

        The batch counts as outstanding from the moment this returns.
        """
        batch = list(items)
        if not batch:
            return []
        scheduled = [self._spawn(self.extract_text(item)) for item in batch]
        self._outstanding_batches += 1
        analysis = self._spawn(self._gather_batch(batch))
        analysis.add_done_callback(self._batch_settled)
        scheduled.append(analysis)
        return scheduled

    def add_files(self, files: Iterable[ImageFile]) -> list[ImageItem]:
        """Add a local selection to the board and dispatch it for analysis."""
        items = self.board.add_files(files)
        self.dispatch(items)
        return items

    async def analyze_batch(self, items: Iterable[ImageItem]) -> BatchResult:
        """Analyze every item concurrently and wait until all have settled."""
        self._outstanding_batches += 1
        try:
            return await self._gather_batch(list(items))
        finally:
            self._outstanding_batches -= 1

    async def _gather_batch(self, batch: list[ImageItem]) -> BatchResult:
        outcomes = await asyncio.gather(*(self._analyze_item(item) for item in batch))
        updated = tuple(item_id for item_id, status in outcomes if status == "updated")
        failed = tuple(item_id for item_id, status in outcomes if status == "failed")
        removed = tuple(item_id for item_id, status in outcomes if status == "removed")
        if failed:
            _logger.info(
                "Batch analysis finished: updated=%s failed=%s",
                len(updated),
                len(failed),
            )
        return BatchResult(updated=updated, failed=failed, removed=removed)

    def _batch_settled(self, task: asyncio.Task) -> None:
        self._outstanding_batches -= 1

    async def extract_text(self, item: ImageItem) -> None:
        """Fill in the item's extracted text, or the error sentinel."""
        if not self.board.mark_extracting(item.id):
            return
        try:
            text = await self.client.extract_text(item.blob.read())
        except Exception as exc:
            _logger.warning("Text extraction failed for %s: %s", item.id, exc)
            text = TEXT_EXTRACTION_ERROR
        else:
            text = text.strip() or NO_TEXT_DETECTED
        self.board.apply_extracted_text(item.id, text)

    async def wait_idle(self) -> None:
        """Wait for every dispatched task to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _analyze_item(self, item: ImageItem) -> tuple[str, str]:
        if self.board.get(item.id) is None:
            return item.id, "removed"
        try:
            fields = await self.client.extract_fields(
                item.blob.read(), item.product, item.expiry_date
            )
        except Exception as exc:
            _logger.warning("Analysis failed for %s: %s", item.id, exc)
            return item.id, "failed"
        if not self.board.apply_fields(item.id, fields.product, fields.expiry_date):
            return item.id, "removed"
        return item.id, "updated"

    def _spawn(self, coroutine) -> asyncio.Task:  # type: ignore[no-untyped-def]
        task = asyncio.create_task(coroutine)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
