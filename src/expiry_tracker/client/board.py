"""Authoritative list of images on the primary device."""

import csv
import io
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import date
from uuid import uuid4

from expiry_tracker.client.models import BlobHandle, ImageFile, ImageItem
from expiry_tracker.domain.status import FreshnessStatus

_logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE_LIMIT = 10
CSV_HEADERS = ["Image", "Product", "Expiry Date", "Status"]


@dataclass(frozen=True)
class BoardCounts:
    """Per-status totals for the board."""

    total: int
    valid: int
    expiring: int
    expired: int


@dataclass
class ImageBoard:
    """Ordered image items keyed by id.

    Every write is addressed by item id and silently does nothing when the
    item is gone, so late analysis results never resurrect a removed item.
    """

    batch_size_limit: int = DEFAULT_BATCH_SIZE_LIMIT
    today: Callable[[], date] = date.today
    _items: dict[str, ImageItem] = field(default_factory=dict, init=False)

    @property
    def items(self) -> list[ImageItem]:
        return list(self._items.values())

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> ImageItem | None:
        return self._items.get(item_id)

    def add_files(self, files: Iterable[ImageFile]) -> list[ImageItem]:
        """Add locally selected files, keeping at most one batch per call."""
        selected = list(files)
        if len(selected) > self.batch_size_limit:
            _logger.info(
                "Keeping %s of %s selected files", self.batch_size_limit, len(selected)
            )
            selected = selected[: self.batch_size_limit]
        return self._append(selected)

    def add_received(self, files: Iterable[ImageFile]) -> list[ImageItem]:
        """Add images delivered by a completed handoff."""
        return self._append(list(files))

    def remove(self, item_id: str) -> bool:
        """Remove an item and release its image bytes."""
        item = self._items.pop(item_id, None)
        if item is None:
            return False
        item.blob.release()
        return True

    def clear(self) -> None:
        for item_id in list(self._items):
            self.remove(item_id)

    def apply_fields(
        self, item_id: str, product: str | None, expiry_date: str | None
    ) -> bool:
        """Merge analysis output into an item.

        Empty values keep what the item already has. The status is recomputed
        from the resulting expiry date either way.
        """
        item = self._items.get(item_id)
        if item is None:
            return False
        if product and product.strip():
            item.product = product.strip()
        next_expiry = expiry_date.strip() if expiry_date else ""
        item.set_expiry_date(next_expiry or item.expiry_date, self.today())
        return True

    def set_product(self, item_id: str, product: str) -> bool:
        """Overwrite an item's product name, e.g. after a manual edit."""
        item = self._items.get(item_id)
        if item is None:
            return False
        item.product = product
        return True

    def set_expiry_date(self, item_id: str, expiry_date: str) -> bool:
        """Overwrite an item's expiry date, e.g. after a manual edit."""
        item = self._items.get(item_id)
        if item is None:
            return False
        item.set_expiry_date(expiry_date, self.today())
        return True

    def mark_extracting(self, item_id: str) -> bool:
        item = self._items.get(item_id)
        if item is None:
            return False
        item.is_extracting = True
        return True

    def apply_extracted_text(self, item_id: str, text: str) -> bool:
        item = self._items.get(item_id)
        if item is None:
            return False
        item.extracted_text = text
        item.is_extracting = False
        return True

    def refresh_statuses(self) -> None:
        """Recompute every status against today's date."""
        today = self.today()
        for item in self._items.values():
            item.set_expiry_date(item.expiry_date, today)

    def counts(self) -> BoardCounts:
        statuses = [item.status for item in self._items.values()]
        return BoardCounts(
            total=len(statuses),
            valid=statuses.count(FreshnessStatus.VALID),
            expiring=statuses.count(FreshnessStatus.EXPIRING_SOON),
            expired=statuses.count(FreshnessStatus.EXPIRED),
        )

    def search(self, term: str) -> list[ImageItem]:
        """Return items whose product name contains the term."""
        needle = term.strip().lower()
        if not needle:
            return self.items
        return [
            item for item in self._items.values() if needle in item.product.lower()
        ]

    def to_csv(self) -> str:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow(CSV_HEADERS)
        for item in self._items.values():
            writer.writerow(
                [item.filename, item.product, item.expiry_date, item.status.value]
            )
        return buffer.getvalue()

    def _append(self, files: list[ImageFile]) -> list[ImageItem]:
        base = len(self._items)
        today = self.today()
        added: list[ImageItem] = []
        for index, image in enumerate(files):
            item = ImageItem(
                id=uuid4().hex,
                blob=BlobHandle(image),
                product=f"product_{base + index + 1}",
            )
            item.set_expiry_date("", today)
            self._items[item.id] = item
            added.append(item)
        return added
