"""Local state models for the primary device."""

from dataclasses import dataclass, field
from datetime import date

from expiry_tracker.domain.status import FreshnessStatus, classify


@dataclass(frozen=True)
class ImageFile:
    """Image bytes with the name and type they arrived with."""

    filename: str
    content_type: str
    data: bytes


@dataclass(frozen=True)
class SessionSnapshot:
    """Images currently held by a remote handoff session."""

    session_id: str
    image_count: int
    images: tuple[ImageFile, ...] = ()


class BlobHandle:
    """Holds an item's image bytes until the item is removed."""

    def __init__(self, image: ImageFile) -> None:
        self.filename = image.filename
        self.content_type = image.content_type
        self._data: bytes | None = image.data

    @property
    def released(self) -> bool:
        return self._data is None

    def read(self) -> ImageFile:
        """Return the image; fails once the handle has been released."""
        if self._data is None:
            raise ValueError(f"Blob handle for {self.filename} was released")
        return ImageFile(
            filename=self.filename, content_type=self.content_type, data=self._data
        )

    def release(self) -> None:
        """Drop the bytes. Releasing twice is a no-op."""
        self._data = None


@dataclass(eq=False)
class ImageItem:
    """One image row on the primary device.

    ``status`` has no setter: it is recomputed from the expiry date each time
    the date is written through :meth:`set_expiry_date`.
    """

    id: str
    blob: BlobHandle
    product: str
    extracted_text: str | None = None
    is_extracting: bool = False
    _expiry_date: str = field(default="", repr=False)
    _status: FreshnessStatus = field(default=FreshnessStatus.VALID, repr=False)

    @property
    def expiry_date(self) -> str:
        return self._expiry_date

    @property
    def status(self) -> FreshnessStatus:
        return self._status

    @property
    def filename(self) -> str:
        return self.blob.filename

    def set_expiry_date(self, value: str, today: date | None = None) -> None:
        """Store a new expiry date and recompute the status from it."""
        self._expiry_date = value
        self._status = classify(value, today)
