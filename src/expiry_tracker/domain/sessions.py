"""Domain models for handoff sessions and their images."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class SessionRecord:
    """Represents a persisted handoff session."""

    id: str
    created_at: datetime


@dataclass(frozen=True)
class ImageRecord:
    """Metadata for an image uploaded into a session."""

    id: str
    session_id: str
    filename: str
    content_type: str
    blob_ref: str
    created_at: datetime


@dataclass(frozen=True)
class SessionImage:
    """Image metadata together with its loaded bytes."""

    record: ImageRecord
    data: bytes


@dataclass(frozen=True)
class HandoffTicket:
    """Session id and the deep link that hands it to the capture app."""

    session_id: str
    deep_link: str


@dataclass(frozen=True)
class SessionPoll:
    """Result of a poll against a session."""

    exists: bool
    image_count: int = 0
    created_at: datetime | None = None


@dataclass(frozen=True)
class UploadReceipt:
    """Result of a successful upload."""

    image_id: str
    session_id: str
    image_count: int


@dataclass(frozen=True)
class SweepReport:
    """Summary of one TTL sweep."""

    deleted_sessions: int
    deleted_images: int
    deleted_blobs: int
    failed_sessions: int = 0
