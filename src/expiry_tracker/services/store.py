"""Session and image storage with TTL-driven lifecycle."""

import hashlib
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Protocol

from expiry_tracker.domain.errors import SessionNotFoundError, StoreUnavailableError
from expiry_tracker.domain.sessions import (
    ImageRecord,
    SessionRecord,
    SweepReport,
)

_logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(hours=1)


class SessionRepository(Protocol):
    """Persistence interface for session records."""

    def create_session(self, session_id: str, created_at: datetime) -> SessionRecord:
        """Create a session record and return it."""

    def get_session(self, session_id: str) -> SessionRecord | None:
        """Return a session by id, if present."""

    def list_sessions(self) -> list[SessionRecord]:
        """Return every stored session."""

    def list_sessions_created_before(self, cutoff: datetime) -> list[SessionRecord]:
        """Return sessions created strictly before the cutoff."""

    def delete_session(self, session_id: str) -> None:
        """Delete a session record."""


class ImageRepository(Protocol):
    """Persistence interface for image metadata."""

    def insert_image(  # noqa: PLR0913
        self,
        session_id: str,
        filename: str,
        content_type: str,
        blob_ref: str,
        created_at: datetime,
    ) -> ImageRecord:
        """Insert an image metadata row and return it."""

    def list_images(self, session_id: str) -> list[ImageRecord]:
        """Return image metadata for a session, oldest first."""

    def delete_image(self, image_id: str) -> None:
        """Delete an image metadata row."""


class BlobStore(Protocol):
    """Blob storage namespaced by session."""

    def put(self, session_id: str, data: bytes, content_type: str) -> str:
        """Store bytes for a session and return the blob reference."""

    def get(self, blob_ref: str) -> bytes:
        """Return the bytes behind a blob reference."""

    def delete(self, blob_ref: str) -> None:
        """Delete a blob. Deleting a missing blob is not an error."""

    def list_refs(self, session_id: str) -> list[str]:
        """Return every blob reference stored for a session."""


def blob_ref_for(session_id: str, data: bytes) -> str:
    """Return the session-scoped content address for a payload."""
    digest = hashlib.sha256(data).hexdigest()
    return f"{session_id}/{digest}"


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionStore:
    """Session store composed of session, image and blob backends.

    A session older than the TTL is invisible to every read even before the
    sweep has removed it. The sweep deletes blobs, then image metadata, then
    the session record, so an interrupted sweep leaves a session that the next
    sweep will pick up again.
    """

    sessions: SessionRepository
    images: ImageRepository
    blobs: BlobStore
    ttl: timedelta = DEFAULT_SESSION_TTL
    clock: Callable[[], datetime] = field(default=_utcnow)

    def create_session(self, session_id: str) -> SessionRecord:
        """Create a session stamped with the current time."""
        return self.sessions.create_session(session_id, created_at=self.clock())

    def get_live_session(self, session_id: str) -> SessionRecord | None:
        """Return the session if it exists and has not expired."""
        session = self.sessions.get_session(session_id)
        if session is None or self.is_expired(session):
            return None
        return session

    def require_live_session(self, session_id: str) -> SessionRecord:
        """Return the live session or raise SessionNotFoundError."""
        session = self.get_live_session(session_id)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    def is_expired(self, session: SessionRecord) -> bool:
        """Return true when the session has outlived the TTL."""
        return self.clock() - session.created_at > self.ttl

    def list_live_sessions(self) -> list[SessionRecord]:
        """Return sessions that have not expired."""
        return [
            session
            for session in self.sessions.list_sessions()
            if not self.is_expired(session)
        ]

    def list_images(self, session_id: str) -> list[ImageRecord]:
        """Return image metadata for a session."""
        return self.images.list_images(session_id)

    def add_image(
        self, session_id: str, filename: str, content_type: str, data: bytes
    ) -> ImageRecord:
        """Write the blob, then the metadata row referencing it."""
        blob_ref = self.blobs.put(session_id, data, content_type)
        return self.images.insert_image(
            session_id=session_id,
            filename=filename,
            content_type=content_type,
            blob_ref=blob_ref,
            created_at=self.clock(),
        )

    def load_blob(self, blob_ref: str) -> bytes:
        """Return the bytes behind a blob reference."""
        return self.blobs.get(blob_ref)

    def sweep_expired(self) -> SweepReport:
        """Delete every expired session together with its images and blobs.

        A session whose cleanup fails is skipped and counted as failed; it is
        still expired, so the next sweep picks it up again.
        """
        cutoff = self.clock() - self.ttl
        deleted_sessions = 0
        deleted_images = 0
        deleted_blobs = 0
        failed_sessions = 0
        for session in self.sessions.list_sessions_created_before(cutoff):
            try:
                images, blobs = self.delete_session(session.id)
            except StoreUnavailableError:
                _logger.exception("Failed to sweep session %s", session.id)
                failed_sessions += 1
                continue
            deleted_sessions += 1
            deleted_images += images
            deleted_blobs += blobs
        if deleted_sessions or failed_sessions:
            _logger.info(
                "Swept expired sessions: sessions=%s images=%s blobs=%s failed=%s",
                deleted_sessions,
                deleted_images,
                deleted_blobs,
                failed_sessions,
            )
        return SweepReport(
            deleted_sessions=deleted_sessions,
            deleted_images=deleted_images,
            deleted_blobs=deleted_blobs,
            failed_sessions=failed_sessions,
        )

    def delete_session(self, session_id: str) -> tuple[int, int]:
        """Cascade-delete a session and return (images, blobs) removed."""
        records = self.images.list_images(session_id)
        blob_refs = set(self.blobs.list_refs(session_id))
        blob_refs.update(record.blob_ref for record in records)
        for blob_ref in sorted(blob_refs):
            self.blobs.delete(blob_ref)
        for record in records:
            self.images.delete_image(record.id)
        self.sessions.delete_session(session_id)
        return len(records), len(blob_refs)
