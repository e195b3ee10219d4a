"""In-process store backends for single-instance deployments."""

from dataclasses import dataclass, field
from datetime import datetime
from uuid import uuid4

from expiry_tracker.domain.sessions import ImageRecord, SessionRecord
from expiry_tracker.services.store import (
    BlobStore,
    ImageRepository,
    SessionRepository,
    blob_ref_for,
)


@dataclass
class InMemorySessionRepository(SessionRepository):
    """Session records kept in a process-local dict."""

    sessions: dict[str, SessionRecord] = field(default_factory=dict)

    def create_session(self, session_id: str, created_at: datetime) -> SessionRecord:
        session = SessionRecord(id=session_id, created_at=created_at)
        self.sessions[session_id] = session
        return session

    def get_session(self, session_id: str) -> SessionRecord | None:
        return self.sessions.get(session_id)

    def list_sessions(self) -> list[SessionRecord]:
        return list(self.sessions.values())

    def list_sessions_created_before(self, cutoff: datetime) -> list[SessionRecord]:
        return [
            session
            for session in self.sessions.values()
            if session.created_at < cutoff
        ]

    def delete_session(self, session_id: str) -> None:
        self.sessions.pop(session_id, None)


@dataclass
class InMemoryImageRepository(ImageRepository):
    """Image metadata kept in a process-local dict."""

    images: dict[str, ImageRecord] = field(default_factory=dict)

    def insert_image(  # noqa: PLR0913
        self,
        session_id: str,
        filename: str,
        content_type: str,
        blob_ref: str,
        created_at: datetime,
    ) -> ImageRecord:
        record = ImageRecord(
            id=str(uuid4()),
            session_id=session_id,
            filename=filename,
            content_type=content_type,
            blob_ref=blob_ref,
            created_at=created_at,
        )
        self.images[record.id] = record
        return record

    def list_images(self, session_id: str) -> list[ImageRecord]:
        owned = [
            image for image in self.images.values() if image.session_id == session_id
        ]
        return sorted(owned, key=lambda image: image.created_at)

    def delete_image(self, image_id: str) -> None:
        self.images.pop(image_id, None)


@dataclass
class InMemoryBlobStore(BlobStore):
    """Content-addressed blobs kept in a process-local dict."""

    blobs: dict[str, bytes] = field(default_factory=dict)

    def put(self, session_id: str, data: bytes, content_type: str) -> str:
        blob_ref = blob_ref_for(session_id, data)
        self.blobs[blob_ref] = data
        return blob_ref

    def get(self, blob_ref: str) -> bytes:
        try:
            return self.blobs[blob_ref]
        except KeyError:
            raise LookupError(f"Blob not found: {blob_ref}") from None

    def delete(self, blob_ref: str) -> None:
        self.blobs.pop(blob_ref, None)

    def list_refs(self, session_id: str) -> list[str]:
        prefix = f"{session_id}/"
        return [blob_ref for blob_ref in self.blobs if blob_ref.startswith(prefix)]
