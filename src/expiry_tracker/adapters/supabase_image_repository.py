"""Supabase-backed image metadata repository."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from expiry_tracker.domain.errors import StoreUnavailableError
from expiry_tracker.domain.sessions import ImageRecord
from expiry_tracker.services.store import ImageRepository

_COLUMNS = "id, session_id, filename, content_type, blob_ref, created_at"


@dataclass
class SupabaseImageRepository(ImageRepository):
    """Supabase implementation for image metadata persistence."""

    client: Client

    def insert_image(  # noqa: PLR0913
        self,
        session_id: str,
        filename: str,
        content_type: str,
        blob_ref: str,
        created_at: datetime,
    ) -> ImageRecord:
        """Insert an image metadata row and return it."""
        try:
            response = (
                self.client.table("session_images")
                .insert(
                    {
                        "session_id": session_id,
                        "filename": filename,
                        "content_type": content_type,
                        "blob_ref": blob_ref,
                        "created_at": created_at.isoformat(),
                    }
                )
                .execute()
            )
        except Exception as exc:
            raise StoreUnavailableError("Failed to store image metadata") from exc
        if not response.data:
            raise StoreUnavailableError("Failed to store image metadata")
        return _to_record(response.data[0])

    def list_images(self, session_id: str) -> list[ImageRecord]:
        """Return image metadata rows for a session."""
        try:
            response = (
                self.client.table("session_images")
                .select(_COLUMNS)
                .eq("session_id", session_id)
                .order("created_at")
                .execute()
            )
        except Exception as exc:
            raise StoreUnavailableError("Failed to list session images") from exc
        return [_to_record(row) for row in response.data or []]

    def delete_image(self, image_id: str) -> None:
        """Delete an image metadata row."""
        try:
            self.client.table("session_images").delete().eq("id", image_id).execute()
        except Exception as exc:
            raise StoreUnavailableError("Failed to delete image metadata") from exc


def _to_record(row: dict[str, object]) -> ImageRecord:
    return ImageRecord(
        id=str(row["id"]),
        session_id=str(row["session_id"]),
        filename=str(row["filename"]),
        content_type=str(row["content_type"]),
        blob_ref=str(row["blob_ref"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
    )
