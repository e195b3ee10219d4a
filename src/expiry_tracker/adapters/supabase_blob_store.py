"""Supabase Storage blob store."""

from dataclasses import dataclass

from supabase import Client

from expiry_tracker.domain.errors import StoreUnavailableError
from expiry_tracker.services.store import BlobStore, blob_ref_for


@dataclass
class SupabaseBlobStore(BlobStore):
    """Blob store backed by a Supabase Storage bucket.

    Objects live at ``<session_id>/<sha256>`` so one folder listing per session
    finds every blob the session owns.
    """

    client: Client
    bucket: str

    def put(self, session_id: str, data: bytes, content_type: str) -> str:
        """Upload bytes under the session folder and return the object path."""
        blob_ref = blob_ref_for(session_id, data)
        try:
            self._bucket().upload(
                blob_ref,
                data,
                {"content-type": content_type, "upsert": "true"},
            )
        except Exception as exc:
            raise StoreUnavailableError("Failed to upload image blob") from exc
        return blob_ref

    def get(self, blob_ref: str) -> bytes:
        """Download an object's bytes."""
        try:
            return self._bucket().download(blob_ref)
        except Exception as exc:
            raise StoreUnavailableError(f"Failed to download {blob_ref}") from exc

    def delete(self, blob_ref: str) -> None:
        """Remove an object; missing objects are ignored by Storage."""
        try:
            self._bucket().remove([blob_ref])
        except Exception as exc:
            raise StoreUnavailableError(f"Failed to delete {blob_ref}") from exc

    def list_refs(self, session_id: str) -> list[str]:
        """List object paths under the session folder."""
        try:
            entries = self._bucket().list(session_id)
        except Exception as exc:
            raise StoreUnavailableError("Failed to list session blobs") from exc
        return [
            f"{session_id}/{entry['name']}"
            for entry in entries or []
            if entry.get("name")
        ]

    def _bucket(self):  # type: ignore[no-untyped-def]
        return self.client.storage.from_(self.bucket)
