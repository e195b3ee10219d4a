"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import datetime

from supabase import Client

from expiry_tracker.domain.errors import StoreUnavailableError
from expiry_tracker.domain.sessions import SessionRecord
from expiry_tracker.services.store import SessionRepository


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for handoff sessions."""

    client: Client

    def create_session(self, session_id: str, created_at: datetime) -> SessionRecord:
        """Create a session row and return it."""
        try:
            response = (
                self.client.table("handoff_sessions")
                .insert({"id": session_id, "created_at": created_at.isoformat()})
                .execute()
            )
        except Exception as exc:
            raise StoreUnavailableError("Failed to create session") from exc
        if not response.data:
            raise StoreUnavailableError("Failed to create session")
        return _to_record(response.data[0])

    def get_session(self, session_id: str) -> SessionRecord | None:
        """Return a session by id, if present."""
        try:
            response = (
                self.client.table("handoff_sessions")
                .select("id, created_at")
                .eq("id", session_id)
                .limit(1)
                .execute()
            )
        except Exception as exc:
            raise StoreUnavailableError("Failed to load session") from exc
        if not response.data:
            return None
        return _to_record(response.data[0])

    def list_sessions(self) -> list[SessionRecord]:
        """Return all session rows, newest first."""
        try:
            response = (
                self.client.table("handoff_sessions")
                .select("id, created_at")
                .order("created_at", desc=True)
                .execute()
            )
        except Exception as exc:
            raise StoreUnavailableError("Failed to list sessions") from exc
        return [_to_record(row) for row in response.data or []]

    def list_sessions_created_before(self, cutoff: datetime) -> list[SessionRecord]:
        """Return session rows older than the cutoff."""
        try:
            response = (
                self.client.table("handoff_sessions")
                .select("id, created_at")
                .lt("created_at", cutoff.isoformat())
                .execute()
            )
        except Exception as exc:
            raise StoreUnavailableError("Failed to list expired sessions") from exc
        return [_to_record(row) for row in response.data or []]

    def delete_session(self, session_id: str) -> None:
        """Delete a session row."""
        try:
            self.client.table("handoff_sessions").delete().eq(
                "id", session_id
            ).execute()
        except Exception as exc:
            raise StoreUnavailableError("Failed to delete session") from exc


def _to_record(row: dict[str, object]) -> SessionRecord:
    return SessionRecord(
        id=str(row["id"]),
        created_at=datetime.fromisoformat(str(row["created_at"])),
    )
