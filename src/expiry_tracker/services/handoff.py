"""Rendezvous sessions between the primary device and the capture app."""

import logging
import secrets
from dataclasses import dataclass
from urllib.parse import urlencode

from expiry_tracker.domain.errors import StoreUnavailableError
from expiry_tracker.domain.sessions import (
    HandoffTicket,
    SessionImage,
    SessionPoll,
)
from expiry_tracker.services.store import SessionStore

_logger = logging.getLogger(__name__)

SESSION_TOKEN_BYTES = 16
DEFAULT_DEEP_LINK_BASE = "expiryapp://camera"


@dataclass
class HandoffCoordinator:
    """Issues session tokens and answers polls against them.

    Session ids are bearer capabilities: whoever holds one may poll the session
    or upload into it until the TTL elapses.
    """

    store: SessionStore
    deep_link_base: str = DEFAULT_DEEP_LINK_BASE

    def start_handoff(self) -> HandoffTicket:
        """Create a session and return its id with the capture deep link."""
        session_id = new_session_id()
        self.store.create_session(session_id)
        _logger.info("Started handoff session %s", session_id)
        return HandoffTicket(
            session_id=session_id,
            deep_link=build_deep_link(self.deep_link_base, session_id),
        )

    def poll_session(self, session_id: str) -> SessionPoll:
        """Return whether the session exists and how many images it holds."""
        session = self.store.get_live_session(session_id)
        if session is None:
            return SessionPoll(exists=False)
        images = self.store.list_images(session_id)
        return SessionPoll(
            exists=True,
            image_count=len(images),
            created_at=session.created_at,
        )

    def fetch_session_images(self, session_id: str) -> list[SessionImage]:
        """Return every readable image of a live session with its bytes."""
        self.store.require_live_session(session_id)
        loaded: list[SessionImage] = []
        for record in self.store.list_images(session_id):
            try:
                data = self.store.load_blob(record.blob_ref)
            except (LookupError, StoreUnavailableError):
                _logger.warning(
                    "Skipping unreadable image %s in session %s",
                    record.id,
                    session_id,
                )
                continue
            loaded.append(SessionImage(record=record, data=data))
        return loaded


def new_session_id() -> str:
    """Return a 128-bit random token, hex-encoded."""
    return secrets.token_hex(SESSION_TOKEN_BYTES)


def build_deep_link(base: str, session_id: str) -> str:
    """Build the URI the capture app opens for a session."""
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{urlencode({'session': session_id})}"
