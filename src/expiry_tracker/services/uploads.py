"""Upload entry point used by the capture app."""

import logging
from dataclasses import dataclass

from expiry_tracker.domain.errors import UploadValidationError
from expiry_tracker.domain.sessions import UploadReceipt
from expiry_tracker.services.store import SessionStore

_logger = logging.getLogger(__name__)

DEFAULT_FILENAME = "image"


@dataclass
class UploadIngestor:
    """Validates uploads against live sessions and stores them."""

    store: SessionStore

    def upload(
        self,
        session_id: str,
        filename: str | None,
        content_type: str | None,
        data: bytes,
    ) -> UploadReceipt:
        """Store an image in a session and return the new image count.

        Nothing is written unless the session is live and the payload is a
        non-empty image. A metadata failure after the blob write leaves the
        blob under the session's namespace for the TTL sweep to collect.
        """
        self.store.require_live_session(session_id)
        resolved_type = _validate_payload(content_type, data)
        record = self.store.add_image(
            session_id=session_id,
            filename=(filename or "").strip() or DEFAULT_FILENAME,
            content_type=resolved_type,
            data=data,
        )
        image_count = len(self.store.list_images(session_id))
        _logger.info(
            "Stored image %s in session %s (count=%s)",
            record.id,
            session_id,
            image_count,
        )
        return UploadReceipt(
            image_id=record.id,
            session_id=session_id,
            image_count=image_count,
        )


def _validate_payload(content_type: str | None, data: bytes) -> str:
    if not data:
        raise UploadValidationError("No image provided")
    resolved = (content_type or "").split(";", maxsplit=1)[0].strip().lower()
    if not resolved:
        return "application/octet-stream"
    if not resolved.startswith("image/") and resolved != "application/octet-stream":
        raise UploadValidationError(f"Unsupported content type: {content_type}")
    return resolved
