"""Error types shared by the handoff server and client."""


class ExpiryTrackerError(Exception):
    """Base class for application errors."""


class SessionNotFoundError(ExpiryTrackerError):
    """Raised when a session id does not resolve to a live session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class StoreUnavailableError(ExpiryTrackerError):
    """Raised when the session, image or blob backend fails."""


class UploadValidationError(ExpiryTrackerError):
    """Raised when an upload is rejected before anything is written."""


class AnalysisCallError(ExpiryTrackerError):
    """Raised when product/expiry field extraction fails."""


class ExtractionCallError(ExpiryTrackerError):
    """Raised when free-text extraction fails."""
