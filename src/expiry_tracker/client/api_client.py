"""HTTP client for the handoff server."""

import base64
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from expiry_tracker.api.schemas import (
    CreateSessionResponse,
    ExtractTextResponse,
    SessionImagesResponse,
)
from expiry_tracker.client.models import ImageFile, SessionSnapshot
from expiry_tracker.domain.errors import SessionNotFoundError
from expiry_tracker.domain.sessions import HandoffTicket
from expiry_tracker.domain.vision import ProductFields

_logger = logging.getLogger(__name__)


class HandoffApiClient(Protocol):
    """Interface for the primary device's calls to the server."""

    async def start_handoff(self) -> HandoffTicket:
        """Create a session and return its id and deep link."""

    async def get_session(self, session_id: str) -> SessionSnapshot:
        """Return the images a session currently holds."""

    async def extract_fields(
        self, image: ImageFile, hint_product: str, hint_date: str
    ) -> ProductFields:
        """Return product name and expiry date for an image."""

    async def extract_text(self, image: ImageFile) -> str:
        """Return the readable text of an image."""

    async def close(self) -> None:
        """Release network resources."""


@dataclass
class HttpxHandoffApiClient(HandoffApiClient):
    """Handoff API client using httpx."""

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 30.0

    @classmethod
    def create(
        cls,
        base_url: str,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> "HttpxHandoffApiClient":
        """Create a client with a managed httpx session."""
        return cls(
            base_url=base_url.rstrip("/"),
            http_client=http_client or httpx.AsyncClient(),
            timeout=timeout,
        )

    async def start_handoff(self) -> HandoffTicket:
        """POST /session."""
        response = await self.http_client.post(
            f"{self.base_url}/session", timeout=self.timeout
        )
        response.raise_for_status()
        payload = CreateSessionResponse.model_validate(response.json())
        return HandoffTicket(session_id=payload.session_id, deep_link=payload.deep_link)

    async def get_session(self, session_id: str) -> SessionSnapshot:
        """GET /session/{id}; a 404 means the session is gone for good."""
        response = await self.http_client.get(
            f"{self.base_url}/session/{session_id}", timeout=self.timeout
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            raise SessionNotFoundError(session_id)
        response.raise_for_status()
        payload = SessionImagesResponse.model_validate(response.json())
        images: list[ImageFile] = []
        for entry in payload.images:
            try:
                data = base64.b64decode(entry.data, validate=True)
            except ValueError:
                _logger.warning("Skipping undecodable image %s", entry.filename)
                continue
            images.append(
                ImageFile(
                    filename=entry.filename,
                    content_type=entry.content_type,
                    data=data,
                )
            )
        return SessionSnapshot(
            session_id=payload.session_id,
            image_count=payload.image_count,
            images=tuple(images),
        )

    async def extract_fields(
        self, image: ImageFile, hint_product: str, hint_date: str
    ) -> ProductFields:
        """POST /analyze with the current values as hints."""
        response = await self.http_client.post(
            f"{self.base_url}/analyze",
            files={"image": (image.filename, image.data, image.content_type)},
            data={"manualProduct": hint_product, "manualDate": hint_date},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return ProductFields.model_validate(response.json())

    async def extract_text(self, image: ImageFile) -> str:
        """POST /extract-text."""
        response = await self.http_client.post(
            f"{self.base_url}/extract-text",
            files={"image": (image.filename, image.data, image.content_type)},
            timeout=self.timeout,
        )
        response.raise_for_status()
        return ExtractTextResponse.model_validate(response.json()).extracted_text

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
