"""Pydantic models for the handoff HTTP payloads."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateSessionResponse(CamelModel):
    """Response for a new handoff session."""

    session_id: str
    deep_link: str


class SessionStatusResponse(CamelModel):
    """Existence probe for a session."""

    session_id: str
    image_count: int
    created_at: datetime


class SessionImagePayload(CamelModel):
    """Image delivered inline, base64-encoded."""

    filename: str
    content_type: str
    data: str


class SessionImagesResponse(CamelModel):
    """Images currently held by a session."""

    session_id: str
    image_count: int
    images: list[SessionImagePayload]


class UploadResponse(CamelModel):
    """Response for an accepted upload."""

    success: bool = True
    session_id: str
    image_count: int


class ExtractTextResponse(CamelModel):
    """Response for free-text extraction."""

    success: bool = True
    extracted_text: str


class ErrorResponse(CamelModel):
    """Error body returned by every endpoint."""

    error: str
    details: str | None = None
