"""Product field and text extraction using LLM vision."""

import base64
import logging
from dataclasses import dataclass
from typing import Protocol

from pydantic import ValidationError

from expiry_tracker.domain.errors import AnalysisCallError, ExtractionCallError
from expiry_tracker.domain.vision import NO_TEXT_DETECTED, ProductFields

_logger = logging.getLogger(__name__)

PRODUCT_FIELDS_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "product": {"anyOf": [{"type": "string"}, {"type": "null"}]},
        "expiry_date": {
            "anyOf": [
                {"type": "string", "pattern": r"^\d{4}-\d{2}-\d{2}$"},
                {"type": "null"},
            ]
        },
    },
    "required": ["product", "expiry_date"],
    "additionalProperties": False,
}

_TEXT_PROMPT = (
    "Extract ALL visible text from this image. Focus on product names, "
    "expiry dates (MFG, EXP, Best Before, Use By), batch numbers and any other "
    "readable text. Return the extracted text in a clear, organized format. "
    f'If no text is found, return "{NO_TEXT_DETECTED}".'
)


class VisionClient(Protocol):
    """Interface for LLM vision calls."""

    async def extract(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        schema: dict[str, object],
        prompt: str,
    ) -> dict[str, object]:
        """Return structured data matching the schema."""

    async def extract_text(  # noqa: PLR0913
        self,
        *,
        model: str,
        reasoning_effort: str | None,
        store: bool,
        image_data_url: str,
        prompt: str,
    ) -> str:
        """Return free-form text for the image."""


@dataclass
class ProductVisionService:
    """Prepares vision prompts for product photos and validates results."""

    client: VisionClient
    model: str
    reasoning_effort: str | None
    store: bool

    async def extract_fields(
        self,
        image_bytes: bytes,
        hint_product: str | None = None,
        hint_date: str | None = None,
        content_type: str | None = None,
    ) -> ProductFields:
        """Read the product name and expiry date from a product photo."""
        try:
            raw = await self.client.extract(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                image_data_url=_to_data_url(image_bytes, content_type),
                schema=PRODUCT_FIELDS_SCHEMA,
                prompt=_fields_prompt(hint_product, hint_date),
            )
            return ProductFields.model_validate(raw)
        except ValidationError as exc:
            raise AnalysisCallError("Vision returned malformed fields") from exc
        except Exception as exc:
            raise AnalysisCallError(f"Vision analysis failed: {exc}") from exc

    async def extract_text(
        self, image_bytes: bytes, content_type: str | None = None
    ) -> str:
        """Return all readable text in the image."""
        try:
            text = await self.client.extract_text(
                model=self.model,
                reasoning_effort=self.reasoning_effort,
                store=self.store,
                image_data_url=_to_data_url(image_bytes, content_type),
                prompt=_TEXT_PROMPT,
            )
        except Exception as exc:
            raise ExtractionCallError(f"Text extraction failed: {exc}") from exc
        cleaned = text.strip()
        _logger.info("Text extraction successful (length=%s)", len(cleaned))
        return cleaned or NO_TEXT_DETECTED


def _fields_prompt(hint_product: str | None, hint_date: str | None) -> str:
    lines = [
        "This is a photo of a product package.",
        "Return the product name as printed (brand and product) and the "
        "expiry date as YYYY-MM-DD.",
        "Prefer EXP, Use By or Best Before dates over manufacturing dates.",
        "If a month and year are printed without a day, use the last day of "
        "that month.",
        "Use null for anything you cannot read.",
    ]
    if hint_product:
        lines.append(f"The user currently calls this product: {hint_product}.")
    if hint_date:
        lines.append(f"The user currently has the expiry date as: {hint_date}.")
    return "\n".join(lines)


def _to_data_url(image_bytes: bytes, content_type: str | None = None) -> str:
    """Convert bytes to a base64 data URL for image input."""
    mime_type = content_type if _is_image_type(content_type) else None
    mime_type = mime_type or _detect_mime_type(image_bytes)
    encoded = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{encoded}"


def _is_image_type(content_type: str | None) -> bool:
    return bool(content_type) and content_type.startswith("image/")


def _detect_mime_type(image_bytes: bytes) -> str:
    """Infer a basic image MIME type from file signatures."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return "image/jpeg"
