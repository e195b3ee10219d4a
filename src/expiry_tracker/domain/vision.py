"""Models for vision extraction results."""

from pydantic import BaseModel, ConfigDict, Field, field_validator

NO_TEXT_DETECTED = "No text detected"


class ProductFields(BaseModel):
    """Product name and expiry date read from a product photo."""

    model_config = ConfigDict(populate_by_name=True)

    product: str | None = None
    expiry_date: str | None = Field(default=None, alias="expiryDate")

    @field_validator("product", "expiry_date", mode="before")
    @classmethod
    def _blank_to_none(cls, value: object) -> object:
        if isinstance(value, str):
            cleaned = value.strip()
            return cleaned or None
        return value
