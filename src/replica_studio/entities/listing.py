"""PropertyListing - a structured form serialized into a text knowledge item.

Listings are never stored as their own entity. They are coerced from form
values, rendered as canonical JSON and submitted as one ``text`` item.
"""

import json
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

LISTING_TITLE_PREFIX = "Property Listing: "


def _clean_number(v: Any) -> Any:
    if isinstance(v, str):
        cleaned = v.strip().lstrip("$").replace(",", "").strip()
        if not cleaned:
            raise ValueError("A number is required.")
        return cleaned
    return v


class PropertyListing(BaseModel):
    """Structured listing as entered in the listing form."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    address: str = Field(..., min_length=1)
    price: float = Field(..., ge=0)
    bedrooms: int = Field(..., ge=0)
    bathrooms: float = Field(..., ge=0)
    square_feet: int = Field(..., ge=0)
    description: str = ""
    virtual_tour_url: str | None = None
    photo_urls: list[str] = Field(default_factory=list)

    @field_validator("address", "description", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("price", "bedrooms", "bathrooms", "square_feet", mode="before")
    @classmethod
    def parse_number(cls, v: Any) -> Any:
        return _clean_number(v)

    @field_validator("virtual_tour_url", mode="before")
    @classmethod
    def blank_url_is_none(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v

    @field_validator("photo_urls", mode="before")
    @classmethod
    def split_photo_urls(cls, v: Any) -> Any:
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        return [url.strip() for url in v if url and url.strip()]

    @property
    def title(self) -> str:
        return f"{LISTING_TITLE_PREFIX}{self.address}"

    def to_document(self) -> str:
        """Render the canonical pretty-printed JSON document."""
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True), indent=2)

    @classmethod
    def from_document(cls, text: str) -> "PropertyListing":
        return cls.model_validate_json(text)
