"""Replica entities - the hosted agent and the form used to create it."""

import re
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

SLUG_PATTERN = re.compile(r"^[a-z0-9-]+$")


class Replica(BaseModel):
    """A provisioned conversational agent on the platform.

    The platform mixes snake_case and camelCase field names between
    endpoints, so each field accepts both.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., validation_alias=AliasChoices("uuid", "id"))
    name: str
    slug: str
    short_description: str = Field(
        default="", validation_alias=AliasChoices("short_description", "shortDescription")
    )
    greeting: str = Field(
        default="", validation_alias=AliasChoices("introduction", "greeting")
    )
    profile_image: str | None = Field(
        default=None, validation_alias=AliasChoices("profile_image", "profileImage")
    )


class ReplicaDraft(BaseModel):
    """Values collected by the create-replica form."""

    name: str = Field(..., min_length=2)
    short_description: str = Field(..., min_length=10)
    greeting: str = Field(..., min_length=10)
    slug: str = Field(..., min_length=3)
    profile_image: str | None = None

    @field_validator("name", "short_description", "greeting", "slug", mode="before")
    @classmethod
    def strip_text(cls, v: Any) -> Any:
        return v.strip() if isinstance(v, str) else v

    @field_validator("slug")
    @classmethod
    def slug_format(cls, v: str) -> str:
        if not SLUG_PATTERN.match(v):
            raise ValueError("Slug can only contain lowercase letters, numbers, and hyphens.")
        return v

    @field_validator("profile_image", mode="before")
    @classmethod
    def profile_image_url(cls, v: Any) -> Any:
        if v is None:
            return None
        v = str(v).strip()
        if not v:
            return None
        if not re.match(r"^https?://\S+$", v):
            raise ValueError("Must be a valid URL.")
        return v

    def to_payload(self, owner_id: str, llm_provider: str, llm_model: str) -> dict[str, Any]:
        """Build the POST /replicas request body."""
        payload: dict[str, Any] = {
            "name": self.name,
            "shortDescription": self.short_description,
            "greeting": self.greeting,
            "slug": self.slug,
            "ownerID": owner_id,
            "llm": {"provider": llm_provider, "model": llm_model},
        }
        if self.profile_image:
            payload["profileImage"] = self.profile_image
        return payload
