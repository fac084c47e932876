"""Session entity - organization credential and acting user id."""

from pydantic import BaseModel

# Fixed keys in the durable key/value store
API_KEY_KEY = "sensay_api_key"
USER_ID_KEY = "sensay_user_id"


class Session(BaseModel):
    """Credential state read by every gateway call.

    Built once at startup and passed to the gateway explicitly. Changing it
    means building a new gateway and resetting dependent trackers.
    """

    organization_secret: str | None = None
    user_id: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.organization_secret)

    def __repr__(self) -> str:
        masked = "***" if self.organization_secret else None
        return f"Session(organization_secret={masked!r}, user_id={self.user_id!r})"

    __str__ = __repr__
