"""Gateway errors and request scopes.

Only two conditions are raised out of the gateway: a missing credential
(fatal, nothing can proceed) and a duplicate replica slug (the caller
attaches it to the slug field). Every other remote failure is reported
to the notifier and returned as a null/empty value.
"""

import re
from enum import Enum
from typing import Optional

SLUG_CONFLICT_PATTERN = re.compile(r"slug.*already exists", re.IGNORECASE)


class HeaderScope(str, Enum):
    """Which identity a request is made under."""

    ADMIN = "admin"  # organization secret only
    USER = "user"  # organization secret + acting user id


class GatewayError(Exception):
    """Base exception for gateway errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        self.message = message
        self.original_error = original_error
        super().__init__(self.message)


class ConfigurationError(GatewayError):
    """No organization secret (or user id) is configured."""


class SlugConflictError(GatewayError):
    """The requested replica slug is already taken."""

    field = "slug"
    field_message = "This web address is already taken. Please choose another one."

    def __init__(self, slug: str, remote_message: str = ""):
        self.slug = slug
        self.remote_message = remote_message
        super().__init__(f"Slug '{slug}' is already taken")


def is_slug_conflict(message: str | None) -> bool:
    return bool(message) and SLUG_CONFLICT_PATTERN.search(message) is not None
