"""Remote platform gateway: typed client and error taxonomy."""

from replica_studio.config.schema import PlatformConfig
from replica_studio.entities.session import Session
from replica_studio.gateway.base import (
    ConfigurationError,
    GatewayError,
    HeaderScope,
    SlugConflictError,
    is_slug_conflict,
)
from replica_studio.gateway.client import SensayGateway
from replica_studio.observability.notifications import Notifier


def create_gateway(
    platform: PlatformConfig,
    session: Session,
    notifier: Notifier | None = None,
    llm_provider: str = "openai",
    llm_model: str = "gpt-4o",
) -> SensayGateway:
    """Build a gateway for the given session.

    A new gateway must be built whenever the session changes.
    """
    return SensayGateway(
        platform,
        session,
        notifier=notifier,
        llm_provider=llm_provider,
        llm_model=llm_model,
    )


__all__ = [
    "ConfigurationError",
    "GatewayError",
    "HeaderScope",
    "SensayGateway",
    "SlugConflictError",
    "create_gateway",
    "is_slug_conflict",
]
