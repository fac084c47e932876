"""Session bootstrap: organization secret and generated user id.

Provides helper functions for establishing the credential state every
gateway call reads.
"""

from typing import Optional
from uuid import uuid4

from replica_studio.entities.session import API_KEY_KEY, USER_ID_KEY, Session
from replica_studio.gateway.base import ConfigurationError
from replica_studio.gateway.client import SensayGateway
from replica_studio.observability.logging import get_logger
from replica_studio.storage.base import SessionStore

logger = get_logger(__name__)

USER_ID_PREFIX = "agent_"


def generate_user_id() -> str:
    return f"{USER_ID_PREFIX}{uuid4()}"


class SessionManager:
    """Reads and writes the session through a durable store."""

    def __init__(self, store: SessionStore):
        self.store = store

    async def load(self) -> Session:
        return await self.store.load_session()

    async def configure(self, secret: str) -> Session:
        """Store a new organization secret.

        Any gateway built from the previous session is now outdated; build a
        new one and reset trackers that depend on it.

        Raises:
            ConfigurationError: If the secret is empty
        """
        secret = (secret or "").strip()
        if not secret:
            raise ConfigurationError("API Key cannot be empty.")

        await self.store.set(API_KEY_KEY, secret)
        logger.info("organization_secret_configured")
        return await self.load()

    async def ensure_user(self, gateway: SensayGateway) -> Optional[str]:
        """Make sure a platform user exists for this session.

        A new id is persisted only after the platform accepted it.

        Returns:
            The user id, or None if creating it failed
        """
        existing = await self.store.get(USER_ID_KEY)
        if existing:
            return existing

        user_id = generate_user_id()
        user = await gateway.create_user(user_id)
        if user is None:
            logger.warning("user_bootstrap_failed", user_id=user_id)
            return None

        await self.store.set(USER_ID_KEY, user_id)
        logger.info("user_bootstrapped", user_id=user_id)
        return user_id

    async def reset(self) -> Session:
        """Forget both the secret and the user id."""
        await self.store.delete(API_KEY_KEY)
        await self.store.delete(USER_ID_KEY)
        logger.info("session_reset")
        return Session()
