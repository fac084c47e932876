"""Abstract base class for the durable session store.

Why this exists:
- The organization secret and generated user id must survive restarts
- Separates where they live (SQLite file, memory) from who reads them
- Enables testing with an in-memory implementation

How to extend:
1. Subclass SessionStore
2. Implement all abstract methods
3. Register in storage.create_session_store
"""

from abc import ABC, abstractmethod
from typing import Optional

from replica_studio.config.schema import SessionStoreConfig
from replica_studio.entities.session import API_KEY_KEY, USER_ID_KEY, Session


class SessionStore(ABC):
    """Durable key/value storage for credential state.

    Values are never expired automatically.
    """

    def __init__(self, config: SessionStoreConfig) -> None:
        """Initialize storage with configuration."""
        self.config = config

    @abstractmethod
    async def initialize(self) -> None:
        """Prepare the store (open connection, create tables)."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the stored value or None."""
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove a key if present."""
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release resources."""
        pass

    async def load_session(self) -> Session:
        """Read the credential and user id under their fixed keys."""
        return Session(
            organization_secret=await self.get(API_KEY_KEY),
            user_id=await self.get(USER_ID_KEY),
        )


class StorageError(Exception):
    """Base exception for storage errors."""

    def __init__(self, message: str, storage_type: str, original_error: Optional[Exception] = None):
        self.message = message
        self.storage_type = storage_type
        self.original_error = original_error
        super().__init__(self.message)
