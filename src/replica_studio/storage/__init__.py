"""Storage layer: durable session state."""

from replica_studio.config.schema import SessionStoreConfig
from replica_studio.storage.base import SessionStore, StorageError


def create_session_store(config: SessionStoreConfig) -> SessionStore:
    """Factory function to create session stores based on configuration.

    Args:
        config: Session store configuration with store_type

    Returns:
        Session store (call ``initialize()`` before use)

    Raises:
        ValueError: If store_type is unknown

    Example:
        store = create_session_store(SessionStoreConfig(store_type="memory"))
        await store.initialize()
    """
    store_type = str(getattr(config.store_type, "value", config.store_type)).lower()

    if store_type == "memory":
        from replica_studio.storage.memory import InMemorySessionStore

        return InMemorySessionStore(config)

    elif store_type == "sqlite":
        from replica_studio.storage.sqlite import SQLiteSessionStore

        return SQLiteSessionStore(config)

    else:
        raise ValueError(
            f"Unknown session store type: '{store_type}'. "
            f"Supported types: memory, sqlite"
        )


__all__ = [
    "SessionStore",
    "StorageError",
    "create_session_store",
]
