"""In-memory session store, for tests and throwaway sessions."""

from typing import Optional

from replica_studio.config.schema import SessionStoreConfig
from replica_studio.storage.base import SessionStore


class InMemorySessionStore(SessionStore):
    """Session store backed by a dict."""

    def __init__(self, config: Optional[SessionStoreConfig] = None, initial: Optional[dict[str, str]] = None) -> None:
        super().__init__(config or SessionStoreConfig(store_type="memory"))
        self._values: dict[str, str] = dict(initial or {})

    async def initialize(self) -> None:
        pass

    async def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    async def delete(self, key: str) -> None:
        self._values.pop(key, None)

    async def close(self) -> None:
        pass
