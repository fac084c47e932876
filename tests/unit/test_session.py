"""Unit tests for session stores and SessionManager."""

import os

import pytest

from replica_studio.config.schema import SessionStoreConfig, SessionStoreType
from replica_studio.entities.session import API_KEY_KEY, USER_ID_KEY
from replica_studio.gateway.base import ConfigurationError
from replica_studio.service.session import USER_ID_PREFIX, SessionManager, generate_user_id
from replica_studio.storage import create_session_store
from replica_studio.storage.base import StorageError
from replica_studio.storage.memory import InMemorySessionStore
from replica_studio.storage.sqlite import SQLiteSessionStore


@pytest.mark.asyncio
class TestSQLiteSessionStore:
    """Test SQLiteSessionStore functionality."""

    @pytest.fixture
    async def store(self, tmp_path):
        store = SQLiteSessionStore(
            SessionStoreConfig(store_type="sqlite", connection_string=f"sqlite:///{tmp_path}/nested/session.db")
        )
        await store.initialize()
        yield store
        await store.close()

    async def test_creates_parent_directory(self, store, tmp_path):
        assert os.path.exists(tmp_path / "nested" / "session.db")

    async def test_set_get_delete(self, store):
        assert await store.get(API_KEY_KEY) is None

        await store.set(API_KEY_KEY, "first")
        await store.set(API_KEY_KEY, "second")
        assert await store.get(API_KEY_KEY) == "second"

        await store.delete(API_KEY_KEY)
        assert await store.get(API_KEY_KEY) is None

    async def test_values_survive_reopen(self, store, tmp_path):
        await store.set(USER_ID_KEY, "agent_1")
        await store.close()

        reopened = SQLiteSessionStore(store.config)
        await reopened.initialize()
        try:
            session = await reopened.load_session()
        finally:
            await reopened.close()

        assert session.user_id == "agent_1"
        assert session.organization_secret is None

    async def test_uninitialized_store_raises(self, tmp_path):
        store = SQLiteSessionStore(SessionStoreConfig(connection_string=f"sqlite:///{tmp_path}/x.db"))

        with pytest.raises(StorageError):
            await store.get(API_KEY_KEY)


class TestSessionStoreFactory:
    def test_memory(self):
        store = create_session_store(SessionStoreConfig(store_type=SessionStoreType.MEMORY))
        assert isinstance(store, InMemorySessionStore)

    def test_sqlite(self, tmp_path):
        store = create_session_store(SessionStoreConfig(connection_string=f"sqlite:///{tmp_path}/s.db"))
        assert isinstance(store, SQLiteSessionStore)
        assert store.db_path == f"{tmp_path}/s.db"

    def test_home_is_expanded(self):
        config = SessionStoreConfig()
        assert "~" not in config.connection_string


@pytest.mark.asyncio
class TestSessionManager:
    @pytest.fixture
    def store(self):
        return InMemorySessionStore()

    async def test_configure_trims_and_saves(self, store):
        session = await SessionManager(store).configure("  org-secret \n")

        assert session.organization_secret == "org-secret"
        assert await store.get(API_KEY_KEY) == "org-secret"

    @pytest.mark.parametrize("secret", ["", "   ", None])
    async def test_empty_secret_rejected(self, store, secret):
        with pytest.raises(ConfigurationError, match="API Key cannot be empty."):
            await SessionManager(store).configure(secret)
        assert await store.get(API_KEY_KEY) is None

    async def test_ensure_user_creates_and_persists(self, store, gateway, platform):
        user_id = await SessionManager(store).ensure_user(gateway)

        assert user_id.startswith(USER_ID_PREFIX)
        assert user_id in platform.users
        assert await store.get(USER_ID_KEY) == user_id

    async def test_ensure_user_reuses_existing(self, gateway, platform):
        store = InMemorySessionStore(initial={USER_ID_KEY: "agent_existing"})

        assert await SessionManager(store).ensure_user(gateway) == "agent_existing"
        assert platform.requests == []

    async def test_failed_user_creation_not_persisted(self, store, gateway, platform):
        platform.fail("POST /users")

        assert await SessionManager(store).ensure_user(gateway) is None
        assert await store.get(USER_ID_KEY) is None

    async def test_reset(self):
        store = InMemorySessionStore(initial={API_KEY_KEY: "s", USER_ID_KEY: "agent_1"})

        session = await SessionManager(store).reset()

        assert not session.configured
        assert (await store.load_session()).user_id is None


def test_generated_user_ids_are_unique():
    ids = {generate_user_id() for _ in range(50)}
    assert len(ids) == 50
    assert all(i.startswith("agent_") for i in ids)
