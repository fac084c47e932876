"""SQLite storage implementation for session state.

Provides durable key/value storage for the organization secret and user id.
Uses aiosqlite for async operations.
"""

import os
from datetime import datetime, timezone
from typing import Optional

import aiosqlite

from replica_studio.config.schema import SessionStoreConfig
from replica_studio.storage.base import SessionStore, StorageError


class SQLiteSessionStore(SessionStore):
    """SQLite session store implementation.

    Stores each key in a single ``session`` table.
    """

    def __init__(self, config: SessionStoreConfig) -> None:
        """Initialize SQLite session store."""
        super().__init__(config)

        conn_str = config.connection_string
        if conn_str.startswith("sqlite:///"):
            self.db_path = os.path.expanduser(conn_str.replace("sqlite:///", ""))
        else:
            self.db_path = os.path.expanduser(conn_str)

        self.connection: Optional[aiosqlite.Connection] = None

    async def initialize(self) -> None:
        """Open the database and create the session table."""
        try:
            db_dir = os.path.dirname(self.db_path)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)

            self.connection = await aiosqlite.connect(self.db_path)
            await self.connection.execute("""
                CREATE TABLE IF NOT EXISTS session (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            await self.connection.commit()

        except Exception as e:
            raise StorageError(
                f"Failed to initialize SQLite session store: {e}",
                storage_type="sqlite",
                original_error=e,
            )

    def _require_connection(self) -> aiosqlite.Connection:
        if not self.connection:
            raise StorageError("Database not initialized", storage_type="sqlite")
        return self.connection

    async def get(self, key: str) -> Optional[str]:
        connection = self._require_connection()
        try:
            cursor = await connection.execute("SELECT value FROM session WHERE key = ?", (key,))
            row = await cursor.fetchone()
            await cursor.close()
        except Exception as e:
            raise StorageError(f"Failed to read '{key}': {e}", storage_type="sqlite", original_error=e)
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        connection = self._require_connection()
        try:
            await connection.execute(
                """
                INSERT INTO session (key, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at
                """,
                (key, value, datetime.now(timezone.utc).isoformat()),
            )
            await connection.commit()
        except Exception as e:
            raise StorageError(f"Failed to write '{key}': {e}", storage_type="sqlite", original_error=e)

    async def delete(self, key: str) -> None:
        connection = self._require_connection()
        try:
            await connection.execute("DELETE FROM session WHERE key = ?", (key,))
            await connection.commit()
        except Exception as e:
            raise StorageError(f"Failed to delete '{key}': {e}", storage_type="sqlite", original_error=e)

    async def close(self) -> None:
        """Close the database connection."""
        if self.connection:
            await self.connection.close()
            self.connection = None
