"""Key-value stores backing the feed cache."""

import asyncio
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

import aiosqlite

logger = logging.getLogger(__name__)


class KeyValueStore(Protocol):
    """Async string key-value store."""

    async def get(self, key: str) -> Optional[str]: ...

    async def set(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...

    async def keys(self, prefix: str = "") -> list[str]: ...

    async def close(self) -> None: ...


class MemoryKeyValueStore:
    """In-process store, used when no persistent store is configured."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def keys(self, prefix: str = "") -> list[str]:
        return [key for key in self._data if key.startswith(prefix)]

    async def close(self) -> None:
        return None


class SqliteKeyValueStore:
    """Persistent store in a single SQLite table."""

    def __init__(self, database_path: Union[Path, str]):
        """Initialize the store.

        Args:
            database_path: Path to SQLite database file
        """
        self.database_path = Path(database_path)
        self._initialized = False
        self._initialization_lock: Optional[asyncio.Lock] = None

        logger.debug("SQLite key-value store configured (lazy): %s", self.database_path)

    async def _ensure_initialized(self) -> None:
        if self._initialized:
            return

        if self._initialization_lock is None:
            self._initialization_lock = asyncio.Lock()

        async with self._initialization_lock:
            if self._initialized:
                return

            self.database_path.parent.mkdir(parents=True, exist_ok=True)
            async with aiosqlite.connect(str(self.database_path)) as db:
                # WAL keeps readers unblocked while a refresh writes
                await db.execute("PRAGMA journal_mode=WAL")
                await db.execute("PRAGMA synchronous=NORMAL")
                await db.execute(
                    """
                    CREATE TABLE IF NOT EXISTS kv_cache (
                        key TEXT PRIMARY KEY,
                        value TEXT NOT NULL,
                        updated_at DATETIME DEFAULT CURRENT_TIMESTAMP
                    )
                """
                )
                await db.commit()

            self._initialized = True
            logger.info("SQLite key-value store initialized at %s", self.database_path)

    async def get(self, key: str) -> Optional[str]:
        await self._ensure_initialized()
        async with aiosqlite.connect(str(self.database_path)) as db:
            async with db.execute("SELECT value FROM kv_cache WHERE key = ?", (key,)) as cursor:
                row = await cursor.fetchone()
        return row[0] if row else None

    async def set(self, key: str, value: str) -> None:
        await self._ensure_initialized()
        async with aiosqlite.connect(str(self.database_path)) as db:
            await db.execute(
                """
                INSERT INTO kv_cache (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
            """,
                (key, value),
            )
            await db.commit()

    async def delete(self, key: str) -> None:
        await self._ensure_initialized()
        async with aiosqlite.connect(str(self.database_path)) as db:
            await db.execute("DELETE FROM kv_cache WHERE key = ?", (key,))
            await db.commit()

    async def keys(self, prefix: str = "") -> list[str]:
        await self._ensure_initialized()
        async with aiosqlite.connect(str(self.database_path)) as db:
            async with db.execute(
                "SELECT key FROM kv_cache WHERE substr(key, 1, ?) = ? ORDER BY key",
                (len(prefix), prefix),
            ) as cursor:
                rows = await cursor.fetchall()
        return [row[0] for row in rows]

    async def close(self) -> None:
        # Connections are opened per operation
        return None
