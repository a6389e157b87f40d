"""
Asynchronous key-value storage for persisted training data.

One logical store named for the training data, with an integer schema
version kept alongside it for future migrations.
"""

import asyncio
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Generator, Optional

from .config import SCHEMA_VERSION
from .errors import StorageUnavailable


class IKeyValueStorage(ABC):
    """Abstract interface for the async key-value storage service."""

    def __init__(self, store_name: str = "training_data"):
        if not store_name.isidentifier():
            raise ValueError(f"Invalid store name: {store_name}")
        self.store_name = store_name
        self.schema_version: Optional[int] = None

    @abstractmethod
    async def open(self) -> None:
        """Open the store, creating or migrating its schema as needed."""
        pass

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """Return the value for key, or None when the key is absent."""
        pass

    @abstractmethod
    async def put(self, key: str, value: str) -> None:
        """Insert or replace the value for key."""
        pass

    @abstractmethod
    async def clear(self) -> None:
        """Remove every key from the store."""
        pass

    async def close(self) -> None:
        """Release resources held by the store."""
        pass

    async def health_check(self) -> bool:
        """Check that the store can be read."""
        try:
            await self.get("__health__")
            return True
        except StorageUnavailable:
            return False


class InMemoryKeyValueStorage(IKeyValueStorage):
    """Dict-backed implementation of IKeyValueStorage."""

    def __init__(self, store_name: str = "training_data"):
        super().__init__(store_name)
        self._data: Dict[str, str] = {}
        self._opened = False

    async def open(self) -> None:
        self._opened = True
        self.schema_version = SCHEMA_VERSION

    def _require_open(self) -> None:
        if not self._opened:
            raise StorageUnavailable(f"Store '{self.store_name}' is not open")

    async def get(self, key: str) -> Optional[str]:
        self._require_open()
        return self._data.get(key)

    async def put(self, key: str, value: str) -> None:
        self._require_open()
        self._data[key] = value

    async def clear(self) -> None:
        self._require_open()
        self._data.clear()

    async def close(self) -> None:
        self._opened = False

    def keys(self):
        return list(self._data)


class SQLiteKeyValueStorage(IKeyValueStorage):
    """SQLite-backed implementation of IKeyValueStorage.

    Each call opens its own connection; blocking sqlite3 work runs in a
    worker thread so the event loop is never blocked.
    """

    def __init__(self, db_path: str, store_name: str = "training_data"):
        super().__init__(store_name)
        self.db_path = db_path

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a SQLite database connection."""
        conn = sqlite3.connect(self.db_path)
        try:
            yield conn
        finally:
            conn.close()

    async def _run(self, operation: str, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except (sqlite3.Error, OSError) as e:
            key = args[0] if args and isinstance(args[0], str) else None
            raise StorageUnavailable(f"Storage {operation} failed: {e}", key=key) from e

    def _init_schema(self) -> int:
        with self._connect() as conn:
            cursor = conn.cursor()

            cursor.execute(f'''
                CREATE TABLE IF NOT EXISTS {self.store_name} (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS schema_meta (
                    store_name TEXT PRIMARY KEY,
                    schema_version INTEGER NOT NULL
                )
            ''')

            cursor.execute(
                "SELECT schema_version FROM schema_meta WHERE store_name = ?",
                (self.store_name,)
            )
            row = cursor.fetchone()
            if row is None:
                cursor.execute(
                    "INSERT INTO schema_meta (store_name, schema_version) VALUES (?, ?)",
                    (self.store_name, SCHEMA_VERSION)
                )
                version = SCHEMA_VERSION
            else:
                version = row[0]
                if version > SCHEMA_VERSION:
                    raise sqlite3.DatabaseError(
                        f"Store schema version {version} is newer than supported version {SCHEMA_VERSION}"
                    )
                # No migrations exist yet below the current version
                if version < SCHEMA_VERSION:
                    cursor.execute(
                        "UPDATE schema_meta SET schema_version = ? WHERE store_name = ?",
                        (SCHEMA_VERSION, self.store_name)
                    )
                    version = SCHEMA_VERSION

            conn.commit()
            return version

    def _get(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            cursor = conn.cursor()
            cursor.execute(f"SELECT value FROM {self.store_name} WHERE key = ?", (key,))
            row = cursor.fetchone()
            return row[0] if row else None

    def _put(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                f"INSERT OR REPLACE INTO {self.store_name} (key, value, updated_at) VALUES (?, ?, CURRENT_TIMESTAMP)",
                (key, value)
            )
            conn.commit()

    def _clear(self) -> None:
        with self._connect() as conn:
            conn.execute(f"DELETE FROM {self.store_name}")
            conn.commit()

    async def open(self) -> None:
        self.schema_version = await self._run("open", self._init_schema)

    async def get(self, key: str) -> Optional[str]:
        return await self._run("get", self._get, key)

    async def put(self, key: str, value: str) -> None:
        await self._run("put", self._put, key, value)

    async def clear(self) -> None:
        await self._run("clear", self._clear)
