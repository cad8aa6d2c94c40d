from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import List, Optional, Union

import anysqlite

from offcache._core._storages._async_base import AsyncBaseStorage
from offcache._core._storages._packing import pack, unpack
from offcache._core.models import Entry, EntryMeta, Request, Response
from offcache._exceptions import StorageError
from offcache._utils import ensure_cache_dict

logger = logging.getLogger("offcache.storages")


class AsyncSqliteStorage(AsyncBaseStorage):
    """
    Persists partitions in a sqlite database.

    :param connection: An open `anysqlite` connection, defaults to None
    :param database_path: Database file used when no connection is given. Relative
        names are placed inside `.cache/offcache`.
    """

    def __init__(
        self,
        *,
        connection: Optional[anysqlite.Connection] = None,
        database_path: Union[str, Path] = "offcache.db",
    ) -> None:
        self.connection = connection
        self.database_path: Path = database_path if isinstance(database_path, Path) else Path(database_path)
        self._initialized = False

    async def _ensure_connection(self) -> anysqlite.Connection:
        """Ensure connection is established and database is initialized."""
        if self.connection is None:
            parent = self.database_path.parent if self.database_path.parent != Path(".") else None
            full_path = ensure_cache_dict(parent) / self.database_path.name
            self.connection = await anysqlite.connect(str(full_path))
        if not self._initialized:
            await self._initialize_database()
            self._initialized = True
        return self.connection

    async def _initialize_database(self) -> None:
        assert self.connection is not None
        cursor = await self.connection.cursor()

        await cursor.execute("""
            CREATE TABLE IF NOT EXISTS partitions (
                name TEXT PRIMARY KEY,
                created_at REAL NOT NULL
            )
        """)

        await cursor.execute("""
            CREATE TABLE IF NOT EXISTS entries (
                partition TEXT NOT NULL,
                cache_key TEXT NOT NULL,
                data BLOB NOT NULL,
                created_at REAL NOT NULL,
                PRIMARY KEY (partition, cache_key)
            )
        """)

        await self.connection.commit()

    async def open(self, partition: str) -> None:
        try:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await self._open(partition, cursor)
            await connection.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Could not open partition {partition!r}") from exc

    async def _open(self, partition: str, cursor: anysqlite.Cursor) -> None:
        await cursor.execute(
            "INSERT OR IGNORE INTO partitions (name, created_at) VALUES (?, ?)",
            (partition, time.time()),
        )

    async def partitions(self) -> List[str]:
        try:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute("SELECT name FROM partitions ORDER BY created_at, rowid")
            return [row[0] for row in await cursor.fetchall()]
        except sqlite3.Error as exc:
            raise StorageError("Could not list partitions") from exc

    async def match(self, partition: str, request: Request) -> Optional[Entry]:
        try:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute(
                "SELECT data FROM entries WHERE partition = ? AND cache_key = ?",
                (partition, request.cache_key),
            )
            row = await cursor.fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Could not read from partition {partition!r}") from exc

        if row is None:
            return None
        return unpack(row[0])

    async def put(self, partition: str, request: Request, response: Response) -> Entry:
        body = await response.aread()
        entry = Entry(
            partition=partition,
            cache_key=request.cache_key,
            request=Request(method=request.method, url=request.url, headers=request.headers.copy()),
            response=Response(status_code=response.status_code, headers=response.headers.copy()),
            meta=EntryMeta(created_at=time.time()),
        )
        setattr(entry.response, "collected_body", body)

        try:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await self._open(partition, cursor)
            await cursor.execute(
                "INSERT OR REPLACE INTO entries (partition, cache_key, data, created_at) VALUES (?, ?, ?, ?)",
                (partition, entry.cache_key, pack(entry, body=body), entry.meta.created_at),
            )
            await connection.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Could not write to partition {partition!r}") from exc

        logger.debug(f"Stored {entry.cache_key} in {partition}")
        return entry

    async def delete(self, partition: str) -> bool:
        try:
            connection = await self._ensure_connection()
            cursor = await connection.cursor()
            await cursor.execute("SELECT 1 FROM partitions WHERE name = ?", (partition,))
            existed = await cursor.fetchone() is not None
            await cursor.execute("DELETE FROM entries WHERE partition = ?", (partition,))
            await cursor.execute("DELETE FROM partitions WHERE name = ?", (partition,))
            await connection.commit()
        except sqlite3.Error as exc:
            raise StorageError(f"Could not delete partition {partition!r}") from exc
        return existed

    async def close(self) -> None:
        if self.connection is not None:
            await self.connection.close()
            self.connection = None
