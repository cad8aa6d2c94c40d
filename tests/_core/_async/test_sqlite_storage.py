import sqlite3
from datetime import datetime
from pathlib import Path
from unittest.mock import patch
from zoneinfo import ZoneInfo

import anysqlite
import pytest
from inline_snapshot import snapshot
from time_machine import travel

from offcache import AsyncSqliteStorage, Headers, Request, Response, StorageError
from offcache._utils import make_async_iterator
from tests.conftest import aprint_sqlite_state

URL = "https://app.example.com/index.html"


def page(body: bytes = b"<html>") -> Response:
    return Response(
        status_code=200,
        headers=Headers({"Content-Type": "text/html", "X-Offcache-Captured-At": "1704067200000"}),
        stream=make_async_iterator([body]),
    )


@pytest.mark.anyio
async def test_custom_connection_does_not_create_directory() -> None:
    with patch("offcache._core._storages._async_sqlite.ensure_cache_dict") as mock_ensure:
        storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))
        await storage.put("dynamic", Request(method="GET", url=URL), page())
        mock_ensure.assert_not_called()


@pytest.mark.anyio
async def test_database_path_is_created(tmp_path: Path) -> None:
    storage = AsyncSqliteStorage(database_path=tmp_path / "nested" / "offcache.db")
    await storage.open("precache")
    await storage.close()

    assert (tmp_path / "nested" / "offcache.db").is_file()
    assert (tmp_path / "nested" / ".gitignore").is_file()


@pytest.mark.anyio
@travel(datetime(2024, 1, 1, 0, 0, 0, tzinfo=ZoneInfo("UTC")), tick=False)
async def test_put_and_match() -> None:
    storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))

    stored = await storage.put("offcache-dynamic-v1", Request(method="GET", url=URL), page())
    assert await stored.response.aread() == b"<html>"

    entry = await storage.match("offcache-dynamic-v1", Request(method="GET", url=URL + "#main"))
    assert entry is not None
    assert entry.partition == "offcache-dynamic-v1"
    assert entry.cache_key == f"GET {URL}"
    assert entry.response.status_code == 200
    assert entry.response.headers["x-offcache-captured-at"] == "1704067200000"
    assert await entry.response.aread() == b"<html>"
    assert entry.meta.created_at == 1704067200.0

    assert await storage.match("offcache-static-v1", Request(method="GET", url=URL)) is None
    assert await storage.match("offcache-dynamic-v1", Request(method="HEAD", url=URL)) is None


@pytest.mark.anyio
@travel(datetime(2024, 1, 1, 0, 0, 0, tzinfo=ZoneInfo("UTC")), tick=False)
async def test_put_replaces_existing_entry() -> None:
    storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))

    await storage.put("offcache-dynamic-v1", Request(method="GET", url=URL), page(b"old"))
    await storage.put("offcache-dynamic-v1", Request(method="GET", url=URL), page(b"new"))

    entry = await storage.match("offcache-dynamic-v1", Request(method="GET", url=URL))
    assert entry is not None
    assert await entry.response.aread() == b"new"

    conn = await storage._ensure_connection()
    assert await aprint_sqlite_state(conn) == snapshot("""\
TABLE: entries (1 rows)
  1: partition='offcache-dynamic-v1', cache_key='GET https://app.example.com/index.html', data=(bytes), created_at=2024-01-01
TABLE: partitions (1 rows)
  1: name='offcache-dynamic-v1', created_at=2024-01-01\
""")


@pytest.mark.anyio
async def test_partitions_and_delete() -> None:
    storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))

    await storage.open("offcache-precache-v1")
    await storage.put("offcache-static-v1", Request(method="GET", url=URL), page())
    await storage.open("offcache-precache-v1")

    assert await storage.partitions() == ["offcache-precache-v1", "offcache-static-v1"]

    assert await storage.delete("offcache-static-v1") is True
    assert await storage.delete("offcache-static-v1") is False
    assert await storage.partitions() == ["offcache-precache-v1"]
    assert await storage.match("offcache-static-v1", Request(method="GET", url=URL)) is None


@pytest.mark.anyio
async def test_sqlite_errors_become_storage_errors() -> None:
    storage = AsyncSqliteStorage(connection=await anysqlite.connect(":memory:"))

    with patch.object(storage, "_ensure_connection", side_effect=sqlite3.OperationalError("disk I/O error")):
        with pytest.raises(StorageError, match="Could not list partitions"):
            await storage.partitions()
        with pytest.raises(StorageError, match="Could not write to partition 'static'"):
            await storage.put("static", Request(method="GET", url=URL), page())
