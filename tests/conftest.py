from __future__ import annotations

import typing as tp
from datetime import datetime, timezone

import anysqlite
import pytest

from offcache import AsyncBaseStorage, AsyncInMemoryStorage, Entry, Headers, Request, Response
from offcache._utils import make_async_iterator

ORIGIN = "https://app.example.com"


def format_value(value: tp.Any, col_name: str, col_type: str) -> str:
    """Format a value for display based on its type and column name."""

    if value is None:
        return "NULL"

    if col_type.upper() == "BLOB":
        if isinstance(value, bytes):
            return "(bytes)"
        return repr(value)

    # Only show the date for timestamps
    if col_name.endswith("_at") and isinstance(value, (int, float)):
        return datetime.fromtimestamp(value, tz=timezone.utc).date().isoformat()

    if col_type.upper() == "TEXT":
        return f"'{value}'"

    return str(value)


async def aprint_sqlite_state(conn: anysqlite.Connection) -> str:
    """
    Print all tables and their rows in a pretty format suitable for inline snapshots.
    """
    cursor = await conn.cursor()

    await cursor.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name")
    tables = [row[0] for row in await cursor.fetchall()]

    output_lines = []
    for table_name in tables:
        await cursor.execute(f"PRAGMA table_info({table_name})")
        columns = await cursor.fetchall()
        column_names = [col[1] for col in columns]
        column_types = {col[1]: col[2] for col in columns}

        await cursor.execute(f"SELECT * FROM {table_name} ORDER BY rowid")
        rows = await cursor.fetchall()

        output_lines.append(f"TABLE: {table_name} ({len(rows)} rows)")
        for idx, row in enumerate(rows, 1):
            values = ", ".join(
                f"{col_name}={format_value(value, col_name, column_types[col_name])}"
                for col_name, value in zip(column_names, row)
            )
            output_lines.append(f"  {idx}: {values}")

    return "\n".join(output_lines)


class FakeNetwork:
    """
    Request sender serving canned responses by URL.

    A route is either a status code, a `(status, body)` tuple, or an exception
    instance to raise. Unrouted URLs answer 404.
    """

    def __init__(self, routes: tp.Optional[tp.Dict[str, tp.Any]] = None) -> None:
        self.routes: tp.Dict[str, tp.Any] = dict(routes or {})
        self.calls: tp.List[Request] = []

    def url(self, path: str) -> str:
        return ORIGIN + path

    def route(self, path: str, outcome: tp.Any) -> None:
        self.routes[self.url(path) if path.startswith("/") else path] = outcome

    def calls_to(self, path: str) -> int:
        url = self.url(path) if path.startswith("/") else path
        return sum(1 for call in self.calls if call.url == url)

    async def __call__(self, request: Request) -> Response:
        self.calls.append(request)
        outcome = self.routes.get(request.url, 404)
        if isinstance(outcome, BaseException):
            raise outcome
        if isinstance(outcome, tuple):
            status, body = outcome
        else:
            status, body = outcome, b""
        return Response(
            status_code=status,
            headers=Headers({"content-type": "text/html"}),
            stream=make_async_iterator([body]),
        )


class SpyStorage(AsyncInMemoryStorage):
    """In-memory storage that records every call made to it."""

    def __init__(self) -> None:
        super().__init__()
        self.operations: tp.List[tp.Tuple[str, str]] = []

    async def open(self, partition: str) -> None:
        self.operations.append(("open", partition))
        await super().open(partition)

    async def partitions(self) -> tp.List[str]:
        self.operations.append(("partitions", ""))
        return await super().partitions()

    async def match(self, partition: str, request: Request) -> tp.Optional[Entry]:
        self.operations.append(("match", partition))
        return await super().match(partition, request)

    async def put(self, partition: str, request: Request, response: Response) -> Entry:
        self.operations.append(("put", partition))
        return await super().put(partition, request, response)

    async def delete(self, partition: str) -> bool:
        self.operations.append(("delete", partition))
        return await super().delete(partition)


class FailingStorage(AsyncBaseStorage):
    """Storage whose every operation fails, as when the quota is exceeded."""

    async def open(self, partition: str) -> None:
        raise OSError("quota exceeded")

    async def partitions(self) -> tp.List[str]:
        raise OSError("quota exceeded")

    async def match(self, partition: str, request: Request) -> tp.Optional[Entry]:
        raise OSError("quota exceeded")

    async def put(self, partition: str, request: Request, response: Response) -> Entry:
        raise OSError("quota exceeded")

    async def delete(self, partition: str) -> bool:
        raise OSError("quota exceeded")


@pytest.fixture()
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture()
def spy_storage() -> SpyStorage:
    return SpyStorage()
