from __future__ import annotations

import time
import typing as tp

from offcache._core._storages._async_base import AsyncBaseStorage
from offcache._core.models import Entry, EntryMeta, Request, Response


class AsyncInMemoryStorage(AsyncBaseStorage):
    """
    Keeps partitions in process memory. Contents are lost when the process exits.
    """

    def __init__(self) -> None:
        self._partitions: tp.Dict[str, tp.Dict[str, tp.Tuple[Entry, bytes]]] = {}

    async def open(self, partition: str) -> None:
        self._partitions.setdefault(partition, {})

    async def partitions(self) -> tp.List[str]:
        return list(self._partitions)

    async def match(self, partition: str, request: Request) -> tp.Optional[Entry]:
        stored = self._partitions.get(partition, {}).get(request.cache_key)
        if stored is None:
            return None
        entry, body = stored
        response = Response(status_code=entry.response.status_code, headers=entry.response.headers.copy())
        setattr(response, "collected_body", body)
        return Entry(
            partition=entry.partition,
            cache_key=entry.cache_key,
            request=Request(method=entry.request.method, url=entry.request.url, headers=entry.request.headers.copy()),
            response=response,
            meta=EntryMeta(created_at=entry.meta.created_at),
        )

    async def put(self, partition: str, request: Request, response: Response) -> Entry:
        body = await response.aread()
        stored_request = Request(method=request.method, url=request.url, headers=request.headers.copy())
        stored_response = Response(status_code=response.status_code, headers=response.headers.copy())
        setattr(stored_response, "collected_body", body)
        entry = Entry(
            partition=partition,
            cache_key=request.cache_key,
            request=stored_request,
            response=stored_response,
            meta=EntryMeta(created_at=time.time()),
        )
        self._partitions.setdefault(partition, {})[entry.cache_key] = (entry, body)
        return entry

    async def delete(self, partition: str) -> bool:
        return self._partitions.pop(partition, None) is not None
