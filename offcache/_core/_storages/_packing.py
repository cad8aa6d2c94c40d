from __future__ import annotations

from typing import Any, Mapping, Optional

import msgpack
from typing_extensions import cast

from offcache._core._headers import Headers
from offcache._core.models import Entry, EntryMeta, Request, Response


def filter_out_offcache_metadata(data: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if not k.startswith("offcache_")}


def pack(value: Entry, /, body: bytes) -> bytes:
    return cast(
        bytes,
        msgpack.packb(
            {
                "partition": value.partition,
                "cache_key": value.cache_key,
                "request": {
                    "method": value.request.method,
                    "url": value.request.url,
                    "headers": value.request.headers._headers,
                    "extra": filter_out_offcache_metadata(value.request.metadata),
                },
                "response": {
                    "status_code": value.response.status_code,
                    "headers": value.response.headers._headers,
                    "extra": filter_out_offcache_metadata(value.response.metadata),
                    "body": body,
                },
                "meta": {
                    "created_at": value.meta.created_at,
                },
            }
        ),
    )


def unpack(value: Optional[bytes], /) -> Optional[Entry]:
    if value is None:
        return None
    data = msgpack.unpackb(value)
    response = Response(
        status_code=data["response"]["status_code"],
        headers=Headers(data["response"]["headers"]),
        metadata=data["response"]["extra"],
    )
    setattr(response, "collected_body", data["response"]["body"])
    return Entry(
        partition=data["partition"],
        cache_key=data["cache_key"],
        request=Request(
            method=data["request"]["method"],
            url=data["request"]["url"],
            headers=Headers(data["request"]["headers"]),
            metadata=data["request"]["extra"],
        ),
        response=response,
        meta=EntryMeta(created_at=data["meta"]["created_at"]),
    )
