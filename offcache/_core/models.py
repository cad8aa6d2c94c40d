from __future__ import annotations

import time
from dataclasses import dataclass, field, replace
from typing import (
    Any,
    AsyncIterable,
    AsyncIterator,
    Mapping,
    TypedDict,
    cast,
)

from offcache._core._headers import Headers
from offcache._utils import make_async_iterator, normalize_url


class RequestMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "offcache_" to avoid collisions with user data
    offcache_bypass: bool | None
    """When True, the proxy sends the request straight to the network."""


@dataclass
class Request:
    method: str
    url: str
    headers: Headers = field(default_factory=Headers)
    stream: AsyncIterator[bytes] = field(default_factory=lambda: make_async_iterator([]))
    metadata: RequestMetadata | Mapping[str, Any] = field(default_factory=dict)

    @property
    def cache_key(self) -> str:
        return f"{self.method.upper()} {normalize_url(self.url)}"

    async def _aiter_stream(self) -> AsyncIterator[bytes]:
        if hasattr(self, "collected_body"):
            yield getattr(self, "collected_body")
            return
        if isinstance(self.stream, (AsyncIterator, AsyncIterable)):
            async for chunk in self.stream:
                yield chunk
            return
        raise TypeError("Request stream is not an AsyncIterator")

    async def aread(self) -> bytes:
        """
        Asynchronously reads the entire request body without consuming the stream.
        """
        if hasattr(self, "collected_body"):
            return cast(bytes, getattr(self, "collected_body"))

        collected = b"".join([chunk async for chunk in self._aiter_stream()])
        setattr(self, "collected_body", collected)
        self.stream = make_async_iterator([collected])
        return collected


class ResponseMetadata(TypedDict, total=False):
    # All the names here should be prefixed with "offcache_" to avoid collisions with user data
    offcache_policy: str
    """Name of the policy the request was routed to."""

    offcache_from_cache: bool
    """Indicates whether the response was served from a partition."""

    offcache_stored: bool
    """Indicates whether the response was written into a partition."""

    offcache_captured_at: int | None
    """Capture time in epoch milliseconds, for responses kept in the dynamic partition."""

    offcache_partition: str | None
    """Partition the response was read from or written to."""


@dataclass
class Response:
    status_code: int
    headers: Headers = field(default_factory=Headers)
    stream: AsyncIterator[bytes] = field(default_factory=lambda: make_async_iterator([]))
    metadata: ResponseMetadata | Mapping[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    async def _aiter_stream(self) -> AsyncIterator[bytes]:
        if hasattr(self, "collected_body"):
            yield getattr(self, "collected_body")
            return
        if isinstance(self.stream, (AsyncIterator, AsyncIterable)):
            async for chunk in self.stream:
                yield chunk
        else:
            raise TypeError("Response stream is not an AsyncIterator")

    async def aread(self) -> bytes:
        """
        Asynchronously reads the entire response body without consuming the stream.
        """
        if hasattr(self, "collected_body"):
            return cast(bytes, getattr(self, "collected_body"))

        collected = b"".join([chunk async for chunk in self._aiter_stream()])
        setattr(self, "collected_body", collected)
        self.stream = make_async_iterator([collected])
        return collected

    async def clone(self) -> "Response":
        """
        Buffer the body and return an independent copy of this response.

        Both the original and the copy can be read afterwards.
        """
        body = await self.aread()
        cloned = replace(
            self,
            headers=self.headers.copy(),
            stream=make_async_iterator([body]),
            metadata=dict(self.metadata),
        )
        setattr(cloned, "collected_body", body)
        return cloned


@dataclass
class EntryMeta:
    created_at: float = field(default_factory=time.time)


@dataclass
class Entry:
    partition: str
    cache_key: str
    request: Request
    response: Response
    meta: EntryMeta = field(default_factory=EntryMeta)
