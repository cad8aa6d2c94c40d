from __future__ import annotations

import logging
import ssl
import types
import typing as t
from typing import (
    AsyncIterable,
    AsyncIterator,
    Union,
    cast,
    overload,
)

import httpx
from httpx import RequestNotRead

from offcache._async_proxy import AsyncOfflineProxy
from offcache._config import ProxyConfig
from offcache._core._headers import Headers
from offcache._core._storages._async_base import AsyncBaseStorage
from offcache._core.models import Request, RequestMetadata, Response
from offcache._exceptions import InstallError
from offcache._utils import make_async_iterator

logger = logging.getLogger("offcache.integrations.httpx")


@overload
def _internal_to_httpx(
    value: Request,
) -> httpx.Request: ...
@overload
def _internal_to_httpx(
    value: Response,
) -> httpx.Response: ...
def _internal_to_httpx(
    value: Union[Request, Response],
) -> Union[httpx.Request, httpx.Response]:
    """
    Convert internal Request/Response to httpx.Request/httpx.Response.
    """
    if isinstance(value, Request):
        return httpx.Request(
            method=value.method,
            url=value.url,
            headers=value.headers.items_list(),
            stream=_IteratorStream(value._aiter_stream()),
            extensions=dict(value.metadata),
        )
    elif isinstance(value, Response):
        return httpx.Response(
            status_code=value.status_code,
            headers=value.headers.items_list(),
            stream=_IteratorStream(value._aiter_stream()),
            extensions=dict(value.metadata),
        )


@overload
def _httpx_to_internal(
    value: httpx.Request,
) -> Request: ...
@overload
def _httpx_to_internal(
    value: httpx.Response,
) -> Response: ...
def _httpx_to_internal(
    value: Union[httpx.Request, httpx.Response],
) -> Union[Request, Response]:
    """
    Convert httpx.Request/httpx.Response to internal Request/Response.

    Response bodies stay lazy: the raw bytes are pulled from the network only
    when the proxy reads or clones the response, or when the caller streams it.
    """
    headers = Headers.from_items(
        [(key, val) for key, val in value.headers.multi_items() if key.lower() != "transfer-encoding"]
    )
    if isinstance(value, httpx.Request):
        metadata = RequestMetadata()
        if "offcache_bypass" in value.extensions:
            metadata["offcache_bypass"] = bool(value.extensions["offcache_bypass"])

        try:
            stream = make_async_iterator([value.content])
        except RequestNotRead:
            stream = cast(AsyncIterator[bytes], value.stream)

        return Request(
            method=value.method,
            url=str(value.url),
            headers=headers,
            stream=stream,
            metadata=metadata,
        )
    elif isinstance(value, httpx.Response):
        if value.is_stream_consumed:
            response_stream = make_async_iterator([value.content])
            if "content-encoding" in value.headers:
                # The raw bytes are gone, so keep the decoded content and drop
                # Content-Encoding so the response can be rebuilt properly.
                headers = Headers.from_items(
                    [
                        (key, val)
                        for key, val in headers.items_list()
                        if key not in ("content-encoding", "content-length")
                    ]
                )
                headers.set("content-length", str(len(value.content)))
        else:
            response_stream = value.aiter_raw()

        return Response(
            status_code=value.status_code,
            headers=headers,
            stream=response_stream,
            metadata={},
        )


class _IteratorStream(httpx.AsyncByteStream):
    def __init__(self, iterator: AsyncIterator[bytes]) -> None:
        self.iterator = iterator

    async def __aiter__(self) -> AsyncIterator[bytes]:
        assert isinstance(self.iterator, (AsyncIterator, AsyncIterable))
        async for chunk in self.iterator:
            yield chunk


class AsyncOfflineTransport(httpx.AsyncBaseTransport):
    """
    An httpx transport that routes every request through an `AsyncOfflineProxy`.

    Enter the transport (or the client that owns it) with ``async with`` so
    stale documents can be refreshed in the background. When `install_on_enter`
    is set, entering also runs the install step and, unless configured
    otherwise, the activation that follows it.
    """

    def __init__(
        self,
        next_transport: httpx.AsyncBaseTransport,
        storage: AsyncBaseStorage | None = None,
        config: ProxyConfig | None = None,
        install_on_enter: bool = False,
    ) -> None:
        self.next_transport = next_transport
        self.install_on_enter = install_on_enter
        self.proxy: AsyncOfflineProxy = AsyncOfflineProxy(
            request_sender=self.request_sender,
            storage=storage,
            config=config,
        )
        self.storage = self.proxy.storage

    async def __aenter__(self) -> "AsyncOfflineTransport":
        await self.proxy.__aenter__()
        if self.install_on_enter:
            try:
                await self.proxy.on_install()
            except InstallError:
                logger.warning("Continuing with the partitions of the previous version")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None = None,
        exc_value: BaseException | None = None,
        traceback: types.TracebackType | None = None,
    ) -> None:
        try:
            await self.proxy.__aexit__(exc_type, exc_value, traceback)
        finally:
            await self.aclose()

    async def handle_async_request(
        self,
        request: httpx.Request,
    ) -> httpx.Response:
        internal_request = _httpx_to_internal(request)
        internal_response = await self.proxy.handle(internal_request)
        return _internal_to_httpx(internal_response)

    async def aclose(self) -> None:
        await self.next_transport.aclose()
        await self.storage.close()
        await super().aclose()

    async def request_sender(self, request: Request) -> Response:
        httpx_request = _internal_to_httpx(request)
        httpx_response = await self.next_transport.handle_async_request(httpx_request)
        return _httpx_to_internal(httpx_response)


class AsyncOfflineClient(httpx.AsyncClient):
    """
    An `httpx.AsyncClient` whose requests go through an offline-first proxy.

    Accepts the regular client arguments plus `storage`, `config` and
    `install_on_enter` (defaults to True). When no config is given and the
    client has a `base_url`, the base URL becomes the proxy's origin.
    """

    def __init__(self, *args: t.Any, **kwargs: t.Any) -> None:
        self.storage: AsyncBaseStorage | None = kwargs.pop("storage", None)
        self.config: ProxyConfig | None = kwargs.pop("config", None)
        self.install_on_enter: bool = kwargs.pop("install_on_enter", True)
        super().__init__(*args, **kwargs)

    def _offline_transport(self, **network_options: t.Any) -> AsyncOfflineTransport:
        config = self.config
        if config is None and str(self.base_url):
            config = ProxyConfig(origin=str(self.base_url))
        return AsyncOfflineTransport(
            next_transport=httpx.AsyncHTTPTransport(**network_options),
            storage=self.storage,
            config=config,
            install_on_enter=self.install_on_enter,
        )

    def _init_transport(
        self,
        verify: ssl.SSLContext | str | bool = True,
        cert: t.Union[str, t.Tuple[str, str], t.Tuple[str, str, str], None] = None,
        trust_env: bool = True,
        http1: bool = True,
        http2: bool = False,
        limits: httpx.Limits = httpx.Limits(max_connections=100, max_keepalive_connections=20),
        transport: httpx.AsyncBaseTransport | None = None,
        **kwargs: t.Any,
    ) -> httpx.AsyncBaseTransport:
        if transport is not None:
            return transport
        return self._offline_transport(
            verify=verify, cert=cert, trust_env=trust_env, http1=http1, http2=http2, limits=limits
        )

    def _init_proxy_transport(
        self,
        proxy: httpx.Proxy,
        verify: ssl.SSLContext | str | bool = True,
        cert: t.Union[str, t.Tuple[str, str], t.Tuple[str, str, str], None] = None,
        trust_env: bool = True,
        http1: bool = True,
        http2: bool = False,
        limits: httpx.Limits = httpx.Limits(max_connections=100, max_keepalive_connections=20),
        **kwargs: t.Any,
    ) -> httpx.AsyncBaseTransport:
        return self._offline_transport(
            verify=verify, cert=cert, trust_env=trust_env, http1=http1, http2=http2, limits=limits, proxy=proxy
        )
