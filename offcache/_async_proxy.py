from __future__ import annotations

import logging
import types
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Tuple, Union

import anyio
from anyio.abc import TaskGroup

from offcache._classifier import Policy, RequestClassifier
from offcache._config import ProxyConfig
from offcache._core._storages._async_base import AsyncBaseStorage
from offcache._core._storages._async_memory import AsyncInMemoryStorage
from offcache._core.models import Entry, Request, Response, ResponseMetadata
from offcache._exceptions import InstallError
from offcache._lifecycle import LifecycleState, MessageType, parse_message
from offcache._rewriter import read_captured_at, stamp_response
from offcache._utils import is_same_origin, now_ms, resolve_url

logger = logging.getLogger("offcache.proxy")
lifecycle_logger = logging.getLogger("offcache.lifecycle")

__all__ = ("AsyncOfflineProxy", "RefreshHandle")


class RefreshHandle:
    """
    Tracks one background refresh of a dynamic entry.

    Awaiting `wait()` is optional; the refresh runs to completion either way.
    """

    def __init__(self, request: Request) -> None:
        self.request = request
        self.updated = False
        self.error: Optional[BaseException] = None
        self._done = anyio.Event()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    async def wait(self) -> bool:
        """Wait for the refresh to finish and return whether the entry was overwritten."""
        await self._done.wait()
        return self.updated


class AsyncOfflineProxy:
    """
    An offline-first caching proxy.

    Requests are routed by a `RequestClassifier` to one of the caching policies
    and the network is reached through a user-provided callable, so the proxy
    works with any HTTP client.

    Background refreshes run inside a task group owned by the proxy. A proxy that
    was not entered with ``async with`` still serves stale documents but does not
    refresh them.

    Args:
        request_sender: Callable that sends a request to the network.
        storage: Storage backend holding the partitions. Defaults to AsyncInMemoryStorage.
        config: Partition names, URL patterns and timing. Defaults to ProxyConfig().
    """

    def __init__(
        self,
        request_sender: Callable[[Request], Awaitable[Response]],
        storage: AsyncBaseStorage | None = None,
        config: ProxyConfig | None = None,
    ) -> None:
        self.send_request = request_sender
        self.storage = storage if storage is not None else AsyncInMemoryStorage()
        self.config = config if config is not None else ProxyConfig()
        self.classifier = RequestClassifier(self.config)
        self.state = LifecycleState.PARSED
        self.clients_claimed = False
        self.skip_waiting_requested = False
        self._task_group: Optional[TaskGroup] = None
        self._pending: List[RefreshHandle] = []

    async def __aenter__(self) -> "AsyncOfflineProxy":
        self._task_group = anyio.create_task_group()
        await self._task_group.__aenter__()
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]] = None,
        exc_value: Optional[BaseException] = None,
        traceback: Optional[types.TracebackType] = None,
    ) -> Optional[bool]:
        assert self._task_group is not None
        try:
            return await self._task_group.__aexit__(exc_type, exc_value, traceback)
        finally:
            self._task_group = None

    # Fetch handling

    async def handle(self, request: Request) -> Response:
        response, _ = await self.handle_with_refresh(request)
        return response

    async def handle_with_refresh(self, request: Request) -> Tuple[Response, Optional[RefreshHandle]]:
        """
        Route a request through its caching policy.

        Returns the response together with the background refresh it started, if any.
        """
        policy = self.classifier.classify(request)
        logger.debug(f"Handling request with policy: {policy.value}")

        if policy is Policy.NETWORK_FIRST:
            return await self._handle_network_first(request), None
        if policy is Policy.CACHE_FIRST_REFRESH:
            return await self._handle_cache_first(request)

        response = await self.send_request(request)
        response.metadata.update(  # type: ignore
            ResponseMetadata(
                offcache_policy=policy.value,
                offcache_from_cache=False,
                offcache_stored=False,
                offcache_captured_at=None,
                offcache_partition=None,
            )
        )
        return response, None

    async def wait_for_refreshes(self) -> None:
        """Wait until every background refresh started so far has finished."""
        while self._pending:
            await self._pending[0].wait()

    async def _handle_network_first(self, request: Request) -> Response:
        partition = self.config.static_name
        try:
            response = await self.send_request(request)
        except Exception:
            entry = await self._match(partition, request)
            if entry is None:
                logger.debug("Network failed and no cached static asset is available")
                raise
            logger.debug("Network failed, serving static asset from cache")
            return self._from_cache(entry, Policy.NETWORK_FIRST)

        if not response.ok:
            entry = await self._match(partition, request)
            if entry is not None:
                await response.aread()
                logger.debug(f"Network returned {response.status_code}, serving static asset from cache")
                return self._from_cache(entry, Policy.NETWORK_FIRST)
            return self._annotate(response, Policy.NETWORK_FIRST, stored=False, partition=None)

        stored = await self._put(partition, request, await response.clone())
        return self._annotate(response, Policy.NETWORK_FIRST, stored=stored, partition=partition if stored else None)

    async def _handle_cache_first(self, request: Request) -> Tuple[Response, Optional[RefreshHandle]]:
        partition = self.config.dynamic_name
        entry = await self._match(partition, request)

        if entry is not None:
            captured_at = read_captured_at(entry.response, self.config.capture_header)
            handle: Optional[RefreshHandle] = None
            if self._is_stale(captured_at):
                logger.debug("Cached document is stale, refreshing in background")
                handle = self._schedule_refresh(request)
            else:
                logger.debug("Cached document is fresh")
            return self._from_cache(entry, Policy.CACHE_FIRST_REFRESH, captured_at=captured_at), handle

        logger.debug("No cached document, fetching from network")
        response = await self.send_request(request)
        if not response.ok or not is_same_origin(request.url, self.config.origin):
            return self._annotate(response, Policy.CACHE_FIRST_REFRESH, stored=False, partition=None), None

        captured_at = now_ms()
        stamped = stamp_response(await response.clone(), self.config.capture_header, captured_at)
        stored = await self._put(partition, request, stamped)
        return (
            self._annotate(
                response,
                Policy.CACHE_FIRST_REFRESH,
                stored=stored,
                partition=partition if stored else None,
                captured_at=captured_at if stored else None,
            ),
            None,
        )

    def _is_stale(self, captured_at: Optional[int]) -> bool:
        if captured_at is None:
            return True
        return now_ms() - captured_at > self.config.staleness_threshold * 1000

    def _schedule_refresh(self, request: Request) -> Optional[RefreshHandle]:
        if self._task_group is None:
            logger.warning(
                f"{type(self).__name__} was not entered with `async with`, serving stale document without refresh"
            )
            return None
        refresh_request = Request(method=request.method, url=request.url, headers=request.headers.copy())
        handle = RefreshHandle(refresh_request)
        self._pending.append(handle)
        self._task_group.start_soon(self._refresh, handle)
        return handle

    async def _refresh(self, handle: RefreshHandle) -> None:
        request = handle.request
        try:
            response = await self.send_request(request)
            if not response.ok:
                await response.aread()
                logger.debug(f"Background refresh got status {response.status_code}, keeping cached document")
                return
            stamped = stamp_response(await response.clone(), self.config.capture_header, now_ms())
            await self.storage.put(self.config.dynamic_name, request, stamped)
            handle.updated = True
            logger.debug("Background refresh stored a new document")
        except Exception as exc:
            handle.error = exc
            logger.warning(f"Background refresh of {request.url} failed: {exc!r}")
        finally:
            self._pending.remove(handle)
            handle._done.set()

    async def _match(self, partition: str, request: Request) -> Optional[Entry]:
        try:
            return await self.storage.match(partition, request)
        except Exception as exc:
            logger.warning(f"Could not read from partition {partition}: {exc!r}")
            return None

    async def _put(self, partition: str, request: Request, response: Response) -> bool:
        try:
            await self.storage.put(partition, request, response)
        except Exception as exc:
            logger.warning(f"Could not write to partition {partition}: {exc!r}")
            return False
        logger.debug(f"Stored response in {partition}")
        return True

    def _from_cache(self, entry: Entry, policy: Policy, captured_at: Optional[int] = None) -> Response:
        logger.debug(f"Serving response from {entry.partition}")
        entry.response.metadata.update(  # type: ignore
            ResponseMetadata(
                offcache_policy=policy.value,
                offcache_from_cache=True,
                offcache_stored=False,
                offcache_captured_at=captured_at,
                offcache_partition=entry.partition,
            )
        )
        return entry.response

    def _annotate(
        self,
        response: Response,
        policy: Policy,
        *,
        stored: bool,
        partition: Optional[str],
        captured_at: Optional[int] = None,
    ) -> Response:
        response.metadata.update(  # type: ignore
            ResponseMetadata(
                offcache_policy=policy.value,
                offcache_from_cache=False,
                offcache_stored=stored,
                offcache_captured_at=captured_at,
                offcache_partition=partition,
            )
        )
        return response

    # Lifecycle

    async def on_install(self) -> None:
        """
        Precache the bootstrap assets.

        Every asset must be fetched successfully before anything is written, and
        a precache partition created by a failed write is removed again. On any
        failure `InstallError` is raised and the proxy becomes redundant.
        """
        self.state = LifecycleState.INSTALLING
        lifecycle_logger.debug(f"Installing version {self.config.version}")

        fetched: List[Tuple[Request, Response]] = []
        try:
            for path in self.config.bootstrap_assets:
                url = resolve_url(self.config.origin, path)
                request = Request(method="GET", url=url)
                try:
                    response = await self.send_request(request)
                except Exception as exc:
                    raise InstallError(url, repr(exc)) from exc
                if not response.ok:
                    raise InstallError(url, f"status {response.status_code}")
                await response.aread()
                fetched.append((request, response))

            await self._precache(fetched)
        except InstallError as exc:
            self.state = LifecycleState.REDUNDANT
            lifecycle_logger.warning(f"Install failed: {exc}")
            raise

        self.state = LifecycleState.INSTALLED
        lifecycle_logger.debug(f"Precached {len(fetched)} assets")
        if self.config.skip_waiting or self.skip_waiting_requested:
            await self.skip_waiting()

    async def _precache(self, fetched: List[Tuple[Request, Response]]) -> None:
        partition = self.config.precache_name
        created = False
        target = partition
        try:
            created = partition not in await self.storage.partitions()
            for request, response in fetched:
                target = request.url
                await self.storage.open(partition)
                await self.storage.put(partition, request, response)
        except Exception as exc:
            if created:
                await self._delete_partitions(lambda name: name == partition)
            raise InstallError(target, repr(exc)) from exc

    async def skip_waiting(self) -> None:
        """
        Activate as soon as the install has finished.

        A request made while installing is remembered and honored when the install completes.
        """
        self.skip_waiting_requested = True
        if self.state is LifecycleState.INSTALLED:
            await self.on_activate()

    async def on_activate(self) -> List[str]:
        """
        Delete every partition that does not belong to the current version and claim open pages.

        Returns the names of the partitions that were deleted.
        """
        if self.state is LifecycleState.REDUNDANT:
            raise RuntimeError("Cannot activate after a failed install")

        self.state = LifecycleState.ACTIVATING
        allowed = self.config.allowed_partitions
        deleted = await self._delete_partitions(lambda name: name not in allowed)

        self.state = LifecycleState.ACTIVATED
        self.clients_claimed = True
        lifecycle_logger.debug(f"Activated version {self.config.version}")
        return deleted

    async def on_message(self, message: Union[str, bytes, Mapping[str, Any]]) -> None:
        """
        Handle a control message from the foreground application.

        Nothing is sent back to the sender; unknown messages are logged and ignored.
        """
        kind = parse_message(message)
        if kind is MessageType.SKIP_WAITING:
            lifecycle_logger.debug("Received SKIP_WAITING")
            await self.skip_waiting()
        elif kind is MessageType.CLEAR_CACHE:
            lifecycle_logger.debug("Received CLEAR_CACHE")
            await self.clear_all()

    async def clear_all(self) -> List[str]:
        """Delete every partition regardless of its name."""
        return await self._delete_partitions(lambda name: True)

    async def _delete_partitions(self, predicate: Callable[[str], bool]) -> List[str]:
        try:
            names = await self.storage.partitions()
        except Exception as exc:
            lifecycle_logger.warning(f"Could not list partitions: {exc!r}")
            return []

        deleted: List[str] = []
        for name in names:
            if not predicate(name):
                continue
            try:
                if await self.storage.delete(name):
                    deleted.append(name)
                    lifecycle_logger.debug(f"Deleted partition {name}")
            except Exception as exc:
                lifecycle_logger.warning(f"Could not delete partition {name}: {exc!r}")
        return deleted
