from __future__ import annotations

import time
import typing as tp
from pathlib import Path
from typing import AsyncIterator, Iterable
from urllib.parse import urljoin, urlsplit, urlunsplit

DEFAULT_PORTS = {"http": 80, "https": 443}


def now_ms() -> int:
    """Current wall-clock time as integer milliseconds since the epoch."""
    return int(time.time() * 1000)


async def make_async_iterator(
    iterable: Iterable[bytes],
) -> AsyncIterator[bytes]:
    for item in iterable:
        yield item


def normalize_url(url: str) -> str:
    """
    Drop the fragment and lowercase the scheme and host of a URL.

    Two requests that differ only in their fragment address the same resource,
    so they must share a cache key.

    Examples:
        >>> normalize_url("HTTPS://Example.com/index.html#top")
        'https://example.com/index.html'
    """
    parts = urlsplit(url)
    return urlunsplit((parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", parts.query, ""))


def origin_of(url: str) -> tp.Tuple[str, str, tp.Optional[int]]:
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    port = parts.port if parts.port is not None else DEFAULT_PORTS.get(scheme)
    return scheme, (parts.hostname or "").lower(), port


def is_same_origin(url: str, origin: tp.Optional[str]) -> bool:
    """
    Check whether `url` shares scheme, host and effective port with `origin`.

    A missing origin means the proxy serves a single site, so every URL counts
    as same-origin.
    """
    if origin is None:
        return True
    return origin_of(url) == origin_of(origin)


def url_path(url: str) -> str:
    return urlsplit(url).path or "/"


def strip_query(url: str) -> str:
    """Scheme, host and path of a URL, without its query string and fragment."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def resolve_url(origin: tp.Optional[str], path: str) -> str:
    if origin is None:
        return path
    return urljoin(origin, path)


def ensure_cache_dict(base_path: Path | None = None) -> Path:
    _base_path = base_path if base_path is not None else Path(".cache/offcache")
    _gitignore_file = _base_path / ".gitignore"

    _base_path.mkdir(parents=True, exist_ok=True)

    if not _gitignore_file.is_file():
        with open(_gitignore_file, "w", encoding="utf-8") as f:
            f.write("# Automatically created by offcache\n*")
    return _base_path
