from __future__ import annotations

import enum

from offcache._config import ProxyConfig
from offcache._core.models import Request
from offcache._utils import is_same_origin, strip_query, url_path

__all__ = ("Policy", "RequestClassifier")


class Policy(str, enum.Enum):
    IGNORE = "IGNORE"
    """Not intercepted. The request goes to the network as if no proxy existed."""

    PASSTHROUGH = "PASSTHROUGH"
    """Live data. Always fetched from the network, never read from or written to a partition."""

    NETWORK_FIRST = "NETWORK_FIRST"
    """Versioned static assets. Network first, static partition as fallback."""

    CACHE_FIRST_REFRESH = "CACHE_FIRST_REFRESH"
    """Documents. Served from the dynamic partition and refreshed in the background when stale."""


class RequestClassifier:
    def __init__(self, config: ProxyConfig) -> None:
        self.config = config
        self._patterns = tuple(pattern.lower() for pattern in config.never_cache_patterns)
        self._extensions = tuple(extension.lower() for extension in config.static_extensions)

    def is_never_cache(self, url: str) -> bool:
        lowered = strip_query(url).lower()
        return any(pattern in lowered for pattern in self._patterns)

    def classify(self, request: Request) -> Policy:
        if request.method.upper() != "GET" or request.metadata.get("offcache_bypass"):
            return Policy.IGNORE

        if self.is_never_cache(request.url):
            return Policy.PASSTHROUGH

        if not is_same_origin(request.url, self.config.origin):
            return Policy.IGNORE

        if url_path(request.url).lower().endswith(self._extensions):
            return Policy.NETWORK_FIRST

        return Policy.CACHE_FIRST_REFRESH
