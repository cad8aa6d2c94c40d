try:
    import httpx  # noqa: F401
except ImportError as e:
    raise ImportError(
        "httpx is required to use offcache.httpx module. Please install it, e.g., 'pip install httpx'."
    ) from e


from ._async_httpx import AsyncOfflineClient as AsyncOfflineClient, AsyncOfflineTransport as AsyncOfflineTransport

__all__ = ("AsyncOfflineClient", "AsyncOfflineTransport")
