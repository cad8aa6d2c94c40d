from offcache._core._storages._async_base import AsyncBaseStorage as AsyncBaseStorage
from offcache._core._storages._async_memory import AsyncInMemoryStorage as AsyncInMemoryStorage
from offcache._core._storages._async_sqlite import AsyncSqliteStorage as AsyncSqliteStorage

__all__ = ("AsyncBaseStorage", "AsyncInMemoryStorage", "AsyncSqliteStorage")
