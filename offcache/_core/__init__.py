from offcache._core._headers import Headers as Headers
from offcache._core._storages import (
    AsyncBaseStorage as AsyncBaseStorage,
    AsyncInMemoryStorage as AsyncInMemoryStorage,
    AsyncSqliteStorage as AsyncSqliteStorage,
)
from offcache._core.models import (
    Entry as Entry,
    EntryMeta as EntryMeta,
    Request as Request,
    RequestMetadata as RequestMetadata,
    Response as Response,
    ResponseMetadata as ResponseMetadata,
)

__all__ = (
    ## Models
    "Request",
    "Response",
    "Entry",
    "EntryMeta",
    "RequestMetadata",
    "ResponseMetadata",
    ## Headers
    "Headers",
    ## Storages
    "AsyncBaseStorage",
    "AsyncInMemoryStorage",
    "AsyncSqliteStorage",
)
