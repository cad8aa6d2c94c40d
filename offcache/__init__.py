from offcache._core import (
    AsyncBaseStorage as AsyncBaseStorage,
    AsyncInMemoryStorage as AsyncInMemoryStorage,
    AsyncSqliteStorage as AsyncSqliteStorage,
    Entry as Entry,
    EntryMeta as EntryMeta,
    Headers as Headers,
    Request as Request,
    RequestMetadata as RequestMetadata,
    Response as Response,
    ResponseMetadata as ResponseMetadata,
)
from offcache._classifier import Policy as Policy, RequestClassifier as RequestClassifier
from offcache._config import ProxyConfig as ProxyConfig
from offcache._exceptions import (
    ConfigurationError as ConfigurationError,
    InstallError as InstallError,
    OffcacheError as OffcacheError,
    StorageError as StorageError,
)
from offcache._lifecycle import LifecycleState as LifecycleState, MessageType as MessageType
from offcache._rewriter import read_captured_at as read_captured_at, stamp_response as stamp_response
from offcache._async_proxy import AsyncOfflineProxy as AsyncOfflineProxy, RefreshHandle as RefreshHandle

__version__ = "0.1.0"

__all__ = (
    ## Proxy
    "AsyncOfflineProxy",
    "RefreshHandle",
    "ProxyConfig",
    ## Classification
    "Policy",
    "RequestClassifier",
    ## Lifecycle
    "LifecycleState",
    "MessageType",
    ## Rewriting
    "stamp_response",
    "read_captured_at",
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
    ## Errors
    "OffcacheError",
    "InstallError",
    "StorageError",
    "ConfigurationError",
)
