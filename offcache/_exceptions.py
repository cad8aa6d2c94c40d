__all__ = ("OffcacheError", "InstallError", "StorageError", "ConfigurationError")


class OffcacheError(Exception): ...


class InstallError(OffcacheError):
    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Could not precache {url!r}: {reason}")
        self.url = url
        self.reason = reason


class StorageError(OffcacheError): ...


class ConfigurationError(OffcacheError): ...
