from __future__ import annotations

import typing as t
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml

from offcache._exceptions import ConfigurationError

__all__ = ("ProxyConfig",)

PRECACHE = "precache"
STATIC = "static"
DYNAMIC = "dynamic"


@dataclass(frozen=True)
class ProxyConfig:
    """
    Settings for an offline proxy.

    Partition names embed `version`; bumping it makes the next activation evict
    every partition written by earlier versions.
    """

    prefix: str = "offcache"
    version: int = 1
    origin: t.Optional[str] = None
    """Scheme, host and port of the site being cached, e.g. ``https://app.example.com``."""

    staleness_threshold: float = 300.0
    """Seconds after which a dynamic entry is refreshed in the background."""

    never_cache_patterns: t.Tuple[str, ...] = ("/api/", "auth", "realtime", "supabase")
    """Case-insensitive substrings of a URL's scheme, host or path that always go to the network."""

    static_extensions: t.Tuple[str, ...] = (".js", ".css")
    bootstrap_assets: t.Tuple[str, ...] = ("/", "/index.html", "/favicon.svg", "/favicon.ico")
    skip_waiting: bool = True
    """Activate right after a successful install instead of waiting for a message."""

    capture_header: str = field(default="X-Offcache-Captured-At")

    def __post_init__(self) -> None:
        if not self.prefix:
            raise ConfigurationError("prefix must not be empty")
        if self.version < 0:
            raise ConfigurationError(f"version must be non-negative, got {self.version}")
        if self.staleness_threshold < 0:
            raise ConfigurationError(f"staleness_threshold must be non-negative, got {self.staleness_threshold}")
        for extension in self.static_extensions:
            if not extension.startswith("."):
                raise ConfigurationError(f"static extension {extension!r} must start with a dot")

    def partition_name(self, role: str) -> str:
        return f"{self.prefix}-{role}-v{self.version}"

    @property
    def precache_name(self) -> str:
        return self.partition_name(PRECACHE)

    @property
    def static_name(self) -> str:
        return self.partition_name(STATIC)

    @property
    def dynamic_name(self) -> str:
        return self.partition_name(DYNAMIC)

    @property
    def allowed_partitions(self) -> t.FrozenSet[str]:
        return frozenset((self.precache_name, self.static_name, self.dynamic_name))

    @classmethod
    def from_mapping(cls, data: t.Mapping[str, t.Any]) -> "ProxyConfig":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        values = dict(data)
        for key in ("never_cache_patterns", "static_extensions", "bootstrap_assets"):
            if key in values:
                if isinstance(values[key], str) or not isinstance(values[key], (list, tuple)):
                    raise ConfigurationError(f"{key} must be a list of strings")
                values[key] = tuple(values[key])
        try:
            return cls(**values)
        except TypeError as exc:
            raise ConfigurationError(str(exc)) from exc

    @classmethod
    def from_yaml(cls, path: t.Union[str, Path]) -> "ProxyConfig":
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as exc:
            raise ConfigurationError(f"Could not load configuration from {path}") from exc

        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration in {path} must be a mapping")
        return cls.from_mapping(data)
