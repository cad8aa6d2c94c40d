from __future__ import annotations

import enum
import json
import logging
import typing as t

logger = logging.getLogger("offcache.lifecycle")

__all__ = ("LifecycleState", "MessageType", "parse_message")


class LifecycleState(str, enum.Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    """Installed and waiting for activation."""
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"
    """Install failed; the partitions of the previous version stay in place."""


class MessageType(str, enum.Enum):
    SKIP_WAITING = "SKIP_WAITING"
    CLEAR_CACHE = "CLEAR_CACHE"


def parse_message(message: t.Union[str, bytes, t.Mapping[str, t.Any]]) -> t.Optional[MessageType]:
    """
    Extract the control message type from a `{"type": ...}` payload.

    Accepts either a mapping or its JSON encoding. Returns None for anything
    that is not a known control message.
    """
    if isinstance(message, (str, bytes)):
        try:
            message = json.loads(message)
        except ValueError:
            logger.warning("Ignoring control message that is not valid JSON")
            return None

    if not isinstance(message, t.Mapping):
        logger.warning(f"Ignoring control message of type {type(message).__name__}")
        return None

    kind = message.get("type")
    try:
        return MessageType(kind)
    except (ValueError, TypeError):
        logger.warning(f"Ignoring unknown control message: {kind!r}")
        return None
