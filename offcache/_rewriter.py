from __future__ import annotations

import typing as t
from dataclasses import replace

from offcache._core.models import Response

__all__ = ("stamp_response", "read_captured_at")


def stamp_response(response: Response, header: str, captured_at: int) -> Response:
    """
    Return a copy of `response` whose `header` carries `captured_at` (epoch ms).

    Any previous value of the header is replaced. The body is shared with the
    original, so the response should already be buffered.
    """
    headers = response.headers.copy()
    headers.set(header, str(captured_at))
    stamped = replace(response, headers=headers, metadata=dict(response.metadata))
    if hasattr(response, "collected_body"):
        setattr(stamped, "collected_body", getattr(response, "collected_body"))
    return stamped


def read_captured_at(response: Response, header: str) -> t.Optional[int]:
    values = response.headers.get_list(header)
    if not values:
        return None
    try:
        return int(values[-1])
    except ValueError:
        return None
