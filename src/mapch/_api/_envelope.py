"""Unwrapping of the list envelopes the backend has used over time."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

#: Object keys that may wrap a list, tried in order.
LIST_ENVELOPE_KEYS: tuple[str, ...] = ("posts", "data", "items")


def unwrap_list(payload: Any, *, keys: Sequence[str] = LIST_ENVELOPE_KEYS, nested: str | None = "spot") -> list[Any] | None:
    """Return the list carried by *payload*, or ``None`` if none is recognized.

    Accepted shapes: a bare array, ``{key: [...]}`` for each of *keys*, and
    ``{nested: {key: [...]}}`` (e.g. ``{"spot": {"posts": [...]}}``).
    """
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return None
    for key in keys:
        value = payload.get(key)
        if isinstance(value, list):
            return value
    if nested is not None:
        inner = payload.get(nested)
        if isinstance(inner, dict):
            return unwrap_list(inner, keys=keys, nested=None)
    return None
