"""Persisted photo-reference cache.

The last-known photo list of a spot is kept under a per-spot key and used
as a fallback until the network confirms the latest list.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import Any, Protocol
from urllib.parse import urljoin

from mapch._constants import PHOTO_CACHE_KEY_PREFIX
from mapch.state.bus import EventBus, Subscription
from mapch.state.events import SpotPhotosUpdated


class KeyValueStore(Protocol):
    def get(self, key: str) -> Any:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    """Dict-backed :class:`KeyValueStore`."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def get(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


def cleaned_unique(paths: Iterable[str]) -> list[str]:
    """Trim, drop empties and de-duplicate while keeping first-seen order."""
    seen: set[str] = set()
    result: list[str] = []
    for path in paths:
        text = path.strip()
        if not text or text in seen:
            continue
        seen.add(text)
        result.append(text)
    return result


def resolve_photo_url(path: str, image_base_url: str) -> str | None:
    """Absolute URL for *path*; relative paths resolve against the image bucket."""
    text = path.strip().replace("\\", "/")
    if not text:
        return None
    if "://" in text:
        return text
    return urljoin(image_base_url.rstrip("/") + "/", text.lstrip("/"))


class PhotoCache:
    """Per-spot photo path cache on top of a :class:`KeyValueStore`."""

    def __init__(self, store: KeyValueStore, *, bus: EventBus | None = None) -> None:
        self._store = store
        self._subscription: Subscription | None = None
        if bus is not None:
            self._subscription = bus.subscribe(SpotPhotosUpdated, self._on_photos_updated)

    @staticmethod
    def key_for(spot_id: int) -> str:
        return f"{PHOTO_CACHE_KEY_PREFIX}{spot_id}"

    def get(self, spot_id: int) -> list[str] | None:
        value = self._store.get(self.key_for(spot_id))
        if not isinstance(value, list):
            return None
        return [str(item) for item in value]

    def put(self, spot_id: int, paths: Iterable[str]) -> list[str]:
        cleaned = cleaned_unique(paths)
        self._store.set(self.key_for(spot_id), cleaned)
        return cleaned

    def initial_paths(self, spot_id: int, server_paths: Iterable[str]) -> list[str]:
        """Paths to show before the network confirms: cache first, else server data."""
        cached = self.get(spot_id)
        if cached is not None:
            return cached
        return cleaned_unique(server_paths)

    def merge(self, spot_id: int, server_paths: Iterable[str]) -> list[str]:
        """Union of cached and server paths, persisted."""
        return self.put(spot_id, [*(self.get(spot_id) or []), *server_paths])

    def _on_photos_updated(self, event: SpotPhotosUpdated) -> None:
        if event.spot_id is not None:
            self.put(event.spot_id, event.photo_paths)

    def close(self) -> None:
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
