from __future__ import annotations

from mapch.state.bus import EventBus
from mapch.state.events import SpotPhotosUpdated
from mapch.state.store import MemoryStore, PhotoCache, cleaned_unique, resolve_photo_url

IMAGE_BASE = "https://images.test"


def test_cache_key_is_versioned_per_spot() -> None:
    assert PhotoCache.key_for(42) == "photo_cache_spot_v2_42"


def test_initial_paths_prefer_cache_over_server_data() -> None:
    cache = PhotoCache(MemoryStore())
    assert cache.initial_paths(1, [" photo/a.jpg ", "photo/a.jpg", ""]) == ["photo/a.jpg"]

    cache.put(1, ["photo/cached.jpg"])
    assert cache.initial_paths(1, ["photo/a.jpg"]) == ["photo/cached.jpg"]


def test_merge_unions_in_first_seen_order() -> None:
    cache = PhotoCache(MemoryStore())
    cache.put(1, ["photo/a.jpg", "photo/b.jpg"])

    merged = cache.merge(1, ["photo/b.jpg", "photo/c.jpg"])

    assert merged == ["photo/a.jpg", "photo/b.jpg", "photo/c.jpg"]
    assert cache.get(1) == merged


def test_photos_updated_event_overwrites_cached_list() -> None:
    bus = EventBus()
    cache = PhotoCache(MemoryStore(), bus=bus)
    cache.put(7, ["photo/old.jpg"])

    bus.publish(SpotPhotosUpdated(spot_id=7, photo_paths=("photo/new.jpg",)))
    assert cache.get(7) == ["photo/new.jpg"]

    cache.close()
    bus.publish(SpotPhotosUpdated(spot_id=7, photo_paths=()))
    assert cache.get(7) == ["photo/new.jpg"]


def test_memory_store_returns_copies() -> None:
    store = MemoryStore()
    value = ["a"]
    store.set("k", value)
    value.append("b")

    assert store.get("k") == ["a"]
    store.delete("k")
    assert store.get("k") is None


def test_cleaned_unique() -> None:
    assert cleaned_unique([" a ", "b", "a", "  "]) == ["a", "b"]


def test_resolve_photo_url() -> None:
    assert resolve_photo_url("photo/a.jpg", IMAGE_BASE) == "https://images.test/photo/a.jpg"
    assert resolve_photo_url("/photo/a.jpg", IMAGE_BASE + "/") == "https://images.test/photo/a.jpg"
    assert resolve_photo_url("photo\\a.jpg", IMAGE_BASE) == "https://images.test/photo/a.jpg"
    assert resolve_photo_url("https://cdn.test/x.jpg", IMAGE_BASE) == "https://cdn.test/x.jpg"
    assert resolve_photo_url("  ", IMAGE_BASE) is None
