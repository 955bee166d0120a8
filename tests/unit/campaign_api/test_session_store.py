from datetime import datetime, timedelta, timezone
from concurrent.futures import ThreadPoolExecutor

import pytest

from campaign_api.errors import InvalidSourceError, SessionNotFoundError
from campaign_api.sessions import SessionStore


def test_connect_creates_session_lazily(store):
    assert "s1" not in store
    names = store.connect("s1", "shopify")
    assert names == ["Shopify"]
    assert "s1" in store
    assert store.get_connected_sources("s1") == ("shopify",)


def test_connect_is_idempotent_and_keeps_first_connect_order(store):
    store.connect("s1", "google-ads")
    store.connect("s1", "facebook-pixel")
    names = store.connect("s1", "google-ads")

    assert names == ["Google Ads Tag", "Facebook Pixel"]
    assert store.get_connected_sources("s1") == ("google-ads", "facebook-pixel")


def test_unknown_source_leaves_store_untouched(store):
    with pytest.raises(InvalidSourceError) as ei:
        store.connect("s-new", "myspace")
    assert ei.value.message == "Invalid data source"
    assert "s-new" not in store
    assert len(store) == 0


def test_unknown_session_raises(store):
    with pytest.raises(SessionNotFoundError) as ei:
        store.get_connected_sources("nope")
    assert ei.value.message == "No session found. Please connect data sources first."
    with pytest.raises(SessionNotFoundError):
        store.get("nope")


def test_create_allows_an_empty_session(store):
    created = store.create("empty")
    assert created.connected_source_ids == []
    assert store.get_connected_sources("empty") == ()
    # create is idempotent and never drops existing sources
    store.connect("empty", "shopify")
    assert store.create("empty").connected_source_ids == ["shopify"]


def test_callers_receive_copies(store):
    store.connect("s1", "shopify")
    snapshot = store.get("s1")
    snapshot.connected_source_ids.append("google-ads")
    assert store.get_connected_sources("s1") == ("shopify",)


def test_sessions_are_isolated(store):
    store.connect("a", "shopify")
    store.connect("b", "facebook-pixel")
    assert store.get_connected_sources("a") == ("shopify",)
    assert store.get_connected_sources("b") == ("facebook-pixel",)
    assert len(store) == 2


def test_concurrent_connects_do_not_duplicate(store):
    sources = ["shopify", "facebook-pixel", "google-ads"] * 20
    with ThreadPoolExecutor(max_workers=8) as pool:
        list(pool.map(lambda s: store.connect("shared", s), sources))
    connected = store.get_connected_sources("shared")
    assert sorted(connected) == ["facebook-pixel", "google-ads", "shopify"]


class _Clock:
    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now


def test_ttl_zero_never_evicts(catalog):
    clock = _Clock(datetime(2024, 1, 1, tzinfo=timezone.utc))
    store = SessionStore(catalog, ttl_seconds=0, clock=clock)
    store.connect("s1", "shopify")
    clock.now += timedelta(days=365)
    assert store.evict_expired() == 0
    assert "s1" in store


def test_idle_sessions_expire_after_ttl(catalog):
    clock = _Clock(datetime(2024, 1, 1, tzinfo=timezone.utc))
    store = SessionStore(catalog, ttl_seconds=60, clock=clock)
    store.connect("idle", "shopify")
    store.connect("busy", "shopify")

    clock.now += timedelta(seconds=45)
    store.get_connected_sources("busy")  # touch
    clock.now += timedelta(seconds=30)

    assert store.evict_expired() == 1
    assert "idle" not in store
    assert "busy" in store


def test_negative_ttl_is_rejected(catalog):
    with pytest.raises(ValueError):
        SessionStore(catalog, ttl_seconds=-1)


@pytest.mark.asyncio
async def test_background_sweeper_evicts(catalog):
    import asyncio
    from campaign_api.sessions import sweep_expired_sessions

    clock = _Clock(datetime(2024, 1, 1, tzinfo=timezone.utc))
    store = SessionStore(catalog, ttl_seconds=1, clock=clock)
    store.connect("old", "shopify")
    clock.now += timedelta(seconds=5)

    task = asyncio.create_task(sweep_expired_sessions(store, 0.1))
    try:
        for _ in range(50):
            await asyncio.sleep(0.05)
            if "old" not in store:
                break
    finally:
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
    assert "old" not in store
