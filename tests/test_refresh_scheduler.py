import asyncio
from decimal import Decimal

import pytest

from conftest import market
from core.engine import TrackerEngine
from core.errors import FetchError
from core.state_store import StateStore
from datafeeds.refresh_scheduler import RefreshScheduler, RefreshState


class FakeSource:
    """Scripted fetch function: each call pops the next result."""

    def __init__(self, *results):
        self.results = list(results)
        self.calls = []

    async def __call__(self, identifiers):
        self.calls.append(list(identifiers))
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.mark.asyncio
async def test_failed_fetch_leaves_tokens_untouched(store, snapshot):
    engine = TrackerEngine(store)
    engine.start()
    source = FakeSource(snapshot, FetchError("API Error: rate limited"))
    scheduler = RefreshScheduler(source, engine)
    try:
        await scheduler.refresh_once()
        before = store.get_all()
        report = await scheduler.refresh_once()
    finally:
        await engine.stop()

    assert report is None
    assert store.get_all() == before
    assert scheduler.last_error == "API Error: rate limited"
    assert scheduler.state == RefreshState.FAILED_BACKOFF
    assert scheduler.errors == 1


@pytest.mark.asyncio
async def test_success_clears_last_error(store, snapshot):
    engine = TrackerEngine(store)
    engine.start()
    source = FakeSource(FetchError("boom"), snapshot)
    scheduler = RefreshScheduler(source, engine)
    try:
        await scheduler.refresh_once()
        assert scheduler.last_error == "boom"
        report = await scheduler.refresh_once()
    finally:
        await engine.stop()

    assert scheduler.last_error is None
    assert scheduler.last_success == report.at
    assert scheduler.state == RefreshState.IDLE
    assert store.get("bitcoin").price == Decimal("40000")


@pytest.mark.asyncio
async def test_unexpected_fetch_error_is_recorded(store):
    engine = TrackerEngine(store)
    engine.start()
    scheduler = RefreshScheduler(FakeSource(KeyError("data")), engine)
    try:
        assert await scheduler.refresh_once() is None
    finally:
        await engine.stop()
    assert scheduler.last_error.startswith("Unexpected fetch error")


@pytest.mark.asyncio
async def test_empty_store_skips_fetch():
    engine = TrackerEngine(StateStore())
    engine.start()
    source = FakeSource()
    scheduler = RefreshScheduler(source, engine)
    try:
        assert await scheduler.refresh_once() is None
    finally:
        await engine.stop()
    assert source.calls == []


@pytest.mark.asyncio
async def test_result_after_stop_is_discarded(store):
    engine = TrackerEngine(store)
    engine.start()
    release = asyncio.Event()

    async def slow_fetch(identifiers):
        await release.wait()
        return {"bitcoin": market(1)}

    scheduler = RefreshScheduler(slow_fetch, engine)
    pending = asyncio.ensure_future(scheduler.refresh_once())
    await asyncio.sleep(0)
    assert scheduler.is_fetching

    scheduler._stopped = True
    release.set()
    report = await pending
    await engine.stop()

    assert report is None
    assert scheduler.discarded == 1
    assert store.get("bitcoin").market is None


@pytest.mark.asyncio
async def test_result_after_engine_stop_is_discarded(store):
    engine = TrackerEngine(store)
    engine.start()
    await engine.stop()
    scheduler = RefreshScheduler(FakeSource({"bitcoin": market(1)}), engine)
    assert await scheduler.refresh_once() is None
    assert scheduler.discarded == 1


@pytest.mark.asyncio
async def test_manual_refresh_ignored_while_fetching(store, snapshot):
    engine = TrackerEngine(store)
    engine.start()
    release = asyncio.Event()
    calls = []

    async def slow_fetch(identifiers):
        calls.append(identifiers)
        await release.wait()
        return snapshot

    scheduler = RefreshScheduler(slow_fetch, engine, interval=3600)
    await scheduler.start()
    try:
        await asyncio.sleep(0.01)
        assert scheduler.is_fetching
        assert not scheduler.request_refresh()

        release.set()
        for _ in range(100):
            if scheduler.state == RefreshState.IDLE:
                break
            await asyncio.sleep(0.01)
        assert scheduler.request_refresh()
        await asyncio.sleep(0.01)
        assert len(calls) == 2
    finally:
        await scheduler.stop()
        await engine.stop()


@pytest.mark.asyncio
async def test_stop_cancels_loop(store, snapshot):
    engine = TrackerEngine(store)
    engine.start()
    scheduler = RefreshScheduler(FakeSource(snapshot), engine, interval=3600)
    await scheduler.start()
    await asyncio.sleep(0.01)
    await scheduler.stop()
    await engine.stop()

    assert scheduler.fetches == 1
    assert scheduler.state == RefreshState.IDLE
    assert not scheduler.request_refresh()


@pytest.mark.asyncio
async def test_reconcile_error_is_recorded(store, snapshot, monkeypatch):
    engine = TrackerEngine(store)
    engine.start()

    async def _bad_snapshot(snapshot, at=None):
        raise ValueError("bad snapshot")

    monkeypatch.setattr(engine, "submit_market", _bad_snapshot)
    scheduler = RefreshScheduler(FakeSource(snapshot), engine)
    try:
        assert await scheduler.refresh_once() is None
    finally:
        await engine.stop()

    assert scheduler.state == RefreshState.FAILED_BACKOFF
    assert scheduler.last_error == "Reconcile failed: bad snapshot"
    assert scheduler.errors == 1
    assert scheduler.discarded == 0
