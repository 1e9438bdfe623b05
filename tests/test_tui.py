import pytest

from apps.dashboard.tui import SHUTTING_DOWN, submit_command_text
from core.engine import TrackerEngine


@pytest.mark.asyncio
async def test_command_after_engine_stop_reports_shutdown(store):
    engine = TrackerEngine(store)
    engine.start()
    await engine.stop()

    result = await submit_command_text(engine, "add cardano -w")

    assert not result.ok
    assert result.message == SHUTTING_DOWN
    assert "cardano" not in store


@pytest.mark.asyncio
async def test_engine_stopping_mid_submit_reports_shutdown(store, monkeypatch):
    engine = TrackerEngine(store)
    engine.start()

    async def _stopped(text):
        raise RuntimeError("Tracker engine is not running")

    monkeypatch.setattr(engine, "submit_command", _stopped)
    try:
        result = await submit_command_text(engine, "add cardano -w")
    finally:
        await engine.stop()

    assert not result.ok
    assert result.message == SHUTTING_DOWN


@pytest.mark.asyncio
async def test_command_on_running_engine_is_applied(store):
    engine = TrackerEngine(store)
    engine.start()
    try:
        result = await submit_command_text(engine, "add cardano -w")
    finally:
        await engine.stop()

    assert result.ok
    assert store.get("cardano").in_watchlist
