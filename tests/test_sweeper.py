"""Tests for the background session sweeper."""

import asyncio

from expiry_tracker.services.sweeper import SessionSweeper


def test_run_once_sweeps_expired_sessions(store, clock) -> None:
    store.create_session("s1")
    store.add_image("s1", "a.jpg", "image/jpeg", b"a")
    clock.advance(hours=2)

    report = SessionSweeper(store=store).run_once()

    assert report.deleted_sessions == 1
    assert store.sessions.get_session("s1") is None


def test_background_loop_sweeps_on_interval(store, clock) -> None:
    store.create_session("s1")
    clock.advance(hours=2)
    sweeper = SessionSweeper(store=store, interval_seconds=0.01)

    async def scenario() -> None:
        sweeper.start()
        assert sweeper.running
        for _ in range(100):
            if store.sessions.get_session("s1") is None:
                break
            await asyncio.sleep(0.01)
        await sweeper.stop()

    asyncio.run(scenario())

    assert store.sessions.get_session("s1") is None
    assert sweeper.running is False


def test_stop_without_start_is_a_noop(store) -> None:
    asyncio.run(SessionSweeper(store=store).stop())
