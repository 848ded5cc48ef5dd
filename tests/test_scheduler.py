"""Tests for centralised polling."""

import asyncio
import time
from unittest.mock import AsyncMock

import pytest

from party.cache import ResultCache
from party.errors import UpstreamError
from party.scheduler import INFO_KEY, PlaybackPoller, PollLoop
from party.state import Audience, SessionSlot


def make_poller(client=None, ttl: float = 2.0):
    session = SessionSlot()
    if client is not None:
        session.replace(client)
    audience = Audience()
    cache = ResultCache(ttl=ttl)
    fetch_info = AsyncMock(return_value={"isPlaying": True})
    return PlaybackPoller(session, audience, cache, fetch_info)


class TestPlaybackPoller:
    def test_info_key(self) -> None:
        assert INFO_KEY == "info:current"

    @pytest.mark.asyncio
    async def test_skips_without_session(self) -> None:
        poller = make_poller(client=None)
        poller.audience.subscribe("viewer")

        await poller.tick()

        poller.fetch_info.assert_not_called()

    @pytest.mark.asyncio
    async def test_no_audience_means_no_fetch(self, fake_spotify) -> None:
        poller = make_poller(fake_spotify)

        for _ in range(5):
            await poller.tick()
        poller.fetch_info.assert_not_called()

        queue = poller.audience.subscribe("viewer")
        await poller.tick()

        poller.fetch_info.assert_awaited_once_with(fake_spotify)
        assert queue.get_nowait() == ("info", {"isPlaying": True})

    @pytest.mark.asyncio
    async def test_ticks_within_ttl_reuse_cached_snapshot(self, fake_spotify) -> None:
        poller = make_poller(fake_spotify, ttl=60)
        queue = poller.audience.subscribe("viewer")

        await poller.tick()
        await poller.tick()

        assert poller.fetch_info.await_count == 1
        assert queue.qsize() == 2

    @pytest.mark.asyncio
    async def test_tick_and_user_request_coalesce(self, fake_spotify) -> None:
        poller = make_poller(fake_spotify)
        poller.audience.subscribe("viewer")
        gate = asyncio.Event()

        async def slow_info(client):
            await gate.wait()
            return {"isPlaying": False}

        poller.fetch_info = AsyncMock(side_effect=slow_info)
        user_fetch = AsyncMock(return_value={"isPlaying": True})

        tick = asyncio.create_task(poller.tick())
        await asyncio.sleep(0)
        request = asyncio.create_task(poller.cache.resolve(INFO_KEY, user_fetch))
        await asyncio.sleep(0)
        gate.set()
        await tick

        assert await request == {"isPlaying": False}
        assert poller.fetch_info.await_count == 1
        user_fetch.assert_not_called()

    @pytest.mark.asyncio
    async def test_failed_fetch_propagates_from_tick(self, fake_spotify) -> None:
        poller = make_poller(fake_spotify)
        queue = poller.audience.subscribe("viewer")
        poller.fetch_info.side_effect = RuntimeError("provider down")

        with pytest.raises(UpstreamError):
            await poller.tick()

        assert queue.empty()


class TestPollLoop:
    @pytest.mark.asyncio
    async def test_runs_never_overlap(self) -> None:
        active = 0
        max_active = 0
        runs = 0

        async def slow_action():
            nonlocal active, max_active, runs
            active += 1
            max_active = max(max_active, active)
            await asyncio.sleep(0.03)
            runs += 1
            active -= 1

        loop = PollLoop(slow_action, interval=0.01)
        loop.start()
        await asyncio.sleep(0.15)
        await loop.stop()

        assert runs >= 2
        assert max_active == 1
        assert not loop.running

    @pytest.mark.asyncio
    async def test_failures_do_not_stop_the_loop(self) -> None:
        calls = 0

        async def flaky():
            nonlocal calls
            calls += 1
            if calls == 1:
                raise RuntimeError("first tick fails")

        loop = PollLoop(flaky, interval=0.01)
        loop.start()
        await asyncio.sleep(0.1)

        assert loop.running
        await loop.stop()
        assert calls >= 2

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self) -> None:
        loop = PollLoop(AsyncMock(), interval=10)

        first = loop.start()
        second = loop.start()

        assert first is second
        await loop.stop()
        await loop.stop()

    @pytest.mark.asyncio
    async def test_sleep_accounts_for_action_time(self) -> None:
        starts = []

        async def half_interval_action():
            starts.append(time.monotonic())
            await asyncio.sleep(0.1)

        loop = PollLoop(half_interval_action, interval=0.2)
        loop.start()
        await asyncio.sleep(0.7)
        await loop.stop()

        assert len(starts) >= 3
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        # Starts stay one interval apart, not interval + action time
        assert all(0.18 <= gap < 0.27 for gap in gaps), gaps
