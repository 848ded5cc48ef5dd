"""
Centralised polling: one background loop fetches the playback snapshot and
pushes it to every viewer, instead of each viewer polling the provider.
"""
import asyncio
import logging
import time
from typing import Awaitable, Callable, Optional

from .cache import ResultCache, cache_key
from .state import Audience, SessionSlot

logger = logging.getLogger("party_relay")

INFO_KEY = cache_key("info", "current")


class PollLoop:
    """
    Runs action repeatedly, sleeping interval minus the time the action took.

    Runs are strictly sequential, so an action slower than the interval delays
    the next run instead of overlapping it. Exceptions are logged and the loop
    carries on.
    """

    def __init__(self, action: Callable[[], Awaitable[None]], interval: float):
        self.action = action
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run(self):
        while True:
            started = time.monotonic()
            try:
                await self.action()
            except Exception as e:
                logger.error(f"Polling tick failed: {e!r}")
            elapsed = time.monotonic() - started
            await asyncio.sleep(max(0.0, self.interval - elapsed))

    def start(self) -> asyncio.Task:
        if not self.running:
            self._task = asyncio.create_task(self.run())
        return self._task

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None


class PlaybackPoller:
    """The tick: fetch-through-cache the current playback and broadcast it"""

    def __init__(self, session: SessionSlot, audience: Audience, cache: ResultCache,
                 fetch_info: Callable[[object], Awaitable[dict]]):
        self.session = session
        self.audience = audience
        self.cache = cache
        self.fetch_info = fetch_info

    async def tick(self):
        client = self.session.current
        if client is None:
            logger.debug("Polling skipped: no provider session yet")
            return

        # No viewers, no upstream call
        if self.audience.client_count == 0:
            logger.debug("Polling skipped: nobody is watching")
            return

        info = await self.cache.resolve(INFO_KEY, lambda: self.fetch_info(client))
        self.audience.broadcast("info", info)
        logger.debug(f"Polled playback for {self.audience.client_count} viewer(s)")
