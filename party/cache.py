"""
Single-flight result cache with lazy TTL expiry

Concurrent lookups for the same key share one upstream call. Resolved values
are served until their expiry and replaced on the next lookup after it; failed
fetches are never stored.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional

from .errors import UpstreamError

logger = logging.getLogger("party_relay")

KEY_SEPARATOR = ":"

Fetcher = Callable[[], Awaitable[Any]]

_MISSING = object()


def cache_key(*parts) -> str:
    """Build a cache key from ordered semantic parts, e.g. ("album", id)"""
    return KEY_SEPARATOR.join(str(part) for part in parts)


@dataclass
class CacheEntry:
    key: str
    value: Any = _MISSING
    expires_at: float = 0.0
    pending: Optional[asyncio.Task] = None

    def is_fresh(self, now: float) -> bool:
        return self.value is not _MISSING and now < self.expires_at


def _retrieve_exception(task: asyncio.Task):
    # Marks the failure as seen when every waiter went away before it settled
    if not task.cancelled():
        task.exception()


class ResultCache:
    """
    Map of key -> (value, expiry, in-flight fetch).

    Every check-then-start and every completion runs without an await in
    between, so on the owning event loop they are atomic with respect to
    each other. Waiters are shielded: cancelling one request never cancels
    the fetch other requests are attached to.
    """

    def __init__(self, ttl: float, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def peek(self, key: str) -> Any:
        """Return the fresh value for key, or None. Never fetches."""
        entry = self._entries.get(key)
        if entry and entry.is_fresh(self._clock()):
            return entry.value
        return None

    def in_flight(self, key: str) -> bool:
        entry = self._entries.get(key)
        return bool(entry and entry.pending)

    async def resolve(self, key: str, fetcher: Fetcher) -> Any:
        """
        Return the value for key, calling fetcher at most once per expiry.

        Raises:
            UpstreamError: the fetch this call attached to failed. Every
                waiter of that fetch receives the same exception object.
        """
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries[key] = CacheEntry(key)

        if entry.is_fresh(self._clock()):
            return entry.value

        if entry.pending is None:
            logger.debug(f"Cache miss for {key}, fetching")
            entry.pending = asyncio.ensure_future(self._fetch(entry, fetcher))
            entry.pending.add_done_callback(_retrieve_exception)
        else:
            logger.debug(f"Joining in-flight fetch for {key}")

        return await asyncio.shield(entry.pending)

    async def _fetch(self, entry: CacheEntry, fetcher: Fetcher) -> Any:
        try:
            value = await fetcher()
        except UpstreamError as e:
            if e.key is None:
                e.key = entry.key
            logger.warning(f"Fetch failed for {entry.key}: {e}")
            raise
        except Exception as e:
            logger.warning(f"Fetch failed for {entry.key}: {e!r}")
            raise UpstreamError(f"Fetch failed for {entry.key}: {e}", key=entry.key) from e
        finally:
            entry.pending = None

        entry.value = value
        entry.expires_at = self._clock() + self.ttl
        return value
