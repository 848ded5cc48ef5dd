"""
In-memory state: connected viewers and the provider session
"""
import asyncio
import logging
from typing import Any, Dict, Optional

logger = logging.getLogger("party_relay")

VIEWER_QUEUE_SIZE = 50


class Audience:
    """
    Registry of connected real-time viewers.

    Each viewer gets a bounded queue drained by its own writer task, so a slow
    socket never holds up the broadcaster or the other viewers. A viewer that
    falls behind loses its oldest messages; it leaves the registry when its
    connection closes.
    """

    def __init__(self, queue_size: int = VIEWER_QUEUE_SIZE):
        self._queue_size = queue_size
        self._viewers: Dict[str, asyncio.Queue] = {}

    def subscribe(self, client_id: str) -> asyncio.Queue:
        """Register a viewer. Returns a queue receiving (event, data) tuples."""
        q: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._viewers[client_id] = q
        return q

    def unsubscribe(self, client_id: str):
        self._viewers.pop(client_id, None)

    @property
    def client_count(self) -> int:
        return len(self._viewers)

    def broadcast(self, event: str, data: Any = None):
        """Queue an event for every viewer connected right now"""
        for cid, q in list(self._viewers.items()):
            if q.full():
                # Viewer too slow, drop its oldest message
                q.get_nowait()
                logger.debug(f"Viewer {cid} is behind, dropped its oldest message")
            q.put_nowait((event, data))


class SessionSlot:
    """Holds the authenticated provider client, replaced wholesale on re-auth"""

    def __init__(self):
        self._client = None

    @property
    def current(self) -> Optional[Any]:
        return self._client

    @property
    def authenticated(self) -> bool:
        return self._client is not None

    def replace(self, client) -> Optional[Any]:
        """Install a new client and return the previous one (for closing)"""
        previous, self._client = self._client, client
        return previous
