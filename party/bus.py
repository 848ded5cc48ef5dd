"""
Notification bus: user-facing notices and lifecycle signals

Two independent channels so internal listeners never filter by tag.
Delivery is synchronous and in publish order; a failing listener is logged
and skipped.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Generic, List, Optional, TypeVar

logger = logging.getLogger("party_relay")

M = TypeVar("M")

# Notice categories understood by the player UI
INFO = "info"
ERROR = "error"
TRACK = "track"


@dataclass(frozen=True)
class Notice:
    text: str
    category: str = INFO

    def to_dict(self) -> dict:
        return {"text": self.text, "category": self.category}


@dataclass(frozen=True)
class Signal:
    name: str
    payload: Optional[Dict[str, Any]] = field(default=None)

    def to_dict(self) -> dict:
        return {"name": self.name, "payload": self.payload}


class Channel(Generic[M]):
    def __init__(self, name: str):
        self.name = name
        self._listeners: List[Callable[[M], Any]] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Callable[[M], Any]) -> Callable[[], None]:
        """Register listener; returns a callable that removes it again"""
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Callable[[M], Any]):
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def publish(self, message: M):
        # Snapshot so listeners added during delivery only see later messages
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception:
                logger.exception(f"Listener on {self.name} channel failed")


class NotificationBus:
    def __init__(self):
        self.notices: Channel[Notice] = Channel("notices")
        self.signals: Channel[Signal] = Channel("signals")

    def message(self, text: str, category: str = INFO):
        self.notices.publish(Notice(text, category))

    def error(self, text: str):
        self.notices.publish(Notice(text, ERROR))

    def system(self, name: str, payload: Optional[Dict[str, Any]] = None):
        self.signals.publish(Signal(name, payload))


def log_signal(signal: Signal):
    """Diagnostics listener"""
    if signal.payload:
        logger.info(f"⚙️ system:{signal.name} {signal.payload}")
    else:
        logger.info(f"⚙️ system:{signal.name}")
