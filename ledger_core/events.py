"""
Append-only log of committed ledger transitions.
"""
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

logger = logging.getLogger(__name__)

CONFERENCE_CREATED = "ConferenceCreated"
DECRYPTION_VERIFIED = "DecryptionVerified"
CONFERENCE_ENDED = "ConferenceEnded"


@dataclass(frozen=True)
class LedgerEvent:
    kind: str
    conference_id: str
    timestamp: int
    payload: Dict[str, Any] = field(default_factory=dict)


class EventLog:
    """
    Thread-safe event history with optional subscribers.
    Subscribers run after the event is recorded; a subscriber that raises is
    logged and skipped, the transition it reports on has already committed.
    """
    def __init__(self):
        self._events: List[LedgerEvent] = []
        self._subscribers: List[Callable[[LedgerEvent], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Callable[[LedgerEvent], None]) -> None:
        if not callable(callback):
            raise TypeError("Event subscriber must be callable.")
        with self._lock:
            self._subscribers.append(callback)

    def record(self, event: LedgerEvent) -> None:
        """Appends to the history only. Callers holding their own lock notify afterwards."""
        with self._lock:
            self._events.append(event)
        logger.info("%s conference_id=%s %s", event.kind, event.conference_id, event.payload)

    def notify(self, event: LedgerEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception("Event subscriber failed for %s on '%s'", event.kind, event.conference_id)

    def emit(self, event: LedgerEvent) -> None:
        self.record(event)
        self.notify(event)

    def history(self, conference_id: Optional[str] = None) -> List[LedgerEvent]:
        with self._lock:
            if conference_id is None:
                return list(self._events)
            return [e for e in self._events if e.conference_id == conference_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)
