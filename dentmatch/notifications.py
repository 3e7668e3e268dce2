"""Outbound session events for patient notification.

The hosting system subscribes callbacks (email, SMS, push); delivery itself
is not handled here. A failing subscriber is logged and skipped so one
broken channel neither blocks the others nor undoes a booking.
"""
import threading
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from dentmatch.logging_config import get_logger
from dentmatch.session import utc_now

logger = get_logger(__name__)


class SessionEventType(str, Enum):
    ACCEPTED = "accepted"
    BOOKED = "booked"
    COMMIT_FAILED = "commit_failed"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class SessionEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    event_type: SessionEventType
    session_id: str
    slot_id: Optional[str] = None
    booking_id: Optional[str] = None
    detail: Optional[str] = None
    occurred_at: datetime = Field(default_factory=utc_now)


Subscriber = Callable[[SessionEvent], None]


class NotificationHub:
    """Fan-out of session events to registered callbacks."""

    def __init__(self):
        self._subscribers: List[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback.

        Returns:
            Function that removes the callback again
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe

    def emit(self, event: SessionEvent) -> int:
        """
        Deliver event to every subscriber.

        Returns:
            Number of subscribers that handled the event without error
        """
        with self._lock:
            subscribers = list(self._subscribers)

        delivered = 0
        for callback in subscribers:
            try:
                callback(event)
            except Exception:
                logger.exception(
                    "notification_failed",
                    event_type=event.event_type.value,
                    session_id=event.session_id,
                    subscriber=getattr(callback, "__name__", repr(callback)),
                )
                continue
            delivered += 1

        logger.info(
            "session_event",
            event_type=event.event_type.value,
            session_id=event.session_id,
            delivered=delivered,
        )
        return delivered
