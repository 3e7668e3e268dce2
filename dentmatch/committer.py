"""Booking commit: turning an accepted proposal into a booking.

The committer is the single point of truth for slot ownership. A lost race
comes back as a CommitFailure value, never as an exception, and the session
is rolled back to SEARCHING with the slot excluded.
"""
import threading
import uuid
from datetime import datetime
from typing import Dict, Optional, Protocol, Union

import requests
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dentmatch.circuit_breaker import CircuitBreakerOpen
from dentmatch.errors import InvalidStateError
from dentmatch.http_client import ApiClient
from dentmatch.logging_config import get_logger
from dentmatch.session import MatchSession, record_commit_failure, utc_now
from dentmatch.state import SessionState

logger = get_logger(__name__)

BOOKINGS_PATH = "/api/bookings"
SLOT_GONE_STATUSES = {404, 409, 410}


class BookingReference(BaseModel):
    """Proof that a slot is now owned by this session."""
    model_config = ConfigDict(frozen=True)

    booking_id: str
    slot_id: str
    session_id: str
    created_at: datetime = Field(default_factory=utc_now)


class CommitFailure(BaseModel):
    """
    The slot could not be committed.

    retryable=False means the slot itself is gone (booked by someone else,
    withdrawn). retryable=True means the backend could not be reached; the
    slot may still be free, but it is excluded all the same.
    """
    model_config = ConfigDict(frozen=True)

    slot_id: str
    reason: str
    retryable: bool = False


CommitResult = Union[BookingReference, CommitFailure]


class BookingCommitter(Protocol):
    """Persists a booking for slot_id on behalf of session_id."""

    def commit(self, slot_id: str, session_id: str) -> CommitResult:
        ...


class InMemoryBookingCommitter:
    """Thread-safe slot ownership table. First commit wins."""

    def __init__(self):
        self._owners: Dict[str, str] = {}
        self._lock = threading.Lock()

    def commit(self, slot_id: str, session_id: str) -> CommitResult:
        with self._lock:
            owner = self._owners.get(slot_id)
            if owner is not None and owner != session_id:
                return CommitFailure(slot_id=slot_id, reason="slot_unavailable")
            self._owners[slot_id] = session_id
        return BookingReference(
            booking_id=f"BK-{uuid.uuid4().hex[:8].upper()}",
            slot_id=slot_id,
            session_id=session_id,
        )

    def owner_of(self, slot_id: str) -> Optional[str]:
        with self._lock:
            return self._owners.get(slot_id)

    def release(self, slot_id: str):
        with self._lock:
            self._owners.pop(slot_id, None)


class HttpBookingCommitter:
    """
    Commits bookings through the booking API.

    POST /api/bookings {"appointmentId": ..., "sessionId": ...}
    2xx → BookingReference (booking id from "id" or "bookingId")
    404/409/410 → CommitFailure("slot_unavailable")
    other 4xx, transport errors, open circuit, 2xx without a readable
    JSON object → CommitFailure(retryable=True)
    """

    def __init__(self, client: ApiClient = None):
        self.client = client or ApiClient()

    def commit(self, slot_id: str, session_id: str) -> CommitResult:
        try:
            response = self.client.call(
                "POST",
                BOOKINGS_PATH,
                json={"appointmentId": slot_id, "sessionId": session_id},
            )
        except CircuitBreakerOpen as e:
            return CommitFailure(slot_id=slot_id, reason=str(e), retryable=True)
        except requests.exceptions.RequestException as e:
            return CommitFailure(
                slot_id=slot_id,
                reason=f"Could not reach booking API: {e}",
                retryable=True,
            )

        if response.status_code in SLOT_GONE_STATUSES:
            return CommitFailure(slot_id=slot_id, reason="slot_unavailable")
        if not response.ok:
            return CommitFailure(
                slot_id=slot_id,
                reason=f"Booking API returned {response.status_code}",
                retryable=True,
            )

        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            return CommitFailure(
                slot_id=slot_id,
                reason="unreadable booking response",
                retryable=True,
            )

        booking_id = data.get("bookingId", data.get("id"))
        if booking_id is None:
            return CommitFailure(
                slot_id=slot_id,
                reason="Booking API response has no booking id",
                retryable=True,
            )
        try:
            return BookingReference(
                booking_id=str(booking_id),
                slot_id=slot_id,
                session_id=session_id,
            )
        except ValidationError as e:
            return CommitFailure(slot_id=slot_id, reason=str(e), retryable=True)


def commit_session(session: MatchSession, committer: BookingCommitter) -> CommitResult:
    """
    Commit the accepted slot of a session.

    On success the booking id is stored on the session. On failure the
    session is rolled back to SEARCHING with the slot excluded; the caller
    may call propose_next again or ask the patient.

    Raises:
        InvalidStateError: If the session is not ACCEPTED or already booked
    """
    if session.state != SessionState.ACCEPTED or session.booking_reference:
        raise InvalidStateError("commit", session.state)

    slot = session.current_proposal
    result = committer.commit(slot.id, session.session_id)

    if isinstance(result, CommitFailure):
        logger.warning(
            "commit_failed",
            session_id=session.session_id,
            slot_id=slot.id,
            reason=result.reason,
            retryable=result.retryable,
        )
        record_commit_failure(session, result)
        return result

    session.booking_reference = result.booking_id
    session.updated_at = utc_now()
    logger.info(
        "booking_committed",
        session_id=session.session_id,
        slot_id=slot.id,
        booking_id=result.booking_id,
    )
    return result
