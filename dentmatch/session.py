"""Match session data and transition functions.

A MatchSession is plain data; every change goes through the functions in
this module so the state machine in dentmatch.state is enforced in one place.
An operation that is not allowed raises InvalidStateError before touching
any field, so a failed call leaves the session exactly as it was.
"""
import uuid
from datetime import UTC, datetime, timedelta
from typing import Any, Dict, Optional, Set

from pydantic import BaseModel, Field, ValidationError, field_serializer

from dentmatch.errors import InvalidInputError, InvalidStateError
from dentmatch.logging_config import get_logger
from dentmatch.models import AppointmentSlot, IntakeAnswers, UrgencyAssessment
from dentmatch.scorer import score
from dentmatch.state import SessionState, is_terminal, validate_transition

logger = get_logger(__name__)


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(UTC)


class MatchSession(BaseModel):
    """
    One patient's open search.

    - excluded_slot_ids: only grows; rejected slots are never offered again
    - current_proposal: never a member of excluded_slot_ids
    - booking_reference: set once the accepted slot is committed
    """
    session_id: str
    answers: IntakeAnswers
    assessment: UrgencyAssessment
    excluded_slot_ids: Set[str] = Field(default_factory=set)
    current_proposal: Optional[AppointmentSlot] = None
    state: SessionState = SessionState.SEARCHING
    booking_reference: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @field_serializer("excluded_slot_ids")
    def serialize_excluded(self, excluded: Set[str]):
        return sorted(excluded)

    @property
    def is_terminal(self) -> bool:
        return is_terminal(self.state)


def new_session(
    answers: IntakeAnswers,
    session_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> MatchSession:
    """
    Score the answers and open a session in SEARCHING.

    Args:
        answers: Patient intake answers
        session_id: Host-provided id (uuid4 when omitted)
        now: Creation timestamp (defaults to current UTC time)

    Returns:
        New MatchSession
    """
    assessment = score(answers)
    created = now or utc_now()
    session = MatchSession(
        session_id=session_id or str(uuid.uuid4()),
        answers=answers,
        assessment=assessment,
        created_at=created,
        updated_at=created,
    )
    logger.info(
        "session_started",
        session_id=session.session_id,
        score=assessment.score,
        tier=assessment.tier.value,
    )
    return session


def _move(session: MatchSession, operation: str, target: SessionState):
    if not validate_transition(session.state, target):
        raise InvalidStateError(operation, session.state)
    previous = session.state
    session.state = target
    session.updated_at = utc_now()
    logger.info(
        "session_transition",
        session_id=session.session_id,
        operation=operation,
        from_state=previous.value,
        to_state=target.value,
    )


def mark_proposed(session: MatchSession, slot: AppointmentSlot) -> MatchSession:
    """SEARCHING → PROPOSED with slot on offer. Used by the matcher."""
    if session.state != SessionState.SEARCHING:
        raise InvalidStateError("propose", session.state)
    if slot.id in session.excluded_slot_ids:
        raise InvalidInputError(f"Slot {slot.id} was already rejected in this session")
    _move(session, "propose", SessionState.PROPOSED)
    session.current_proposal = slot
    return session


def mark_exhausted(session: MatchSession) -> MatchSession:
    """SEARCHING → EXHAUSTED. Used by the matcher when nothing is left."""
    if session.state != SessionState.SEARCHING:
        raise InvalidStateError("exhaust", session.state)
    _move(session, "exhaust", SessionState.EXHAUSTED)
    return session


def reject(session: MatchSession) -> MatchSession:
    """
    Patient asked for an alternative.

    Adds the proposed slot to the exclusion set and goes back to SEARCHING.

    Raises:
        InvalidStateError: If the session is not PROPOSED
    """
    if session.state != SessionState.PROPOSED:
        raise InvalidStateError("reject", session.state)
    rejected = session.current_proposal
    _move(session, "reject", SessionState.SEARCHING)
    session.excluded_slot_ids.add(rejected.id)
    session.current_proposal = None
    logger.info("slot_rejected", session_id=session.session_id, slot_id=rejected.id)
    return session


def accept(session: MatchSession) -> MatchSession:
    """
    Patient approved the proposed slot.

    current_proposal stays set and becomes the slot handed to the committer.

    Raises:
        InvalidStateError: If the session is not PROPOSED
    """
    if session.state != SessionState.PROPOSED:
        raise InvalidStateError("accept", session.state)
    _move(session, "accept", SessionState.ACCEPTED)
    return session


def cancel(session: MatchSession) -> MatchSession:
    """
    Cancel an active search.

    Not idempotent: cancelling a finished session raises, to surface caller bugs.

    Raises:
        InvalidStateError: If the session is already terminal
    """
    _move(session, "cancel", SessionState.CANCELLED)
    return session


def expire(session: MatchSession) -> MatchSession:
    """
    Host-enforced timeout. Same rules as cancel.

    Raises:
        InvalidStateError: If the session is already terminal
    """
    _move(session, "expire", SessionState.CANCELLED)
    return session


def record_commit_failure(session: MatchSession, failure: Any = None) -> MatchSession:
    """
    Roll an ACCEPTED session back after the booking could not be committed.

    Treated like a patient rejection: the slot is excluded so it is not
    offered again, and the session returns to SEARCHING.

    Args:
        session: Session in ACCEPTED
        failure: CommitFailure reported by the committer (used for logging)

    Raises:
        InvalidStateError: If the session is not ACCEPTED or is already booked
    """
    if session.state != SessionState.ACCEPTED or session.booking_reference:
        raise InvalidStateError("roll back", session.state)
    lost = session.current_proposal
    session.state = SessionState.SEARCHING
    session.excluded_slot_ids.add(lost.id)
    session.current_proposal = None
    session.updated_at = utc_now()
    logger.warning(
        "commit_rolled_back",
        session_id=session.session_id,
        slot_id=lost.id,
        reason=getattr(failure, "reason", None),
    )
    return session


def is_expired(
    session: MatchSession,
    max_age: timedelta,
    now: Optional[datetime] = None,
) -> bool:
    """True when an active session has been idle longer than max_age."""
    if session.is_terminal:
        return False
    return (now or utc_now()) - session.updated_at > max_age


def is_finished(
    session: MatchSession,
    max_age: timedelta,
    now: Optional[datetime] = None,
) -> bool:
    """True when a terminal session has sat untouched longer than max_age."""
    if not session.is_terminal:
        return False
    if session.state == SessionState.ACCEPTED and not session.booking_reference:
        # Commit still in flight; it may roll back to SEARCHING
        return False
    return (now or utc_now()) - session.updated_at > max_age


def session_to_dict(session: MatchSession) -> Dict[str, Any]:
    """JSON-safe snapshot of the session."""
    return session.model_dump(mode="json")


def session_from_dict(data: Dict[str, Any]) -> MatchSession:
    """
    Rebuild a session from session_to_dict output.

    Raises:
        InvalidInputError: If the payload is malformed or breaks a session invariant
    """
    try:
        session = MatchSession.model_validate(data)
    except ValidationError as exc:
        raise InvalidInputError(f"Invalid session payload: {exc}") from exc

    proposal = session.current_proposal
    if proposal is not None and proposal.id in session.excluded_slot_ids:
        raise InvalidInputError(
            f"Session {session.session_id}: proposed slot {proposal.id} is also excluded"
        )
    if proposal is None and session.state in (SessionState.PROPOSED, SessionState.ACCEPTED):
        raise InvalidInputError(
            f"Session {session.session_id}: state {session.state.value} requires a proposal"
        )
    return session
