"""Slot matching for open searches.

Selection policy, applied in order:
1. Drop slots the patient already rejected in this session
2. Drop slots beyond the patient's travel limit (unless unbounded)
3. Urgent tiers (high, emergency): earliest start first
4. Non-urgent tiers (moderate, routine): nearest first, then earliest start
5. Remaining ties broken by slot id so results are reproducible
"""
from typing import Iterable, List, Union

from dentmatch.errors import InvalidStateError
from dentmatch.logging_config import get_logger
from dentmatch.models import AppointmentSlot
from dentmatch.pool import CandidatePool
from dentmatch.session import MatchSession, mark_exhausted, mark_proposed
from dentmatch.state import SessionState

logger = get_logger(__name__)


class NoMatchFound:
    """Returned by propose_next when no acceptable slot remains. Falsy."""

    def __init__(self, session_id: str, considered: int = 0):
        self.session_id = session_id
        self.considered = considered

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"NoMatchFound(session_id={self.session_id!r}, considered={self.considered})"


def _urgent_key(slot: AppointmentSlot):
    return (slot.start_datetime, slot.id)


def _convenience_key(slot: AppointmentSlot):
    return (slot.distance_km, slot.start_datetime, slot.id)


def rank_candidates(session: MatchSession, pool: Iterable[AppointmentSlot]) -> List[AppointmentSlot]:
    """
    All acceptable slots for the session, best first.

    Read-only: does not change the session.
    """
    limit = session.answers.max_travel_distance_km
    candidates = [
        slot for slot in pool
        if slot.id not in session.excluded_slot_ids
        and (limit is None or slot.distance_km <= limit)
    ]
    sort_key = _urgent_key if session.assessment.tier.is_urgent else _convenience_key
    return sorted(candidates, key=sort_key)


def propose_next(
    session: MatchSession,
    pool: Iterable[AppointmentSlot],
) -> Union[AppointmentSlot, NoMatchFound]:
    """
    Offer the best remaining slot.

    On success the session moves to PROPOSED with the slot as current
    proposal. When nothing is left it moves to EXHAUSTED and a NoMatchFound
    is returned. The exclusion set is never modified here.

    Args:
        session: Session in SEARCHING
        pool: Candidate slots (CandidatePool or any iterable of slots; a plain
            iterable gets the same duplicate-id and timezone checks)

    Returns:
        The proposed AppointmentSlot, or NoMatchFound

    Raises:
        InvalidStateError: If the session is not SEARCHING
        InvalidInputError: If the pool has duplicate ids or mixes naive and aware start times
    """
    if session.state != SessionState.SEARCHING:
        raise InvalidStateError("propose", session.state)

    pool = CandidatePool(pool)
    ranked = rank_candidates(session, pool)
    if not ranked:
        mark_exhausted(session)
        logger.info(
            "session_exhausted",
            session_id=session.session_id,
            pool_size=len(pool),
            excluded=len(session.excluded_slot_ids),
        )
        return NoMatchFound(session.session_id, considered=len(pool))

    best = ranked[0]
    mark_proposed(session, best)
    logger.info(
        "proposal_made",
        session_id=session.session_id,
        slot_id=best.id,
        tier=session.assessment.tier.value,
        start=best.start_datetime.isoformat(),
        distance_km=best.distance_km,
        alternatives=len(ranked) - 1,
    )
    return best
