"""Match session state machine.

States:
- SEARCHING: Looking for a slot to offer (initial)
- PROPOSED: One slot is on offer, waiting for accept/reject
- ACCEPTED: Patient took the offer (terminal, unless the commit is lost)
- EXHAUSTED: No acceptable slot left (terminal)
- CANCELLED: Cancelled by the patient or expired by the host (terminal)
"""
from enum import Enum
from typing import Dict, List


class SessionState(str, Enum):
    """Discrete match session states."""
    SEARCHING = "searching"
    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({
    SessionState.ACCEPTED,
    SessionState.EXHAUSTED,
    SessionState.CANCELLED,
})


# Pattern: Current state → [allowed next states]
VALID_TRANSITIONS: Dict[SessionState, List[SessionState]] = {
    SessionState.SEARCHING: [
        SessionState.PROPOSED,
        SessionState.EXHAUSTED,  # Nothing left to propose
        SessionState.CANCELLED,
    ],
    SessionState.PROPOSED: [
        SessionState.ACCEPTED,
        SessionState.SEARCHING,  # Patient rejected the offer
        SessionState.CANCELLED,
    ],
    SessionState.ACCEPTED: [],
    SessionState.EXHAUSTED: [],
    SessionState.CANCELLED: [],
}


def validate_transition(current: SessionState, intended: SessionState) -> bool:
    """
    Validate state transition.

    The commit-failure roll-back (ACCEPTED → SEARCHING) is not a regular
    transition and is checked separately by the session module.

    Example:
        >>> validate_transition(SessionState.SEARCHING, SessionState.PROPOSED)
        True
        >>> validate_transition(SessionState.EXHAUSTED, SessionState.SEARCHING)
        False
    """
    return intended in VALID_TRANSITIONS.get(current, [])


def is_terminal(state: SessionState) -> bool:
    return state in TERMINAL_STATES
