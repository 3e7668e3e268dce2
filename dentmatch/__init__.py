"""Urgency-scored appointment matching for dental open searches."""
from dentmatch.committer import BookingReference, CommitFailure, commit_session
from dentmatch.errors import InvalidInputError, InvalidStateError, SessionNotFoundError
from dentmatch.matcher import NoMatchFound, propose_next, rank_candidates
from dentmatch.models import (
    AppointmentSlot,
    IntakeAnswers,
    IssueDuration,
    SymptomFlag,
    UrgencyAssessment,
    UrgencyTier,
)
from dentmatch.pool import CandidatePool, FilterCriteria
from dentmatch.scorer import score, tier_for_score
from dentmatch.search import OpenSearchService
from dentmatch.session import (
    MatchSession,
    accept,
    cancel,
    expire,
    new_session,
    reject,
    session_from_dict,
    session_to_dict,
)
from dentmatch.state import SessionState

__all__ = [
    "AppointmentSlot",
    "BookingReference",
    "CandidatePool",
    "CommitFailure",
    "FilterCriteria",
    "IntakeAnswers",
    "InvalidInputError",
    "InvalidStateError",
    "IssueDuration",
    "MatchSession",
    "NoMatchFound",
    "OpenSearchService",
    "SessionNotFoundError",
    "SessionState",
    "SymptomFlag",
    "UrgencyAssessment",
    "UrgencyTier",
    "accept",
    "cancel",
    "commit_session",
    "expire",
    "new_session",
    "propose_next",
    "rank_candidates",
    "reject",
    "score",
    "session_from_dict",
    "session_to_dict",
    "tier_for_score",
]
