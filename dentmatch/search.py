"""Open-search orchestration for a hosting web backend.

Flow:
    start(answers) → propose() → accept() | reject() → propose() ...

Every call works on one session under that session's lock. The candidate
pool is fetched fresh from the provider on each proposal; slot ownership is
only settled by the committer at accept time.
"""
from datetime import datetime, timedelta
from typing import List, Optional, Union

from dentmatch import config
from dentmatch.committer import BookingCommitter, CommitFailure, CommitResult, commit_session
from dentmatch.errors import InvalidStateError
from dentmatch.logging_config import get_logger, search_context
from dentmatch.matcher import NoMatchFound, propose_next
from dentmatch.models import AppointmentSlot, IntakeAnswers
from dentmatch.notifications import NotificationHub, SessionEvent, SessionEventType
from dentmatch.pool import CandidatePool, FilterCriteria, SlotProvider
from dentmatch.registry import SessionRegistry
from dentmatch.session import MatchSession, accept, cancel, expire, new_session, reject
from dentmatch.state import SessionState

logger = get_logger(__name__)


class OpenSearchService:
    """Runs open searches against a slot provider and a booking committer."""

    def __init__(
        self,
        provider: SlotProvider,
        committer: BookingCommitter,
        registry: Optional[SessionRegistry] = None,
        hub: Optional[NotificationHub] = None,
        session_timeout: timedelta = timedelta(minutes=config.SESSION_TIMEOUT_MINUTES),
    ):
        self.provider = provider
        self.committer = committer
        self.registry = registry if registry is not None else SessionRegistry()
        self.hub = hub if hub is not None else NotificationHub()
        self.session_timeout = session_timeout

    def start(
        self,
        answers: IntakeAnswers,
        session_id: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> MatchSession:
        """Score the intake answers and register a new session."""
        session = new_session(answers, session_id=session_id)
        with search_context(session.session_id, request_id):
            return self.registry.add(session)

    def get(self, session_id: str) -> MatchSession:
        return self.registry.get(session_id)

    def propose(
        self,
        session_id: str,
        criteria: Optional[FilterCriteria] = None,
        request_id: Optional[str] = None,
    ) -> Union[AppointmentSlot, NoMatchFound]:
        """
        Fetch the current pool and propose the best slot.

        Raises:
            InvalidStateError: If the session is not SEARCHING
            SessionNotFoundError: If session_id is unknown
        """
        with search_context(session_id, request_id), self.registry.lock(session_id) as session:
            if session.state != SessionState.SEARCHING:
                raise InvalidStateError("propose", session.state)
            pool = CandidatePool(self.provider.fetch_open_slots(criteria))
            result = propose_next(session, pool)
            if isinstance(result, NoMatchFound):
                self._emit(SessionEventType.EXHAUSTED, session)
            return result

    def reject(self, session_id: str, request_id: Optional[str] = None) -> MatchSession:
        """Patient wants an alternative; the current slot is never offered again."""
        with search_context(session_id, request_id), self.registry.lock(session_id) as session:
            return reject(session)

    def accept(self, session_id: str, request_id: Optional[str] = None) -> CommitResult:
        """
        Accept the current proposal and commit the booking.

        On CommitFailure the session is back in SEARCHING with the slot
        excluded; call propose() again for the next best slot.
        """
        with search_context(session_id, request_id), self.registry.lock(session_id) as session:
            accept(session)
            slot_id = session.current_proposal.id
            self._emit(SessionEventType.ACCEPTED, session, slot_id=slot_id)

            result = commit_session(session, self.committer)
            if isinstance(result, CommitFailure):
                self._emit(
                    SessionEventType.COMMIT_FAILED,
                    session,
                    slot_id=slot_id,
                    detail=result.reason,
                )
            else:
                self._emit(
                    SessionEventType.BOOKED,
                    session,
                    slot_id=slot_id,
                    booking_id=result.booking_id,
                )
            return result

    def cancel(self, session_id: str, request_id: Optional[str] = None) -> MatchSession:
        with search_context(session_id, request_id), self.registry.lock(session_id) as session:
            slot_id = session.current_proposal.id if session.current_proposal else None
            cancel(session)
            self._emit(SessionEventType.CANCELLED, session, slot_id=slot_id)
            return session

    def expire(self, session_id: str, request_id: Optional[str] = None) -> MatchSession:
        with search_context(session_id, request_id), self.registry.lock(session_id) as session:
            slot_id = session.current_proposal.id if session.current_proposal else None
            expire(session)
            self._emit(SessionEventType.EXPIRED, session, slot_id=slot_id)
            return session

    def expire_stale(self, now: Optional[datetime] = None) -> List[str]:
        """
        Expire every active session idle longer than the session timeout,
        then purge finished sessions past the same timeout.

        Returns:
            Ids of the sessions that were expired
        """
        expired = []
        for session_id in self.registry.stale_sessions(self.session_timeout, now):
            try:
                self.expire(session_id)
            except InvalidStateError:
                # Finished between the scan and the lock
                continue
            expired.append(session_id)
        if expired:
            logger.info("stale_sessions_expired", count=len(expired))
        self.purge_finished(now)
        return expired

    def purge_finished(self, now: Optional[datetime] = None) -> List[str]:
        """Forget terminal sessions untouched for longer than the session timeout."""
        purged = self.registry.purge_finished(self.session_timeout, now)
        if purged:
            logger.info("finished_sessions_purged", count=len(purged))
        return purged

    def _emit(self, event_type: SessionEventType, session: MatchSession, **fields):
        self.hub.emit(SessionEvent(event_type=event_type, session_id=session.session_id, **fields))
