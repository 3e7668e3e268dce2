"""Session registry and persistence.

SessionRegistry keeps live sessions in memory, one lock per session, so
concurrent searches never share mutable state. SessionStore persists
serialized sessions with SQLAlchemy so a search can survive a backend restart.
"""
import threading
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from typing import Dict, Iterator, List, Optional

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dentmatch import config
from dentmatch.database_models import Base, StoredSession
from dentmatch.errors import InvalidInputError, SessionNotFoundError
from dentmatch.logging_config import get_logger
from dentmatch.session import (
    MatchSession,
    is_expired,
    is_finished,
    session_from_dict,
    session_to_dict,
    utc_now,
)

logger = get_logger(__name__)


def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


class SessionStore:
    """
    Persists match sessions.

    Pattern: Thin wrapper around SQLAlchemy; the row payload is the
    session_to_dict snapshot, state and timestamps are copied out for queries.
    """

    def __init__(self, database_url: str = config.DATABASE_URL):
        """
        Initialize store with database connection.

        Args:
            database_url: SQLAlchemy connection string
        """
        engine_kwargs = {"pool_pre_ping": True}
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # One shared connection, or every checkout sees an empty database
            engine_kwargs.update(
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        self.engine = create_engine(database_url, **engine_kwargs)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine)

    def save(self, session: MatchSession) -> None:
        """Insert or update the stored snapshot."""
        payload = session_to_dict(session)
        with self.SessionLocal() as db:
            row = db.get(StoredSession, session.session_id)
            if row is None:
                row = StoredSession(
                    session_id=session.session_id,
                    created_at=_naive_utc(session.created_at),
                )
                db.add(row)
            row.state = session.state.value
            row.payload = payload
            row.updated_at = _naive_utc(session.updated_at)
            db.commit()

    def load(self, session_id: str) -> MatchSession:
        """
        Raises:
            SessionNotFoundError: If session_id is not stored
            InvalidInputError: If the stored payload is corrupt
        """
        with self.SessionLocal() as db:
            row = db.get(StoredSession, session_id)
            if row is None:
                raise SessionNotFoundError(f"Session {session_id} not found")
            return session_from_dict(row.payload)

    def delete(self, session_id: str) -> bool:
        with self.SessionLocal() as db:
            deleted = db.query(StoredSession).filter(
                StoredSession.session_id == session_id
            ).delete()
            db.commit()
        return deleted > 0

    def cleanup_expired_sessions(
        self,
        max_age_minutes: int = config.SESSION_TIMEOUT_MINUTES,
        now: Optional[datetime] = None,
    ) -> int:
        """
        Delete sessions not updated for max_age_minutes, whatever their state.

        Returns:
            Number of deleted sessions
        """
        cutoff = _naive_utc(now or utc_now()) - timedelta(minutes=max_age_minutes)
        with self.SessionLocal() as db:
            deleted = db.query(StoredSession).filter(
                StoredSession.updated_at < cutoff
            ).delete()
            db.commit()
        if deleted:
            logger.info("stored_sessions_cleaned", deleted=deleted)
        return deleted


class SessionRegistry:
    """
    Live sessions keyed by session_id.

    All mutation of a session should happen inside `with registry.lock(id)`;
    the snapshot is written to the store (if any) when the block exits.
    """

    def __init__(self, store: Optional[SessionStore] = None):
        self.store = store
        self._sessions: Dict[str, MatchSession] = {}
        self._locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def add(self, session: MatchSession) -> MatchSession:
        """
        Raises:
            InvalidInputError: If a session with the same id is already live
        """
        with self._registry_lock:
            if session.session_id in self._sessions:
                raise InvalidInputError(f"Session {session.session_id} already exists")
            self._sessions[session.session_id] = session
            self._locks[session.session_id] = threading.Lock()
        if self.store is not None:
            self.store.save(session)
        return session

    def get(self, session_id: str) -> MatchSession:
        """
        Live session, or the stored one when it is not in memory yet.

        Raises:
            SessionNotFoundError: If session_id is unknown
        """
        with self._registry_lock:
            session = self._sessions.get(session_id)
            if session is not None:
                return session
            if self.store is None:
                raise SessionNotFoundError(f"Session {session_id} not found")
            session = self.store.load(session_id)
            self._sessions[session_id] = session
            self._locks[session_id] = threading.Lock()
            return session

    @contextmanager
    def lock(self, session_id: str) -> Iterator[MatchSession]:
        """
        Exclusive access to one session.

        Raises:
            SessionNotFoundError: If session_id is unknown
        """
        session = self.get(session_id)
        with self._locks[session_id]:
            yield session
            if self.store is not None:
                self.store.save(session)

    def remove(self, session_id: str) -> None:
        with self._registry_lock:
            self._sessions.pop(session_id, None)
            self._locks.pop(session_id, None)
        if self.store is not None:
            self.store.delete(session_id)

    def stale_sessions(self, max_age: timedelta, now: Optional[datetime] = None) -> List[str]:
        """Ids of active sessions idle longer than max_age."""
        with self._registry_lock:
            sessions = list(self._sessions.values())
        return [s.session_id for s in sessions if is_expired(s, max_age, now)]

    def purge_finished(self, max_age: timedelta, now: Optional[datetime] = None) -> List[str]:
        """
        Drop terminal sessions idle longer than max_age, here and in the store.

        Returns:
            Ids of the removed sessions
        """
        with self._registry_lock:
            finished = [
                s.session_id for s in self._sessions.values()
                if is_finished(s, max_age, now)
            ]
            for session_id in finished:
                self._sessions.pop(session_id, None)
                self._locks.pop(session_id, None)
        if self.store is not None:
            for session_id in finished:
                self.store.delete(session_id)
        return finished
