"""SQLAlchemy models for match session persistence."""
from sqlalchemy import JSON, Column, DateTime, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class StoredSession(Base):
    """Serialized MatchSession, one row per open search."""
    __tablename__ = "match_sessions"

    session_id = Column(String(255), primary_key=True, index=True)
    state = Column(String(20), nullable=False, index=True)
    payload = Column(JSON, nullable=False)  # session_to_dict output
    created_at = Column(DateTime, nullable=False)  # naive UTC
    updated_at = Column(DateTime, nullable=False, index=True)  # naive UTC

    def __repr__(self):
        return f"<StoredSession(session_id={self.session_id}, state={self.state})>"
