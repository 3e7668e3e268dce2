"""Exceptions raised by the matching engine.

NoMatchFound and CommitFailure are ordinary return values, not exceptions;
see dentmatch.matcher and dentmatch.committer.
"""
from typing import Iterable, Optional


class DentMatchError(Exception):
    """Base class for matching engine errors."""
    pass


class InvalidInputError(DentMatchError, ValueError):
    """Raised for malformed intake answers or slot data."""

    def __init__(self, message: str, fields: Optional[Iterable[str]] = None):
        super().__init__(message)
        self.fields = tuple(fields or ())


class InvalidStateError(DentMatchError):
    """Raised when a session operation is not allowed in the current state."""

    def __init__(self, operation: str, state):
        state_value = getattr(state, "value", state)
        super().__init__(f"Cannot {operation} a session in state '{state_value}'")
        self.operation = operation
        self.state = state


class SessionNotFoundError(DentMatchError, KeyError):
    """Raised when session_id is not known to the registry or store."""

    def __str__(self):
        return str(self.args[0]) if self.args else "Session not found"
