"""Session state for the single live sandbox."""

from faas_core.sessions.models import Session, SessionStatus
from faas_core.sessions.store import SessionStore
from faas_core.sessions.validation import validate_active_session

__all__ = [
    "Session",
    "SessionStatus",
    "SessionStore",
    "validate_active_session",
]
