"""Checks run before any code touches the sandbox."""

from faas_core.exceptions import (
    NoActiveSessionError,
    SessionExpiredError,
    SessionPausedError,
)
from faas_core.sessions.models import Session, SessionStatus
from faas_core.sessions.store import SessionStore


def validate_active_session(store: SessionStore, now: float | None = None) -> Session:
    """Return the current session if it can execute code.

    Args:
        store: Session store to read from
        now: Current time in epoch seconds (defaults to time.time())

    Raises:
        NoActiveSessionError: No session, or the session has no sandbox
        SessionExpiredError: The session timeout has passed
        SessionPausedError: The session is paused on a snapshot
    """
    session = store.get()

    if session is None or not session.sandbox_id:
        raise NoActiveSessionError()
    if session.is_expired(now):
        raise SessionExpiredError()
    if session.status == SessionStatus.PAUSED:
        raise SessionPausedError()

    return session
