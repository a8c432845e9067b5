"""Holder for the one session a process serves."""

from dataclasses import replace
from typing import Any

from faas_core.sessions.models import Session


class SessionStore:
    """At most one session per process.

    Instances are created once by the playground service and shared by
    reference with every request handler.
    """

    def __init__(self) -> None:
        self._session: Session | None = None

    def get(self) -> Session | None:
        return self._session

    def set(self, session: Session | None) -> None:
        self._session = session

    def update(self, **changes: Any) -> Session | None:
        """Merge field changes into the current session.

        Returns:
            The updated session, or None if there is no session
        """
        if self._session is not None:
            self._session = replace(self._session, **changes)
        return self._session

    def clear(self) -> None:
        self._session = None
