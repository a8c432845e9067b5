"""Tests for the session record, store and validation."""

import pytest

from faas_core.exceptions import (
    NoActiveSessionError,
    SessionExpiredError,
    SessionPausedError,
)
from faas_core.sessions import Session, SessionStatus, SessionStore, validate_active_session

NOW = 1_700_000_000.0


def make_session(**overrides) -> Session:
    values = {
        "sandbox_id": "sbx_1",
        "status": SessionStatus.RUNNING,
        "timeout_at": NOW + 300,
        "created_at": NOW,
    }
    values.update(overrides)
    return Session(**values)


class TestSession:
    """Tests for Session dataclass."""

    def test_to_dict(self) -> None:
        """Serialize with millisecond timestamps and derived fields."""
        d = make_session().to_dict(now=NOW + 100)

        assert d["sandboxId"] == "sbx_1"
        assert d["status"] == "running"
        assert d["timeout"] == int((NOW + 300) * 1000)
        assert d["createdAt"] == int(NOW * 1000)
        assert d["remainingTime"] == 200_000
        assert d["isActive"] is True
        assert "snapshotId" not in d

    def test_to_dict_includes_snapshot(self) -> None:
        """A paused session carries its snapshot id."""
        d = make_session(status=SessionStatus.PAUSED, snapshot_id="snap_1").to_dict(now=NOW)

        assert d["snapshotId"] == "snap_1"
        assert d["isActive"] is False

    def test_from_dict_round_trip(self) -> None:
        """from_dict restores what to_dict produced."""
        original = make_session(snapshot_id="snap_1")
        restored = Session.from_dict(original.to_dict(now=NOW))

        assert restored == original

    def test_remaining_never_negative(self) -> None:
        """Remaining time bottoms out at zero after expiry."""
        session = make_session()

        assert session.remaining_ms(now=NOW + 1000) == 0
        assert session.is_expired(now=NOW + 1000)
        assert not session.is_active(now=NOW + 1000)


class TestSessionStore:
    """Tests for SessionStore."""

    def test_empty(self) -> None:
        """A new store has no session."""
        store = SessionStore()
        assert store.get() is None
        assert store.update(status=SessionStatus.STOPPED) is None

    def test_set_update_clear(self) -> None:
        """Updates replace fields; clear removes the session."""
        store = SessionStore()
        store.set(make_session())

        updated = store.update(status=SessionStatus.PAUSED, snapshot_id="snap_1")

        assert updated.status == SessionStatus.PAUSED
        assert store.get().snapshot_id == "snap_1"
        assert store.get().sandbox_id == "sbx_1"

        store.clear()
        assert store.get() is None


class TestValidateActiveSession:
    """Tests for validate_active_session."""

    def test_no_session(self) -> None:
        """No session is rejected."""
        with pytest.raises(NoActiveSessionError, match="No active session"):
            validate_active_session(SessionStore(), now=NOW)

    def test_missing_sandbox_id(self) -> None:
        """A session without a sandbox is rejected."""
        store = SessionStore()
        store.set(make_session(sandbox_id=""))
        with pytest.raises(NoActiveSessionError):
            validate_active_session(store, now=NOW)

    def test_expired(self) -> None:
        """An expired session is rejected."""
        store = SessionStore()
        store.set(make_session())
        with pytest.raises(SessionExpiredError, match="expired"):
            validate_active_session(store, now=NOW + 301)

    def test_expired_takes_precedence_over_paused(self) -> None:
        """Expiry is checked before the paused state."""
        store = SessionStore()
        store.set(make_session(status=SessionStatus.PAUSED))
        with pytest.raises(SessionExpiredError):
            validate_active_session(store, now=NOW + 301)

    def test_paused(self) -> None:
        """A paused session must be resumed first."""
        store = SessionStore()
        store.set(make_session(status=SessionStatus.PAUSED, snapshot_id="snap_1"))
        with pytest.raises(SessionPausedError, match="Resume"):
            validate_active_session(store, now=NOW)

    def test_active(self) -> None:
        """A running session within its timeout passes."""
        store = SessionStore()
        store.set(make_session())
        assert validate_active_session(store, now=NOW).sandbox_id == "sbx_1"
