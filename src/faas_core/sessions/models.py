"""Session record for the single live sandbox."""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SessionStatus(str, Enum):
    """Lifecycle states of a session."""

    PENDING = "pending"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    PAUSED = "paused"
    FAILED = "failed"


@dataclass
class Session:
    """The current sandbox session.

    Times are epoch seconds. ``snapshot_id`` is set only while the session
    is paused; restoring starts a running session without one.
    """

    sandbox_id: str
    status: SessionStatus
    timeout_at: float
    snapshot_id: str | None = None
    created_at: float = field(default_factory=time.time)

    def is_expired(self, now: float | None = None) -> bool:
        """Check whether the session timeout has passed."""
        return (now if now is not None else time.time()) > self.timeout_at

    def remaining_ms(self, now: float | None = None) -> int:
        """Milliseconds until expiry, never negative."""
        now = now if now is not None else time.time()
        return max(0, int((self.timeout_at - now) * 1000))

    def is_active(self, now: float | None = None) -> bool:
        return self.status == SessionStatus.RUNNING and not self.is_expired(now)

    def to_dict(self, now: float | None = None) -> dict[str, Any]:
        """Serialize for API responses (timestamps in epoch milliseconds)."""
        data: dict[str, Any] = {
            "sandboxId": self.sandbox_id,
            "status": self.status.value,
            "timeout": int(self.timeout_at * 1000),
            "createdAt": int(self.created_at * 1000),
            "remainingTime": self.remaining_ms(now),
            "isActive": self.is_active(now),
        }
        if self.snapshot_id:
            data["snapshotId"] = self.snapshot_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Session":
        """Create from the dictionary produced by :meth:`to_dict`."""
        return cls(
            sandbox_id=data["sandboxId"],
            status=SessionStatus(data["status"]),
            timeout_at=data["timeout"] / 1000,
            snapshot_id=data.get("snapshotId"),
            created_at=data["createdAt"] / 1000,
        )
