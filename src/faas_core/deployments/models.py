"""Deployment records."""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from faas_core.constants import get_cron_label


class DeploymentStatus(str, Enum):
    """Local deployment states."""

    QUEUED = "queued"
    BUILDING = "building"
    READY = "ready"
    ERROR = "error"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({
    DeploymentStatus.READY,
    DeploymentStatus.ERROR,
    DeploymentStatus.CANCELED,
})

_READY_STATES = {
    "READY": DeploymentStatus.READY,
    "ERROR": DeploymentStatus.ERROR,
    "CANCELED": DeploymentStatus.CANCELED,
    "QUEUED": DeploymentStatus.QUEUED,
}


def map_ready_state(ready_state: str | None) -> DeploymentStatus:
    """Map a backend ready state to a local status; unknown states are 'building'."""
    return _READY_STATES.get((ready_state or "").upper(), DeploymentStatus.BUILDING)


@dataclass
class Deployment:
    """One promoted function, owned by a single partition key."""

    id: str
    url: str
    function_name: str
    status: DeploymentStatus
    created_at: float = field(default_factory=time.time)
    cron_schedule: str | None = None
    regions: list[str] = field(default_factory=list)
    error_message: str | None = None

    @property
    def function_url(self) -> str:
        return f"{self.url}/api/{self.function_name}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary (storage form)."""
        return {
            "id": self.id,
            "url": self.url,
            "functionName": self.function_name,
            "status": self.status.value,
            "createdAt": self.created_at,
            "cronSchedule": self.cron_schedule,
            "regions": list(self.regions),
            "errorMessage": self.error_message,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Deployment":
        """Create from dictionary."""
        return cls(
            id=data["id"],
            url=data["url"],
            function_name=data["functionName"],
            status=DeploymentStatus(data["status"]),
            created_at=data["createdAt"],
            cron_schedule=data.get("cronSchedule"),
            regions=list(data.get("regions") or []),
            error_message=data.get("errorMessage"),
        )

    def to_api_dict(self) -> dict[str, Any]:
        """Shape returned by the HTTP API."""
        return {
            "id": self.id,
            "url": self.url,
            "functionName": self.function_name,
            "functionUrl": self.function_url,
            "status": self.status.value,
            "cronSchedule": self.cron_schedule,
            "cronLabel": get_cron_label(self.cron_schedule),
            "regions": list(self.regions),
            "createdAt": datetime.fromtimestamp(self.created_at, timezone.utc).isoformat(),
            "errorMessage": self.error_message,
        }
