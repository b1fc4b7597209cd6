"""
Data models for the Scheduler.

A ScheduledTask assigns a value to a device attribute at a time of day.
"""

from dataclasses import dataclass, replace
from datetime import datetime, time, timedelta
from enum import Enum
from typing import Any, Dict, Optional

from home_automation.core.clock import format_time_of_day, parse_time_of_day


class Recurrence(Enum):
    """How often a task fires."""

    ONCE = "once"
    DAILY = "daily"


class TaskState(Enum):
    """Lifecycle of a scheduled task."""

    PENDING = "pending"
    FIRED = "fired"
    CANCELLED = "cancelled"


def next_occurrence(at: time, now: datetime) -> datetime:
    """
    Next datetime with time-of-day `at`, at or after the minute containing `now`.

    A task created at 06:00:30 for "06:00" is due today, not tomorrow.
    """
    candidate = now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    if candidate < now.replace(second=0, microsecond=0):
        candidate += timedelta(days=1)
    return candidate


@dataclass
class ScheduledTask:
    """
    A time-triggered attribute assignment.

    Attributes:
        id: Unique identifier
        device: Target device name
        attribute: Target attribute
        value: Value to assign (already normalized)
        at: Trigger time of day
        recurrence: Once or daily
        state: Lifecycle state
        created_at: When the task was scheduled
        next_run: Next due time while pending
        last_fired_at: When the task last fired
        fire_count: Number of times the task has fired
    """

    id: str
    device: str
    attribute: str
    value: Any
    at: time
    recurrence: Recurrence
    state: TaskState
    created_at: datetime
    next_run: datetime
    last_fired_at: Optional[datetime] = None
    fire_count: int = 0

    @property
    def time_of_day(self) -> str:
        return format_time_of_day(self.at)

    def copy(self) -> "ScheduledTask":
        return replace(self)

    def describe(self) -> str:
        """Human-readable summary for task lists."""
        text = f"Task scheduled for {self.device} at {self.time_of_day} to {self.attribute} = {_literal(self.value)}"
        if self.recurrence == Recurrence.DAILY:
            text += " (daily)"
        return text

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for storage/transport."""
        return {
            "id": self.id,
            "device": self.device,
            "attribute": self.attribute,
            "value": self.value,
            "at": self.time_of_day,
            "recurrence": self.recurrence.value,
            "state": self.state.value,
            "created_at": self.created_at.isoformat(),
            "next_run": self.next_run.isoformat(),
            "last_fired_at": self.last_fired_at.isoformat() if self.last_fired_at else None,
            "fire_count": self.fire_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScheduledTask":
        """Deserialize from dict."""
        last_fired = data.get("last_fired_at")
        return cls(
            id=data["id"],
            device=data["device"],
            attribute=data["attribute"],
            value=data["value"],
            at=parse_time_of_day(data["at"]),
            recurrence=Recurrence(data.get("recurrence", "once")),
            state=TaskState(data.get("state", "pending")),
            created_at=datetime.fromisoformat(data["created_at"]),
            next_run=datetime.fromisoformat(data["next_run"]),
            last_fired_at=datetime.fromisoformat(last_fired) if last_fired else None,
            fire_count=data.get("fire_count", 0),
        )


def _literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
