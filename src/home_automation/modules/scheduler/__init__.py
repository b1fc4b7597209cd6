"""
Scheduler module for home-automation.

Fires time-of-day attribute assignments (once or daily) through the
execution coordinator and publishes a ScheduleFired event for each firing.
"""

from .models import Recurrence, ScheduledTask, TaskState, next_occurrence
from .scheduler import Scheduler

__all__ = [
    "Scheduler",
    "ScheduledTask",
    "Recurrence",
    "TaskState",
    "next_occurrence",
]
