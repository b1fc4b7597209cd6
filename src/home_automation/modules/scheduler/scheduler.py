"""
Scheduler - fires time-of-day tasks.

Each task is a small state machine:

    PENDING --tick at trigger time--> FIRED --(daily)--> PENDING
    PENDING --cancel--> CANCELLED

A tick fires every pending task whose due time lies within the last
tick window. Missed windows (process suspended, clock jumped) are not
backfilled; the task is re-armed for the next occurrence of its time.
"""

import logging
import threading
import uuid
from datetime import datetime, time, timedelta
from typing import Any, Dict, List, Optional

from home_automation.core.bus import SCHEDULE_FIRED, Event, EventBus, new_cascade_id
from home_automation.core.clock import Clock, SystemClock, parse_time_of_day
from home_automation.core.coordinator import ExecutionCoordinator, Origin
from home_automation.core.diagnostics import DiagnosticKind, Diagnostics
from home_automation.core.errors import (
    AlreadyFiredError,
    AutomationError,
    NotFoundError,
    UnknownDeviceError,
)
from home_automation.core.registry import DeviceRegistry
from home_automation.modules.base import HomeModule

from .models import Recurrence, ScheduledTask, TaskState, next_occurrence

logger = logging.getLogger(__name__)


class Scheduler(HomeModule):
    """
    Owns scheduled tasks and fires them at their trigger time.

    Note: tick() can be driven by the host (or a test with simulated time),
    or by the background ticker started with start().
    """

    DEFAULT_WINDOW = timedelta(minutes=1)

    def __init__(
        self,
        registry: DeviceRegistry,
        coordinator: ExecutionCoordinator,
        clock: Optional[Clock] = None,
        diagnostics: Optional[Diagnostics] = None,
        tick_window: timedelta = DEFAULT_WINDOW,
    ) -> None:
        self._registry = registry
        self._coordinator = coordinator
        self._clock = clock or SystemClock()
        self._diagnostics = diagnostics or Diagnostics()
        self._window = tick_window
        self._bus: Optional[EventBus] = None

        # Insertion-ordered: list() returns creation order
        self._tasks: Dict[str, ScheduledTask] = {}
        self._lock = threading.Lock()

        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def id(self) -> str:
        return "scheduler"

    def attach(self, bus: EventBus) -> None:
        """Capture the bus used to publish ScheduleFired events."""
        logger.info("Attaching Scheduler")
        self._bus = bus

    # =========================================================================
    # Public API
    # =========================================================================

    def schedule(
        self,
        device: str,
        attribute: str,
        value: Any,
        at: "str | time",
        recurrence: "Recurrence | str" = Recurrence.ONCE,
        now: Optional[datetime] = None,
    ) -> str:
        """
        Schedule an attribute assignment.

        Args:
            device: Target device name
            attribute: Target attribute
            value: Value to assign (validated now, clamped if the schema clamps)
            at: Time of day, "HH:MM"
            recurrence: "once" or "daily"
            now: Current time (for testing)

        Returns:
            The new task id

        Raises:
            UnknownDeviceError: If the device does not exist
            InvalidAttributeError: If the attribute or value is invalid
            InvalidTimeError: If `at` is not valid HH:MM
            ValueError: If the recurrence is unknown
        """
        trigger = at if isinstance(at, time) else parse_time_of_day(at)
        recurrence = Recurrence(recurrence)
        normalized = self._registry.validate(device, attribute, value)

        if now is None:
            now = self._clock.get_current_time()

        task = ScheduledTask(
            id=uuid.uuid4().hex[:8],
            device=device,
            attribute=attribute,
            value=normalized,
            at=trigger,
            recurrence=recurrence,
            state=TaskState.PENDING,
            created_at=now,
            next_run=next_occurrence(trigger, now),
        )
        with self._lock:
            self._tasks[task.id] = task

        logger.info(f"Scheduled {task.id}: {task.describe()}")
        return task.id

    def cancel(self, task_id: str) -> ScheduledTask:
        """
        Cancel a pending task.

        Cancelling an already-cancelled task is a no-op.

        Returns:
            Snapshot of the task after cancellation

        Raises:
            NotFoundError: If the task does not exist
            AlreadyFiredError: If a one-shot task has already fired
        """
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise NotFoundError(f"Task '{task_id}' not found")
            if task.state == TaskState.FIRED:
                raise AlreadyFiredError(task_id)
            if task.state == TaskState.PENDING:
                task.state = TaskState.CANCELLED
                logger.info(f"Cancelled task {task_id}")
            return task.copy()

    def get(self, task_id: str) -> ScheduledTask:
        """
        Get a snapshot of a task.

        Raises:
            NotFoundError: If the task does not exist
        """
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                raise NotFoundError(f"Task '{task_id}' not found")
            return task.copy()

    def list(self) -> List[ScheduledTask]:
        """Get snapshots of all tasks in creation order."""
        with self._lock:
            return [task.copy() for task in self._tasks.values()]

    def purge(self, task_id: Optional[str] = None) -> int:
        """
        Delete finished tasks from history.

        Args:
            task_id: A single fired/cancelled task to delete, or None for all

        Returns:
            Number of tasks deleted

        Raises:
            NotFoundError: If task_id does not exist
            ValueError: If task_id refers to a pending task
        """
        with self._lock:
            if task_id is not None:
                task = self._tasks.get(task_id)
                if task is None:
                    raise NotFoundError(f"Task '{task_id}' not found")
                if task.state == TaskState.PENDING:
                    raise ValueError(f"Task '{task_id}' is pending; cancel it first")
                del self._tasks[task_id]
                return 1

            finished = [t.id for t in self._tasks.values() if t.state != TaskState.PENDING]
            for finished_id in finished:
                del self._tasks[finished_id]
        if finished:
            logger.info(f"Purged {len(finished)} finished task(s)")
        return len(finished)

    # =========================================================================
    # Ticking
    # =========================================================================

    def tick(self, now: Optional[datetime] = None) -> List[str]:
        """
        Fire every task that is due.

        Args:
            now: Current time (defaults to the clock)

        Returns:
            Ids of the tasks that fired, in creation order
        """
        if now is None:
            now = self._clock.get_current_time()

        due: List[ScheduledTask] = []
        missed: List[tuple] = []

        # Check-and-transition is atomic with respect to cancel()
        with self._lock:
            for task in self._tasks.values():
                if task.state != TaskState.PENDING or now < task.next_run:
                    continue

                if now - task.next_run >= self._window:
                    missed_at = task.next_run
                    task.next_run = self._rearm(task, now)
                    missed.append((task.copy(), missed_at))
                    continue

                task.state = TaskState.FIRED
                task.last_fired_at = now
                task.fire_count += 1
                due.append(task.copy())

                if task.recurrence == Recurrence.DAILY:
                    task.next_run = self._rearm(task, now)
                    task.state = TaskState.PENDING

        for task, missed_at in missed:
            self._diagnostics.record(
                DiagnosticKind.MISSED_FIRING,
                f"Task {task.id} missed its {task.time_of_day} window; "
                f"next run at {task.next_run.isoformat()}",
                device=task.device,
                task_id=task.id,
                missed_at=missed_at.isoformat(),
            )

        for task in due:
            self._fire(task)

        return [task.id for task in due]

    def _rearm(self, task: ScheduledTask, now: datetime) -> datetime:
        next_run = task.next_run + timedelta(days=1)
        while next_run <= now:
            next_run += timedelta(days=1)
        return next_run

    def _fire(self, task: ScheduledTask) -> None:
        cascade_id = new_cascade_id()
        logger.info(f"Firing task {task.id}: {task.describe()}")

        if self._bus is not None:
            self._bus.publish(
                Event(
                    type=SCHEDULE_FIRED,
                    source="scheduler",
                    device=task.device,
                    payload={
                        "task_id": task.id,
                        "attribute": task.attribute,
                        "value": task.value,
                        "recurrence": task.recurrence.value,
                    },
                    cascade_id=cascade_id,
                )
            )

        try:
            self._coordinator.submit(
                task.device,
                task.attribute,
                task.value,
                origin=Origin.SCHEDULED_TASK,
                cascade_id=cascade_id,
                source_id=task.id,
            )
        except UnknownDeviceError as e:
            self._diagnostics.record(
                DiagnosticKind.DANGLING_REFERENCE,
                f"Task {task.id} targets a missing device: {e}",
                device=task.device,
                task_id=task.id,
            )
        except AutomationError as e:
            self._diagnostics.record(
                DiagnosticKind.ACTION_FAILED,
                f"Task {task.id} could not be applied: {e}",
                device=task.device,
                task_id=task.id,
            )

    def start(self, interval: float = 30.0) -> None:
        """
        Start the background ticker.

        Args:
            interval: Seconds between ticks (at most 60, the trigger granularity)
        """
        if not 0 < interval <= 60:
            raise ValueError("Ticker interval must be between 0 and 60 seconds")
        if self._thread and self._thread.is_alive():
            return

        self._stop.clear()
        self._thread = threading.Thread(
            target=self._run_loop, args=(interval,), name="scheduler-ticker", daemon=True
        )
        self._thread.start()
        logger.info(f"Scheduler ticker started ({interval}s interval)")

    def stop(self, timeout: float = 2.0) -> None:
        """Stop the background ticker."""
        self._stop.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None
        logger.info("Scheduler ticker stopped")

    def _run_loop(self, interval: float) -> None:
        """Background loop; a failing tick is logged and the loop keeps going."""
        while not self._stop.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Scheduler tick failed: {e}", exc_info=True)
            self._stop.wait(interval)

    # =========================================================================
    # State Export/Import
    # =========================================================================

    def dump_state(self) -> Dict:
        """Export task definitions and lifecycle for persistence."""
        return {
            "version": 1,
            "tasks": [task.to_dict() for task in self.list()],
        }

    def restore_state(self, state: Dict) -> None:
        """Replace all tasks with previously exported ones."""
        if state.get("version") != 1:
            logger.warning("Unknown scheduler state version, skipping restore")
            return

        tasks = [ScheduledTask.from_dict(data) for data in state.get("tasks", [])]
        with self._lock:
            self._tasks = {task.id: task for task in tasks}
        logger.info(f"Restored {len(tasks)} scheduled task(s)")
