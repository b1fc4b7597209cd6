"""
ExecutionCoordinator: the single write path into the DeviceRegistry.

Every write (user command, scheduled task, rule action) is applied here,
serialized per device, and recorded in the execution log.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Deque, Dict, List, Optional

from home_automation.core.bus import EXECUTION_LOGGED, Event, EventBus, new_cascade_id
from home_automation.core.clock import Clock, SystemClock
from home_automation.core.errors import TypeMismatchError, UnknownDeviceError
from home_automation.core.registry import DeviceRegistry

logger = logging.getLogger(__name__)


class Origin(Enum):
    """Provenance of an applied write."""

    USER_COMMAND = "UserCommand"
    SCHEDULED_TASK = "ScheduledTask"
    RULE = "Rule"


@dataclass(frozen=True)
class ExecutionLogEntry:
    """Record of one applied write (append-only audit trail)."""

    device: str
    attribute: str
    old: Any
    new: Any
    origin: Origin
    timestamp: datetime
    cascade_id: str
    source_id: Optional[str] = None  # task or rule id

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for storage/transport."""
        return {
            "device": self.device,
            "attribute": self.attribute,
            "old": self.old,
            "new": self.new,
            "origin": self.origin.value,
            "timestamp": self.timestamp.isoformat(),
            "cascade_id": self.cascade_id,
            "source_id": self.source_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExecutionLogEntry":
        """Deserialize from dict."""
        return cls(
            device=data["device"],
            attribute=data["attribute"],
            old=data["old"],
            new=data["new"],
            origin=Origin(data["origin"]),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            cascade_id=data.get("cascade_id", ""),
            source_id=data.get("source_id"),
        )


class ExecutionCoordinator:
    """
    Applies action commands to the registry.

    Submissions for the same device are serialized by a per-device lock, so
    a scheduled task and a rule writing the same device never interleave.
    Submissions for different devices run concurrently.
    """

    HISTORY_SIZE = 500

    def __init__(
        self,
        registry: DeviceRegistry,
        bus: Optional[EventBus] = None,
        clock: Optional[Clock] = None,
        history_size: int = HISTORY_SIZE,
    ) -> None:
        self._registry = registry
        self._bus = bus
        self._clock = clock or SystemClock()

        self._device_locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        self._log: Deque[ExecutionLogEntry] = deque(maxlen=history_size)
        self._log_lock = threading.Lock()

    def _device_lock(self, device: str) -> threading.Lock:
        """Get the write lock of a registered device; unknown names get no entry."""
        with self._locks_guard:
            lock = self._device_locks.get(device)
            if lock is None:
                if not self._registry.has(device):
                    raise UnknownDeviceError(device)
                lock = self._device_locks[device] = threading.Lock()
            return lock

    # =========================================================================
    # Writes
    # =========================================================================

    def submit(
        self,
        device: str,
        attribute: str,
        value: Any,
        origin: Origin,
        cascade_id: Optional[str] = None,
        depth: int = 0,
        source_id: Optional[str] = None,
    ) -> ExecutionLogEntry:
        """
        Apply one attribute write.

        Args:
            device: Target device name
            attribute: Target attribute
            value: Desired value (clamped or rejected by the registry)
            origin: Who asked for the write
            cascade_id: Cascade this write belongs to (new cascade if None)
            depth: Rule depth of the write
            source_id: Task or rule id, for audit

        Returns:
            The execution log entry for the applied write

        Raises:
            UnknownDeviceError: If the device does not exist
            InvalidAttributeError: If the attribute or value is not acceptable
        """
        cascade_id = cascade_id or new_cascade_id()
        with self._device_lock(device):
            old, new = self._registry.set(device, attribute, value, cascade_id, depth)
            entry = self._append(device, attribute, old, new, origin, cascade_id, source_id)
        return entry

    def adjust(
        self,
        device: str,
        attribute: str,
        delta: int,
        origin: Origin = Origin.USER_COMMAND,
        cascade_id: Optional[str] = None,
    ) -> ExecutionLogEntry:
        """
        Add delta to a numeric attribute, atomically with respect to other writes.

        Raises:
            UnknownDeviceError: If the device does not exist
            InvalidAttributeError: If the attribute is not numeric
        """
        cascade_id = cascade_id or new_cascade_id()
        with self._device_lock(device):
            current = self._registry.get_value(device, attribute)
            if isinstance(current, bool) or isinstance(delta, bool):
                raise TypeMismatchError(device, attribute, "cannot adjust a non-numeric attribute")
            old, new = self._registry.set(device, attribute, current + delta, cascade_id)
            entry = self._append(device, attribute, old, new, origin, cascade_id, None)
        return entry

    def _append(
        self,
        device: str,
        attribute: str,
        old: Any,
        new: Any,
        origin: Origin,
        cascade_id: str,
        source_id: Optional[str],
    ) -> ExecutionLogEntry:
        entry = ExecutionLogEntry(
            device=device,
            attribute=attribute,
            old=old,
            new=new,
            origin=origin,
            timestamp=self._clock.get_current_time(),
            cascade_id=cascade_id,
            source_id=source_id,
        )
        with self._log_lock:
            self._log.append(entry)
        logger.info(f"Applied {origin.value}: {device}.{attribute} {old!r} -> {new!r}")

        if self._bus is not None:
            self._bus.publish(
                Event(
                    type=EXECUTION_LOGGED,
                    source="coordinator",
                    device=device,
                    payload=entry.to_dict(),
                    cascade_id=cascade_id,
                )
            )
        return entry

    # =========================================================================
    # Execution log
    # =========================================================================

    def get_log(
        self,
        device: Optional[str] = None,
        origin: Optional[Origin] = None,
        limit: Optional[int] = None,
    ) -> List[ExecutionLogEntry]:
        """
        Get execution log entries, oldest first.

        Args:
            device: Filter by device (optional)
            origin: Filter by origin (optional)
            limit: Keep only the newest N matching entries (optional)
        """
        with self._log_lock:
            entries = list(self._log)
        entries = [
            e
            for e in entries
            if (device is None or e.device == device) and (origin is None or e.origin == origin)
        ]
        if limit is not None:
            entries = entries[-limit:] if limit > 0 else []
        return entries

    def export_log(self) -> List[Dict[str, Any]]:
        """Export the execution log for persistence."""
        return [e.to_dict() for e in self.get_log()]

    def restore_log(self, entries: List[Dict[str, Any]]) -> None:
        """Replace the execution log with previously exported entries."""
        with self._log_lock:
            self._log.clear()
            for data in entries:
                self._log.append(ExecutionLogEntry.from_dict(data))
