"""
Diagnostics stream for runtime conditions that degrade but never stop the system.

Cascade aborts, bus overflow, dangling device references and failed
automated writes are recorded here instead of being raised.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Optional

if TYPE_CHECKING:
    from home_automation.core.bus import EventBus

logger = logging.getLogger(__name__)


class DiagnosticKind(Enum):
    """Kinds of reported runtime conditions."""

    RULE_CYCLE_EXCEEDED = "rule_cycle_exceeded"
    EVENT_BUS_OVERFLOW = "event_bus_overflow"
    DANGLING_REFERENCE = "dangling_reference"
    ACTION_FAILED = "action_failed"
    MISSED_FIRING = "missed_firing"


@dataclass
class Diagnostic:
    """A single reported condition."""

    kind: DiagnosticKind
    message: str
    details: Dict[str, Any] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "details": dict(self.details),
            "timestamp": self.timestamp.isoformat(),
        }


class Diagnostics:
    """
    Bounded, thread-safe log of Diagnostic records.

    When a bus is attached, records are also published as
    "diagnostic.reported" events unless the caller opts out.
    """

    HISTORY_SIZE = 200

    def __init__(self, history_size: int = HISTORY_SIZE) -> None:
        self._records: Deque[Diagnostic] = deque(maxlen=history_size)
        self._counts: Dict[DiagnosticKind, int] = {kind: 0 for kind in DiagnosticKind}
        self._lock = threading.Lock()
        self._bus: Optional["EventBus"] = None

    def set_bus(self, bus: "EventBus") -> None:
        """Publish future records on this bus."""
        self._bus = bus

    def record(
        self,
        kind: DiagnosticKind,
        message: str,
        publish: bool = True,
        **details: Any,
    ) -> Diagnostic:
        """
        Record a condition and log it as a warning.

        Args:
            kind: What happened
            message: Human-readable description
            publish: Also publish on the attached bus
            **details: Structured context (device, rule_id, cascade_id, ...)

        Returns:
            The stored Diagnostic
        """
        diagnostic = Diagnostic(kind=kind, message=message, details=details)
        with self._lock:
            self._records.append(diagnostic)
            self._counts[kind] += 1
        logger.warning(f"[{kind.value}] {message}")

        if publish and self._bus is not None:
            from home_automation.core.bus import DIAGNOSTIC_REPORTED, Event

            self._bus.publish(
                Event(
                    type=DIAGNOSTIC_REPORTED,
                    source="diagnostics",
                    device=details.get("device"),
                    payload=diagnostic.to_dict(),
                )
            )
        return diagnostic

    def count(self, kind: DiagnosticKind) -> int:
        """Total records of a kind since startup (not bounded by history size)."""
        with self._lock:
            return self._counts[kind]

    def get(self, kind: Optional[DiagnosticKind] = None, limit: int = 50) -> List[Diagnostic]:
        """
        Get recent diagnostics, newest first.

        Args:
            kind: Filter by kind (optional)
            limit: Maximum entries to return
        """
        with self._lock:
            records = list(self._records)
        result = []
        for diagnostic in reversed(records):
            if kind and diagnostic.kind != kind:
                continue
            result.append(diagnostic)
            if len(result) >= limit:
                break
        return result
