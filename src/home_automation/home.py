"""
SmartHome: the command/query surface consumed by a presentation layer.

Wires the kernel together:

    command -> ExecutionCoordinator -> DeviceRegistry -> StateChanged on bus
        -> RuleEngine -> action -> ExecutionCoordinator -> ...

    Scheduler tick -> ScheduleFired on bus + action -> ExecutionCoordinator
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from home_automation.core.bus import EventBus, EventFilter, EventHandler, Subscription
from home_automation.core.clock import Clock, SystemClock
from home_automation.core.config import HomeConfig
from home_automation.core.coordinator import ExecutionCoordinator, ExecutionLogEntry, Origin
from home_automation.core.devices import Device, DeviceType
from home_automation.core.diagnostics import Diagnostic, DiagnosticKind, Diagnostics
from home_automation.core.registry import DeviceRegistry
from home_automation.modules.rules import Action, Condition, Rule, RuleEngine
from home_automation.modules.scheduler import Recurrence, ScheduledTask, Scheduler

logger = logging.getLogger(__name__)


class SmartHome:
    """
    Facade over the device registry, scheduler and rule engine.

    Two ways to run it:
    - Threaded: start() runs bus delivery threads and the scheduler ticker.
    - Manual: call tick() and pump() yourself (tests, simulations,
      single-threaded hosts).
    """

    def __init__(
        self,
        config: Optional[HomeConfig] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        """
        Build and wire all components.

        Args:
            config: Runtime configuration (defaults to HomeConfig())
            clock: Time source (defaults to the system clock)
        """
        self.config = config or HomeConfig()
        self.clock = clock or SystemClock()

        self.diagnostics = Diagnostics(history_size=self.config.history_size)
        self.bus = EventBus(queue_size=self.config.queue_size, diagnostics=self.diagnostics)
        self.diagnostics.set_bus(self.bus)

        self.registry = DeviceRegistry(self.bus)
        self.coordinator = ExecutionCoordinator(
            self.registry,
            self.bus,
            clock=self.clock,
            history_size=self.config.history_size,
        )
        self.scheduler = Scheduler(
            self.registry,
            self.coordinator,
            clock=self.clock,
            diagnostics=self.diagnostics,
            tick_window=timedelta(seconds=self.config.tick_window_seconds),
        )
        self.rules = RuleEngine(
            self.registry,
            self.coordinator,
            diagnostics=self.diagnostics,
            max_depth=self.config.max_cascade_depth,
            history_size=self.config.history_size,
        )

        for device in self.config.devices:
            self.registry.add(device.name, device.type, device.attributes)

        self.scheduler.attach(self.bus)
        self.rules.attach(self.bus)
        logger.info(f"SmartHome ready with {len(self.config.devices)} device(s)")

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> None:
        """Start event delivery threads and the scheduler ticker."""
        self.bus.start()
        self.scheduler.start(self.config.tick_interval_seconds)

    def stop(self) -> None:
        """Stop the ticker, then event delivery."""
        self.scheduler.stop()
        self.bus.stop()

    def tick(self, now: Optional[datetime] = None) -> List[str]:
        """Run one scheduler poll. Returns ids of fired tasks."""
        return self.scheduler.tick(now)

    def pump(self) -> int:
        """Deliver all queued events in this thread (manual mode)."""
        return self.bus.pump()

    # =========================================================================
    # Devices
    # =========================================================================

    def list_devices(self) -> List[Dict[str, Any]]:
        """Get every device as {name, type, attributes}, in registry order."""
        return [device.to_dict() for device in self.registry.list()]

    def get_device(self, name: str) -> Device:
        return self.registry.get(name)

    def add_device(
        self,
        name: str,
        device_type: "DeviceType | str",
        attributes: Optional[Dict[str, Any]] = None,
    ) -> Device:
        device = self.registry.add(name, device_type, attributes)
        self.rules.rebaseline(name)
        return device

    def remove_device(self, name: str) -> None:
        self.registry.remove(name)
        self.rules.rebaseline(name)

    def issue_command(self, device: str, attribute: str, value: Any) -> ExecutionLogEntry:
        """
        Apply a user command.

        Raises:
            UnknownDeviceError: If the device does not exist
            InvalidAttributeError: If the attribute or value is not acceptable
        """
        return self.coordinator.submit(device, attribute, value, origin=Origin.USER_COMMAND)

    def adjust_command(self, device: str, attribute: str, delta: int) -> ExecutionLogEntry:
        """Step a numeric attribute up or down (e.g. thermostat +1)."""
        return self.coordinator.adjust(device, attribute, delta, origin=Origin.USER_COMMAND)

    # =========================================================================
    # Scheduled tasks
    # =========================================================================

    def schedule_task(
        self,
        device: str,
        attribute: str,
        value: Any,
        at: str,
        recurrence: "Recurrence | str" = Recurrence.ONCE,
    ) -> str:
        return self.scheduler.schedule(device, attribute, value, at, recurrence)

    def cancel_task(self, task_id: str) -> ScheduledTask:
        return self.scheduler.cancel(task_id)

    def purge_tasks(self, task_id: Optional[str] = None) -> int:
        return self.scheduler.purge(task_id)

    def list_tasks(self) -> List[ScheduledTask]:
        return self.scheduler.list()

    # =========================================================================
    # Rules
    # =========================================================================

    def define_rule(
        self,
        condition: "Condition | Dict[str, Any]",
        action: "Action | Dict[str, Any]",
        enabled: bool = True,
    ) -> str:
        return self.rules.define(condition, action, enabled)

    def define_rule_text(
        self,
        condition_device: str,
        condition: str,
        action_device: str,
        action: str,
    ) -> str:
        """
        Define a rule from text, e.g.
        ("Living Room Light", "power = on", "Bedroom Thermostat", "temperature = 72").
        """
        return self.rules.define(
            Condition.parse(condition_device, condition),
            Action.parse(action_device, action),
        )

    def redefine_rule(
        self,
        rule_id: str,
        condition: "Condition | Dict[str, Any]",
        action: "Action | Dict[str, Any]",
    ) -> Rule:
        return self.rules.redefine(rule_id, condition, action)

    def enable_rule(self, rule_id: str) -> Rule:
        return self.rules.enable(rule_id)

    def disable_rule(self, rule_id: str) -> Rule:
        return self.rules.disable(rule_id)

    def remove_rule(self, rule_id: str) -> None:
        self.rules.remove(rule_id)

    def list_rules(self) -> List[Rule]:
        return self.rules.list()

    # =========================================================================
    # Observation
    # =========================================================================

    def subscribe(
        self,
        handler: EventHandler,
        event_type: Optional[str] = None,
        device: Optional[str] = None,
    ) -> Subscription:
        """Subscribe a display/observer to the event stream."""
        return self.bus.subscribe(handler, EventFilter(event_type=event_type, device=device))

    def unsubscribe(self, subscription: Subscription) -> None:
        self.bus.unsubscribe(subscription)

    def execution_log(
        self,
        device: Optional[str] = None,
        origin: Optional[Origin] = None,
        limit: Optional[int] = None,
    ) -> List[ExecutionLogEntry]:
        return self.coordinator.get_log(device, origin, limit)

    def get_diagnostics(
        self,
        kind: Optional[DiagnosticKind] = None,
        limit: int = 50,
    ) -> List[Diagnostic]:
        return self.diagnostics.get(kind, limit)

    # =========================================================================
    # State Export/Import
    # =========================================================================

    def dump_state(self) -> Dict[str, Any]:
        """
        Export the durable record: task and rule definitions plus the
        execution log. Storage is the host's job.
        """
        return {
            "version": 1,
            "scheduler": self.scheduler.dump_state(),
            "rules": self.rules.dump_state(),
            "execution_log": self.coordinator.export_log(),
        }

    def restore_state(self, state: Dict[str, Any]) -> None:
        """Restore a previously exported record."""
        if state.get("version") != 1:
            logger.warning("Unknown state version, skipping restore")
            return
        self.scheduler.restore_state(state.get("scheduler", {}))
        self.rules.restore_state(state.get("rules", {}))
        self.coordinator.restore_log(state.get("execution_log", []))
        logger.info("Restored SmartHome state")
