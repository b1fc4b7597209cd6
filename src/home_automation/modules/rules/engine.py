"""
Rule engine - core rule processing logic.

Handles rule definition, edge-triggered evaluation, and cascade bounding.

Evaluation:
    On every StateChanged or ScheduleFired event, each enabled rule whose
    condition references the event's device is re-evaluated. A rule fires
    only when its condition goes from not satisfied to satisfied.

Cascades:
    A rule action causes further StateChanged events, which can fire more
    rules. Every event carries the id of the cascade it belongs to and the
    number of rule firings that led to it (depth). A rule may not fire from
    an event whose depth has reached the bound; the cascade is then aborted
    and reported as RULE_CYCLE_EXCEEDED.
"""

import logging
import threading
import uuid
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, UTC
from typing import Any, Deque, Dict, List, Optional, Union

from home_automation.core.bus import (
    RULE_TRIGGERED,
    SCHEDULE_FIRED,
    STATE_CHANGED,
    Event,
    EventBus,
    EventFilter,
)
from home_automation.core.coordinator import ExecutionCoordinator, Origin
from home_automation.core.diagnostics import DiagnosticKind, Diagnostics
from home_automation.core.errors import AutomationError, NotFoundError, UnknownDeviceError
from home_automation.core.registry import DeviceRegistry
from home_automation.modules.base import HomeModule

from .evaluators import ConditionEvaluator, validate_rule_parts
from .models import Action, Condition, Rule, RuleExecution

logger = logging.getLogger(__name__)

ConditionInput = Union[Condition, Dict[str, Any]]
ActionInput = Union[Action, Dict[str, Any]]


@dataclass
class EngineResult:
    """Result of processing an event."""

    rules_evaluated: int = 0
    rules_triggered: int = 0
    actions_executed: int = 0
    cycle_exceeded: bool = False
    errors: List[str] = field(default_factory=list)


class RuleEngine(HomeModule):
    """
    Core engine for condition -> action rules.

    Responsibilities:
    - Own rule definitions (creation order preserved)
    - Index rules by the device their condition reads
    - Track last-known satisfaction per rule (edge triggering)
    - Submit actions through the ExecutionCoordinator
    - Bound rule cascades
    - Track firing history
    """

    DEFAULT_MAX_DEPTH = 10
    HISTORY_SIZE = 100  # Number of firings to keep in history

    def __init__(
        self,
        registry: DeviceRegistry,
        coordinator: ExecutionCoordinator,
        diagnostics: Optional[Diagnostics] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
        history_size: int = HISTORY_SIZE,
    ) -> None:
        self._registry = registry
        self._coordinator = coordinator
        self._diagnostics = diagnostics or Diagnostics()
        self._evaluator = ConditionEvaluator(registry, self._diagnostics)
        self._max_depth = max_depth
        self._bus: Optional[EventBus] = None

        self._rules: Dict[str, Rule] = {}
        # Condition device -> rule ids, in creation order
        self._index: Dict[str, List[str]] = {}
        # Last-known satisfaction per rule
        self._satisfied: Dict[str, bool] = {}
        # Recently aborted cascades
        self._aborted: Deque[str] = deque(maxlen=64)

        self._history: Deque[RuleExecution] = deque(maxlen=history_size)
        self._lock = threading.RLock()

    @property
    def id(self) -> str:
        return "rules"

    @property
    def max_depth(self) -> int:
        return self._max_depth

    def attach(self, bus: EventBus) -> None:
        """
        Attach the rule engine to the kernel.

        Subscribes to StateChanged and ScheduleFired events.
        """
        logger.info("Attaching RuleEngine")
        self._bus = bus
        bus.subscribe(self._on_event, EventFilter(event_type=STATE_CHANGED))
        bus.subscribe(self._on_event, EventFilter(event_type=SCHEDULE_FIRED))

    # =========================================================================
    # Configuration
    # =========================================================================

    def define(
        self,
        condition: ConditionInput,
        action: ActionInput,
        enabled: bool = True,
    ) -> str:
        """
        Define a new rule.

        A rule whose condition already holds does not fire until the
        condition becomes false and then true again.

        Args:
            condition: Condition (or its dict form)
            action: Action (or its dict form)
            enabled: Whether the rule starts enabled

        Returns:
            The new rule id

        Raises:
            UnknownDeviceError: If a referenced device does not exist
            InvalidAttributeError: If an attribute or literal is invalid
            InvalidRuleError: If the condition or action is malformed
        """
        condition, action = self._prepare(condition, action)
        rule = Rule(id=uuid.uuid4().hex[:8], condition=condition, action=action, enabled=enabled)

        with self._lock:
            self._rules[rule.id] = rule
            self._rebuild_index()
            self._satisfied[rule.id] = self._evaluator.evaluate(condition)

        logger.info(f"Defined rule {rule.id}: {rule.describe()}")
        return rule.id

    def redefine(
        self,
        rule_id: str,
        condition: ConditionInput,
        action: ActionInput,
    ) -> Rule:
        """
        Atomically replace a rule's condition and action.

        The rule keeps its id, position and enabled flag.

        Raises:
            NotFoundError: If the rule does not exist
            UnknownDeviceError, InvalidAttributeError, InvalidRuleError:
                If the new definition is invalid (the old rule is kept)
        """
        condition, action = self._prepare(condition, action)

        with self._lock:
            rule = self._require(rule_id)
            rule = replace(rule, condition=condition, action=action)
            self._rules[rule_id] = rule
            self._rebuild_index()
            self._satisfied[rule_id] = self._evaluator.evaluate(condition)

        logger.info(f"Redefined rule {rule_id}: {rule.describe()}")
        return rule

    def enable(self, rule_id: str) -> Rule:
        """Enable a rule; its satisfaction baseline is taken from current state."""
        return self._set_enabled(rule_id, True)

    def disable(self, rule_id: str) -> Rule:
        """Disable a rule."""
        return self._set_enabled(rule_id, False)

    def _set_enabled(self, rule_id: str, enabled: bool) -> Rule:
        with self._lock:
            rule = self._require(rule_id)
            if rule.enabled != enabled:
                rule = replace(rule, enabled=enabled)
                self._rules[rule_id] = rule
                if enabled:
                    self._satisfied[rule_id] = self._evaluator.evaluate(rule.condition)
                logger.info(f"{'Enabled' if enabled else 'Disabled'} rule {rule_id}")
            return rule

    def remove(self, rule_id: str) -> None:
        """
        Remove a rule.

        Raises:
            NotFoundError: If the rule does not exist
        """
        with self._lock:
            self._require(rule_id)
            del self._rules[rule_id]
            self._satisfied.pop(rule_id, None)
            self._rebuild_index()
        logger.info(f"Removed rule {rule_id}")

    def get(self, rule_id: str) -> Rule:
        """
        Get a rule by id.

        Raises:
            NotFoundError: If the rule does not exist
        """
        with self._lock:
            return self._require(rule_id)

    def list(self) -> List[Rule]:
        """Get all rules in creation order."""
        with self._lock:
            return list(self._rules.values())

    def rebaseline(self, device: str) -> None:
        """
        Re-sample satisfaction of the rules whose condition reads `device`.

        Call after the device is added or removed; neither publishes a
        StateChanged. A missing device counts as not satisfied.
        """
        with self._lock:
            present = self._registry.has(device)
            for rule_id in self._index.get(device, []):
                rule = self._rules[rule_id]
                self._satisfied[rule_id] = present and self._evaluator.evaluate(rule.condition)
        logger.debug(f"Re-baselined rules depending on {device}")

    def _require(self, rule_id: str) -> Rule:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise NotFoundError(f"Rule '{rule_id}' not found")
        return rule

    def _prepare(self, condition: ConditionInput, action: ActionInput) -> tuple:
        if isinstance(condition, dict):
            condition = Condition.from_dict(condition)
        if isinstance(action, dict):
            action = Action.from_dict(action)
        action = validate_rule_parts(self._registry, condition, action)
        return condition, action

    def _rebuild_index(self) -> None:
        index: Dict[str, List[str]] = {}
        for rule in self._rules.values():
            index.setdefault(rule.condition.device, []).append(rule.id)
        self._index = index

    # =========================================================================
    # Event Processing
    # =========================================================================

    def _on_event(self, event: Event) -> None:
        """Bus handler for StateChanged and ScheduleFired events."""
        result = self.process_event(event)

        if result.rules_triggered > 0:
            logger.info(
                f"Processed {event.type} for {event.device}: "
                f"{result.rules_triggered}/{result.rules_evaluated} rules triggered, "
                f"{result.actions_executed} actions executed"
            )

    def process_event(self, event: Event) -> EngineResult:
        """
        Re-evaluate the rules that depend on the event's device and fire
        the ones whose condition just became satisfied.

        Args:
            event: A StateChanged or ScheduleFired event

        Returns:
            Result with counts of rules evaluated/triggered
        """
        result = EngineResult()
        if event.type not in (STATE_CHANGED, SCHEDULE_FIRED) or not event.device:
            return result

        to_fire: List[Rule] = []
        with self._lock:
            for rule_id in self._index.get(event.device, []):
                rule = self._rules[rule_id]
                result.rules_evaluated += 1

                if not rule.enabled:
                    continue

                satisfied = self._evaluator.evaluate(rule.condition, event)
                previous = self._satisfied.get(rule_id, False)
                self._satisfied[rule_id] = satisfied

                if satisfied and not previous:
                    to_fire.append(rule)

            if not to_fire:
                return result

            if event.cascade_id in self._aborted:
                logger.debug(f"Cascade {event.cascade_id} was aborted; not firing")
                return result

            if event.depth >= self._max_depth:
                self._aborted.append(event.cascade_id)
                result.cycle_exceeded = True

        if result.cycle_exceeded:
            rule_ids = [rule.id for rule in to_fire]
            message = (
                f"Rule cascade {event.cascade_id} reached depth {event.depth} "
                f"(limit {self._max_depth}); not firing {', '.join(rule_ids)}"
            )
            result.errors.append(message)
            self._diagnostics.record(
                DiagnosticKind.RULE_CYCLE_EXCEEDED,
                message,
                device=event.device,
                cascade_id=event.cascade_id,
                depth=event.depth,
                rule_ids=rule_ids,
            )
            return result

        for rule in to_fire:
            result.rules_triggered += 1
            self._fire(rule, event, result)

        return result

    def _fire(self, rule: Rule, event: Event, result: EngineResult) -> None:
        """Publish RuleTriggered and submit the rule's action."""
        logger.debug(f"Rule {rule.id} triggered by {event.type} (depth {event.depth})")

        if self._bus is not None:
            self._bus.publish(
                Event(
                    type=RULE_TRIGGERED,
                    source="rules",
                    device=rule.action.device,
                    payload={
                        "rule_id": rule.id,
                        "condition": rule.condition.describe(),
                        "action": rule.action.describe(),
                        "trigger_event": event.type,
                    },
                    cascade_id=event.cascade_id,
                    depth=event.depth,
                )
            )

        error: Optional[str] = None
        try:
            self._coordinator.submit(
                rule.action.device,
                rule.action.attribute,
                rule.action.value,
                origin=Origin.RULE,
                cascade_id=event.cascade_id,
                depth=event.depth + 1,
                source_id=rule.id,
            )
            result.actions_executed += 1
        except UnknownDeviceError as e:
            error = str(e)
            self._diagnostics.record(
                DiagnosticKind.DANGLING_REFERENCE,
                f"Rule {rule.id} targets a missing device: {e}",
                device=rule.action.device,
                rule_id=rule.id,
            )
        except AutomationError as e:
            error = str(e)
            self._diagnostics.record(
                DiagnosticKind.ACTION_FAILED,
                f"Rule {rule.id} action could not be applied: {e}",
                device=rule.action.device,
                rule_id=rule.id,
            )

        if error:
            result.errors.append(error)

        self._history.append(
            RuleExecution(
                rule_id=rule.id,
                trigger_event_type=event.type,
                cascade_id=event.cascade_id,
                depth=event.depth,
                success=error is None,
                error=error,
                timestamp=datetime.now(UTC),
            )
        )

    # =========================================================================
    # History
    # =========================================================================

    def get_history(
        self,
        rule_id: Optional[str] = None,
        limit: int = 20,
    ) -> List[RuleExecution]:
        """
        Get firing history.

        Args:
            rule_id: Filter by rule (optional)
            limit: Maximum entries to return

        Returns:
            List of RuleExecution records (newest first)
        """
        result = []
        for execution in reversed(list(self._history)):
            if rule_id and execution.rule_id != rule_id:
                continue
            result.append(execution)
            if len(result) >= limit:
                break
        return result

    # =========================================================================
    # State Export/Import
    # =========================================================================

    def dump_state(self) -> Dict:
        """Export rule definitions for persistence."""
        return {
            "version": 1,
            "rules": [rule.to_dict() for rule in self.list()],
        }

    def restore_state(self, state: Dict) -> None:
        """
        Replace all rules with previously exported ones.

        Satisfaction is re-baselined from current device state, so restoring
        never fires a rule by itself.
        """
        if state.get("version") != 1:
            logger.warning("Unknown rule state version, skipping restore")
            return

        rules = [Rule.from_dict(data) for data in state.get("rules", [])]
        with self._lock:
            self._rules = {rule.id: rule for rule in rules}
            self._rebuild_index()
            self._satisfied = {
                rule.id: self._evaluator.evaluate(rule.condition) for rule in rules
            }
            self._aborted.clear()
        logger.info(f"Restored {len(rules)} rule(s)")
