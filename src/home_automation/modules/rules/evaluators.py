"""
Condition evaluation for the Rule engine.

Checks a rule's condition against device state.
"""

import logging
from typing import Any, Optional

from home_automation.core.bus import STATE_CHANGED, Event
from home_automation.core.devices import attribute_spec
from home_automation.core.diagnostics import DiagnosticKind, Diagnostics
from home_automation.core.errors import InvalidAttributeError, InvalidRuleError, UnknownDeviceError
from home_automation.core.registry import DeviceRegistry

from .models import Action, Condition

logger = logging.getLogger(__name__)

_MISSING = object()


class ConditionEvaluator:
    """
    Evaluates rule conditions.

    The value seen by a condition is the one carried by the StateChanged
    event being processed when the event is about the condition's own
    attribute, and live registry state otherwise. Each rule therefore sees
    state changes in the order they were published, even if the registry
    has already moved on.
    """

    def __init__(
        self,
        registry: DeviceRegistry,
        diagnostics: Optional[Diagnostics] = None,
    ) -> None:
        self._registry = registry
        self._diagnostics = diagnostics

    def evaluate(self, condition: Condition, event: Optional[Event] = None) -> bool:
        """
        Evaluate a condition.

        A dangling device reference is reported and treated as not satisfied.

        Args:
            condition: The condition to evaluate
            event: The event being processed, if any

        Returns:
            True if condition is met, False otherwise
        """
        actual = self._current_value(condition, event)
        if actual is _MISSING:
            return False

        result = condition.matches(actual)
        logger.debug(f"Condition {condition.describe()}: actual={actual!r} -> {result}")
        return result

    def _current_value(self, condition: Condition, event: Optional[Event]) -> Any:
        if (
            event is not None
            and event.type == STATE_CHANGED
            and event.device == condition.device
            and event.payload.get("attribute") == condition.attribute
        ):
            return event.payload.get("new")

        try:
            return self._registry.get_value(condition.device, condition.attribute)
        except UnknownDeviceError:
            if self._diagnostics:
                self._diagnostics.record(
                    DiagnosticKind.DANGLING_REFERENCE,
                    f"Condition references missing device '{condition.device}'",
                    device=condition.device,
                )
            else:
                logger.warning(f"Device not found: {condition.device}")
            return _MISSING
        except InvalidAttributeError as e:
            logger.warning(f"Condition attribute unavailable: {e}")
            return _MISSING


def validate_rule_parts(registry: DeviceRegistry, condition: Condition, action: Action) -> Action:
    """
    Check a condition/action pair against the registry's schemas.

    Returns:
        The action with its value normalized (clamped) for the target attribute

    Raises:
        UnknownDeviceError: If either device does not exist
        InvalidAttributeError: If an attribute or literal is invalid
        InvalidRuleError: If an ordering operator is used on a boolean attribute
    """
    device = registry.get(condition.device)
    spec = attribute_spec(device.type, condition.device, condition.attribute)
    spec.normalize(condition.device, condition.attribute, condition.value)
    if condition.operator.is_ordering and not spec.is_numeric:
        raise InvalidRuleError(
            f"Operator {condition.operator.value} cannot be used on "
            f"{condition.device}.{condition.attribute}"
        )

    value = registry.validate(action.device, action.attribute, action.value)
    return Action(action.device, action.attribute, value)
