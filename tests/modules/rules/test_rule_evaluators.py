"""Tests for condition evaluation and rule validation."""

import pytest

from home_automation.core.bus import SCHEDULE_FIRED, Event, state_changed
from home_automation.core.devices import DeviceType
from home_automation.core.diagnostics import DiagnosticKind, Diagnostics
from home_automation.core.errors import InvalidAttributeError, InvalidRuleError, UnknownDeviceError
from home_automation.core.registry import DeviceRegistry
from home_automation.modules.rules import (
    Action,
    Condition,
    ConditionEvaluator,
    Operator,
    validate_rule_parts,
)


@pytest.fixture
def registry():
    registry = DeviceRegistry()
    registry.add("Living Room Light", DeviceType.LIGHT)
    registry.add("Bedroom Thermostat", DeviceType.THERMOSTAT)
    return registry


@pytest.fixture
def diagnostics():
    return Diagnostics()


@pytest.fixture
def evaluator(registry, diagnostics):
    return ConditionEvaluator(registry, diagnostics)


class TestConditionEvaluator:
    """Tests for ConditionEvaluator."""

    def test_reads_live_state(self, evaluator, registry):
        condition = Condition("Bedroom Thermostat", "temperature", Operator.GE, 75)
        assert not evaluator.evaluate(condition)

        registry.set("Bedroom Thermostat", "temperature", 76)
        assert evaluator.evaluate(condition)

    def test_uses_event_value_for_own_attribute(self, evaluator, registry):
        """The event being processed wins over live state that has moved on."""
        condition = Condition("Living Room Light", "power", Operator.EQ, True)
        event = state_changed("Living Room Light", "power", False, True)

        registry.set("Living Room Light", "power", False)
        assert evaluator.evaluate(condition, event)
        assert not evaluator.evaluate(condition)

    def test_event_for_other_attribute_uses_live_state(self, evaluator):
        condition = Condition("Living Room Light", "power", Operator.EQ, True)
        event = state_changed("Living Room Light", "brightness", 50, 80)
        assert not evaluator.evaluate(condition, event)

    def test_schedule_fired_uses_live_state(self, evaluator, registry):
        condition = Condition("Living Room Light", "power", Operator.EQ, True)
        registry.set("Living Room Light", "power", True)
        event = Event(type=SCHEDULE_FIRED, source="scheduler", device="Living Room Light")
        assert evaluator.evaluate(condition, event)

    def test_missing_device_is_unsatisfied_and_reported(self, evaluator, diagnostics):
        condition = Condition("Garage", "power", Operator.EQ, True)
        assert not evaluator.evaluate(condition)
        assert diagnostics.count(DiagnosticKind.DANGLING_REFERENCE) == 1


class TestValidateRuleParts:
    """Tests for validate_rule_parts."""

    def test_valid_rule_action_clamped(self, registry):
        action = validate_rule_parts(
            registry,
            Condition("Living Room Light", "power", Operator.EQ, True),
            Action("Bedroom Thermostat", "temperature", 90),
        )
        assert action.value == 80

    def test_unknown_condition_device(self, registry):
        with pytest.raises(UnknownDeviceError):
            validate_rule_parts(
                registry,
                Condition("Garage", "power", Operator.EQ, True),
                Action("Living Room Light", "power", True),
            )

    def test_unknown_action_attribute(self, registry):
        with pytest.raises(InvalidAttributeError):
            validate_rule_parts(
                registry,
                Condition("Living Room Light", "power", Operator.EQ, True),
                Action("Living Room Light", "colour", "red"),
            )

    def test_condition_literal_type_checked(self, registry):
        with pytest.raises(InvalidAttributeError):
            validate_rule_parts(
                registry,
                Condition("Living Room Light", "power", Operator.EQ, 1),
                Action("Living Room Light", "brightness", 10),
            )

    def test_ordering_on_boolean_rejected(self, registry):
        with pytest.raises(InvalidRuleError):
            validate_rule_parts(
                registry,
                Condition("Living Room Light", "power", Operator.GT, False),
                Action("Bedroom Thermostat", "power", True),
            )
