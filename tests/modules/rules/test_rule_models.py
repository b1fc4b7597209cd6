"""Tests for rule data models."""

import pytest

from home_automation.core.errors import InvalidRuleError
from home_automation.modules.rules import Action, Condition, Operator, Rule, parse_literal


class TestOperator:
    def test_parse(self):
        assert Operator.parse(">=") == Operator.GE
        assert Operator.parse("==") == Operator.EQ
        assert Operator.parse(Operator.NE) == Operator.NE

    def test_parse_unknown(self):
        with pytest.raises(InvalidRuleError):
            Operator.parse("=~")

    def test_is_ordering(self):
        assert Operator.GT.is_ordering
        assert not Operator.EQ.is_ordering


class TestLiterals:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("on", True),
            ("TRUE", True),
            ("off", False),
            ("72", 72),
            ("-3", -3),
            ("2.5", 2.5),
            ('"hello"', "hello"),
        ],
    )
    def test_parse_literal(self, text, expected):
        value = parse_literal(text)
        assert value == expected
        assert type(value) is type(expected)


class TestCondition:
    """Tests for condition parsing and matching."""

    def test_parse(self):
        condition = Condition.parse("Bedroom Thermostat", "temperature >= 75")
        assert condition == Condition("Bedroom Thermostat", "temperature", Operator.GE, 75)

    def test_parse_without_spaces(self):
        condition = Condition.parse("Living Room Light", "power=on")
        assert condition.operator == Operator.EQ
        assert condition.value is True

    @pytest.mark.parametrize("expr", ["", "   ", "temperature", "temperature >=", ">= 75"])
    def test_parse_malformed(self, expr):
        with pytest.raises(InvalidRuleError):
            Condition.parse("Bedroom Thermostat", expr)

    def test_matches(self):
        condition = Condition("T", "temperature", Operator.GT, 72)
        assert condition.matches(73)
        assert not condition.matches(72)

    def test_incomparable_types_do_not_match(self):
        condition = Condition("T", "temperature", Operator.GT, 72)
        assert not condition.matches("warm")

    def test_dict_round_trip(self):
        condition = Condition("Living Room Light", "power", Operator.NE, False)
        assert Condition.from_dict(condition.to_dict()) == condition

    def test_from_dict_missing_key(self):
        with pytest.raises(InvalidRuleError):
            Condition.from_dict({"device": "X", "attribute": "power"})


class TestAction:
    def test_parse(self):
        assert Action.parse("Bedroom Thermostat", "temperature = 72") == Action(
            "Bedroom Thermostat", "temperature", 72
        )

    @pytest.mark.parametrize("expr", ["", "temperature", "temperature > 72", "= 72"])
    def test_parse_malformed(self, expr):
        with pytest.raises(InvalidRuleError):
            Action.parse("Bedroom Thermostat", expr)

    def test_parse_requires_device(self):
        with pytest.raises(InvalidRuleError):
            Action.parse("", "power = on")


class TestRule:
    def test_describe(self):
        rule = Rule(
            id="r1",
            condition=Condition("Living Room Light", "power", Operator.EQ, True),
            action=Action("Bedroom Thermostat", "temperature", 72),
        )
        assert rule.describe() == (
            "If Living Room Light power = true, then Bedroom Thermostat temperature = 72"
        )

    def test_describe_disabled(self):
        rule = Rule(
            id="r1",
            condition=Condition("Cam", "armed", Operator.EQ, True),
            action=Action("Hall Switch", "power", True),
            enabled=False,
        )
        assert rule.describe().endswith("(disabled)")

    def test_dict_round_trip(self):
        rule = Rule(
            id="r1",
            condition=Condition("Bedroom Thermostat", "temperature", Operator.LT, 65),
            action=Action("Living Room Light", "power", False),
            enabled=False,
        )
        assert Rule.from_dict(rule.to_dict()) == rule
