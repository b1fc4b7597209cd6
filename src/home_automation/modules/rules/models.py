"""
Data models for the Rule engine.

A rule is a single attribute comparison (condition) paired with a single
attribute assignment (action).
"""

import operator
import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from home_automation.core.errors import InvalidRuleError


# =============================================================================
# Operators and literals
# =============================================================================


class Operator(Enum):
    """Comparison operators usable in a condition."""

    EQ = "="
    NE = "!="
    LT = "<"
    LE = "<="
    GT = ">"
    GE = ">="

    @property
    def is_ordering(self) -> bool:
        return self not in (Operator.EQ, Operator.NE)

    @classmethod
    def parse(cls, symbol: "str | Operator") -> "Operator":
        if isinstance(symbol, cls):
            return symbol
        symbol = symbol.strip()
        if symbol == "==":
            return cls.EQ
        try:
            return cls(symbol)
        except ValueError:
            raise InvalidRuleError(f"Unknown operator: {symbol!r}") from None

    def apply(self, actual: Any, expected: Any) -> bool:
        return _OPERATORS[self](actual, expected)


_OPERATORS: Dict[Operator, Callable[[Any, Any], bool]] = {
    Operator.EQ: operator.eq,
    Operator.NE: operator.ne,
    Operator.LT: operator.lt,
    Operator.LE: operator.le,
    Operator.GT: operator.gt,
    Operator.GE: operator.ge,
}

# A literal never starts with an operator character ("temperature >=" is malformed)
_CONDITION_EXPR = re.compile(r"^\s*([A-Za-z_]\w*)\s*(==|!=|<=|>=|=|<|>)\s*([^=<>!\s].*?)\s*$")
_ACTION_EXPR = re.compile(r"^\s*([A-Za-z_]\w*)\s*=\s*([^=<>!\s].*?)\s*$")
_INT = re.compile(r"^[+-]?\d+$")
_FLOAT = re.compile(r"^[+-]?(\d+\.\d*|\.\d+)$")


def parse_literal(text: str) -> Any:
    """
    Parse a literal from rule text.

    "true"/"on" and "false"/"off" become booleans, digits become numbers,
    anything else is a string (surrounding quotes removed).
    """
    value = text.strip()
    lowered = value.lower()
    if lowered in ("true", "on"):
        return True
    if lowered in ("false", "off"):
        return False
    if _INT.match(value):
        return int(value)
    if _FLOAT.match(value):
        return float(value)
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "'\"":
        return value[1:-1]
    return value


def format_literal(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


# =============================================================================
# Condition and Action
# =============================================================================


@dataclass(frozen=True)
class Condition:
    """Compare one device attribute against a literal."""

    device: str
    attribute: str
    operator: Operator
    value: Any

    def matches(self, actual: Any) -> bool:
        """Apply the comparison; incomparable types never match."""
        try:
            return self.operator.apply(actual, self.value)
        except TypeError:
            return False

    def describe(self) -> str:
        return f"{self.device} {self.attribute} {self.operator.value} {format_literal(self.value)}"

    @classmethod
    def parse(cls, device: str, expr: str) -> "Condition":
        """
        Build a condition from "<attribute> <op> <literal>", e.g. "temperature >= 75".

        Raises:
            InvalidRuleError: If the expression is empty or malformed
        """
        if not device or not expr or not expr.strip():
            raise InvalidRuleError("Condition device and expression are required")
        match = _CONDITION_EXPR.match(expr)
        if not match:
            raise InvalidRuleError(f"Malformed condition: {expr!r}")
        attribute, symbol, literal = match.groups()
        return cls(device, attribute, Operator.parse(symbol), parse_literal(literal))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "device": self.device,
            "attribute": self.attribute,
            "operator": self.operator.value,
            "value": self.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Condition":
        try:
            return cls(
                device=data["device"],
                attribute=data["attribute"],
                operator=Operator.parse(data.get("operator", "=")),
                value=data["value"],
            )
        except KeyError as e:
            raise InvalidRuleError(f"Condition is missing {e}") from None


@dataclass(frozen=True)
class Action:
    """Assign a value to one device attribute."""

    device: str
    attribute: str
    value: Any

    def describe(self) -> str:
        return f"{self.device} {self.attribute} = {format_literal(self.value)}"

    @classmethod
    def parse(cls, device: str, expr: str) -> "Action":
        """
        Build an action from "<attribute> = <literal>", e.g. "power = on".

        Raises:
            InvalidRuleError: If the expression is empty or malformed
        """
        if not device or not expr or not expr.strip():
            raise InvalidRuleError("Action device and expression are required")
        match = _ACTION_EXPR.match(expr)
        if not match:
            raise InvalidRuleError(f"Malformed action: {expr!r}")
        attribute, literal = match.groups()
        return cls(device, attribute, parse_literal(literal))

    def to_dict(self) -> Dict[str, Any]:
        return {"device": self.device, "attribute": self.attribute, "value": self.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Action":
        try:
            return cls(device=data["device"], attribute=data["attribute"], value=data["value"])
        except KeyError as e:
            raise InvalidRuleError(f"Action is missing {e}") from None


# =============================================================================
# Rule
# =============================================================================


@dataclass(frozen=True)
class Rule:
    """A complete automation rule.

    Consists of:
    - id: Unique identifier
    - condition: Comparison evaluated against device state
    - action: Assignment submitted when the condition becomes true
    - enabled: Whether the rule is evaluated
    """

    id: str
    condition: Condition
    action: Action
    enabled: bool = True

    def describe(self) -> str:
        """Human-readable summary for rule lists."""
        text = f"If {self.condition.describe()}, then {self.action.describe()}"
        if not self.enabled:
            text += " (disabled)"
        return text

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to dict for storage/transport."""
        return {
            "id": self.id,
            "enabled": self.enabled,
            "condition": self.condition.to_dict(),
            "action": self.action.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Rule":
        """Deserialize from dict."""
        return cls(
            id=data["id"],
            condition=Condition.from_dict(data["condition"]),
            action=Action.from_dict(data["action"]),
            enabled=data.get("enabled", True),
        )


# =============================================================================
# Execution Records
# =============================================================================


@dataclass
class RuleExecution:
    """Record of a rule firing (for history/debugging)."""

    rule_id: str
    trigger_event_type: str
    cascade_id: str
    depth: int
    success: bool
    error: Optional[str]
    timestamp: datetime
