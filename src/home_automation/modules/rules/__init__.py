"""
Rule engine for home-automation.

Provides condition -> action rules evaluated against live device state.

Features:
- Single attribute comparison conditions (=, !=, <, <=, >, >=)
- Attribute assignment actions, applied through the execution coordinator
- Edge-triggered firing (only on the false -> true transition)
- Device index so only dependent rules are re-evaluated
- Cascade depth bound against rule loops
- Firing history for debugging
"""

from .engine import EngineResult, RuleEngine
from .evaluators import ConditionEvaluator, validate_rule_parts
from .models import (
    Action,
    Condition,
    Operator,
    Rule,
    RuleExecution,
    format_literal,
    parse_literal,
)

__all__ = [
    # Engine
    "RuleEngine",
    "EngineResult",
    # Evaluators
    "ConditionEvaluator",
    "validate_rule_parts",
    # Models
    "Operator",
    "Condition",
    "Action",
    "Rule",
    "RuleExecution",
    "parse_literal",
    "format_literal",
]
