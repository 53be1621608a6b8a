"""Policy rules and their condition language."""

from .conditions import (
    ABSENT,
    AndCondition,
    AttributeCondition,
    Condition,
    ConditionResult,
    Operator,
    OrCondition,
    parse_condition,
    resolve_path,
)
from .errors import PolicyConfigError
from .loader import RuleSet, load_rule_file, load_rules
from .rules import PolicyRule, Severity

__all__ = [
    "ABSENT",
    "AndCondition",
    "AttributeCondition",
    "Condition",
    "ConditionResult",
    "Operator",
    "OrCondition",
    "PolicyConfigError",
    "PolicyRule",
    "RuleSet",
    "Severity",
    "load_rule_file",
    "load_rules",
    "parse_condition",
    "resolve_path",
]
