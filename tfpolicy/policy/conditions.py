"""Condition expression trees for policy rules.

A condition is either a leaf that checks one attribute path of a resource,
or an AND/OR node combining child conditions. Paths use dotted notation
(``tags.Owner``, ``root_block_device.encrypted``) and anything that cannot
be resolved is treated as an absent attribute.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from .errors import PolicyConfigError


class Operator(str, Enum):
    """Operators supported by attribute conditions."""

    EXISTS = "exists"
    NOT_EXISTS = "not_exists"
    EQUALS = "equals"
    NOT_EQUALS = "not_equals"
    ONE_OF = "one_of"


# Operators that compare against an expected value
VALUE_OPERATORS = {Operator.EQUALS, Operator.NOT_EQUALS, Operator.ONE_OF}


class _Absent:
    """Marker for an attribute path that does not resolve."""

    _instance = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<absent>"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


def resolve_path(attributes: Mapping[str, Any], path: str) -> Any:
    """Resolve a dotted attribute path against an attribute tree.

    Numeric segments index into lists. A named segment applied to a
    single-element list descends into that element, which is how Terraform
    renders nested blocks such as ``root_block_device``. Explicit nulls are
    treated as absent.

    Args:
        attributes: Resource attribute tree
        path: Dotted attribute path

    Returns:
        The resolved value, or ``ABSENT``
    """
    current: Any = attributes
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return ABSENT
            current = current[segment]
        elif isinstance(current, list):
            if segment.isdigit():
                index = int(segment)
                if index >= len(current):
                    return ABSENT
                current = current[index]
            elif len(current) == 1 and isinstance(current[0], Mapping):
                if segment not in current[0]:
                    return ABSENT
                current = current[0][segment]
            else:
                return ABSENT
        else:
            return ABSENT

        if current is None:
            return ABSENT

    return current


def normalize_value(value: Any) -> Any:
    """Normalize scalars so YAML and Terraform representations compare equal.

    Booleans become ``"true"``/``"false"`` and numbers become strings, with
    integral floats written as integers so ``1`` and ``1.0`` compare equal.
    Other values are returned unchanged.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return value
        if number.is_integer() and "." in value:
            return str(int(number))
    return value


@dataclass(frozen=True)
class ConditionResult:
    """Outcome of evaluating a condition tree against one resource.

    ``applicable`` is False when every leaf in the tree is restricted to
    other resource types; such a result carries no verdict of its own.
    """

    passed: bool
    failed_conditions: Tuple["AttributeCondition", ...] = ()
    applicable: bool = True


NOT_APPLICABLE = ConditionResult(passed=True, applicable=False)


@dataclass(frozen=True)
class AttributeCondition:
    """Leaf condition on a single attribute path.

    A leaf may be restricted to ``resource_types``; it is then ignored for
    resources of any other type. An empty tuple means every type.
    """

    attribute: str
    operator: Operator
    value: Any = None
    resource_types: Tuple[str, ...] = ()

    def applies_to(self, resource_type: Optional[str]) -> bool:
        if not self.resource_types or resource_type is None:
            return True
        return resource_type in self.resource_types

    def evaluate(
        self,
        attributes: Mapping[str, Any],
        collect_failures: bool = True,
        resource_type: Optional[str] = None,
    ) -> ConditionResult:
        if not self.applies_to(resource_type):
            return NOT_APPLICABLE
        actual = resolve_path(attributes, self.attribute)
        if self._check(actual):
            return ConditionResult(passed=True)
        return ConditionResult(passed=False, failed_conditions=(self,))

    def _check(self, actual: Any) -> bool:
        if self.operator == Operator.EXISTS:
            return actual is not ABSENT
        if self.operator == Operator.NOT_EXISTS:
            return actual is ABSENT
        if self.operator == Operator.EQUALS:
            return actual is not ABSENT and normalize_value(actual) == normalize_value(self.value)
        if self.operator == Operator.NOT_EQUALS:
            return actual is ABSENT or normalize_value(actual) != normalize_value(self.value)
        # one_of
        if actual is ABSENT:
            return False
        return normalize_value(actual) in [normalize_value(v) for v in self.value]

    def describe(self) -> str:
        """Human-readable form used in reports."""
        if self.operator in VALUE_OPERATORS:
            return f"{self.attribute} {self.operator.value} {self.value!r}"
        return f"{self.attribute} {self.operator.value}"

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "attribute": self.attribute,
            "operator": self.operator.value,
        }
        if self.operator in VALUE_OPERATORS:
            result["value"] = list(self.value) if isinstance(self.value, tuple) else self.value
        if self.resource_types:
            result["resource_types"] = list(self.resource_types)
        return result


@dataclass(frozen=True)
class AndCondition:
    """Passes when every applicable child passes."""

    children: Tuple["Condition", ...] = field(default_factory=tuple)

    def evaluate(
        self,
        attributes: Mapping[str, Any],
        collect_failures: bool = True,
        resource_type: Optional[str] = None,
    ) -> ConditionResult:
        failed: List[AttributeCondition] = []
        applicable = False
        for child in self.children:
            result = child.evaluate(attributes, collect_failures, resource_type)
            if not result.applicable:
                continue
            applicable = True
            if not result.passed:
                failed.extend(result.failed_conditions)
                if not collect_failures:
                    break
        if not applicable:
            return NOT_APPLICABLE
        return ConditionResult(passed=not failed, failed_conditions=tuple(failed))

    def to_dict(self) -> Dict[str, Any]:
        return {"and": [child.to_dict() for child in self.children]}


@dataclass(frozen=True)
class OrCondition:
    """Passes when at least one applicable child passes."""

    children: Tuple["Condition", ...] = field(default_factory=tuple)

    def evaluate(
        self,
        attributes: Mapping[str, Any],
        collect_failures: bool = True,
        resource_type: Optional[str] = None,
    ) -> ConditionResult:
        failed: List[AttributeCondition] = []
        applicable = False
        for child in self.children:
            result = child.evaluate(attributes, collect_failures, resource_type)
            if not result.applicable:
                continue
            if result.passed:
                return ConditionResult(passed=True)
            applicable = True
            failed.extend(result.failed_conditions)
        if not applicable:
            return NOT_APPLICABLE
        return ConditionResult(passed=False, failed_conditions=tuple(failed))

    def to_dict(self) -> Dict[str, Any]:
        return {"or": [child.to_dict() for child in self.children]}


Condition = Union[AttributeCondition, AndCondition, OrCondition]

# Operator spellings accepted only in Checkov-layout definitions
CHECKOV_OPERATOR_ALIASES = {"within": Operator.ONE_OF}


def parse_condition(data: Any, checkov: bool = False) -> Condition:
    """Build a condition tree from its YAML representation.

    Accepts ``{"and": [...]}``, ``{"or": [...]}`` and leaf mappings with
    ``attribute``, ``operator`` and optional ``value`` keys. Leaves may
    carry ``resource_types`` to restrict them to some of the rule's types.
    With ``checkov`` set, Checkov operator names such as ``within`` are
    accepted as well.

    Raises:
        PolicyConfigError: If the tree is empty or malformed
    """
    if not isinstance(data, Mapping) or not data:
        raise PolicyConfigError("Condition must be a non-empty mapping")

    keys = {str(key).lower(): key for key in data}

    for name, node_class in (("and", AndCondition), ("or", OrCondition)):
        if name in keys:
            if len(data) != 1:
                raise PolicyConfigError(
                    f"'{name}' condition must not have sibling keys: {sorted(map(str, data))}"
                )
            children = data[keys[name]]
            if not isinstance(children, list) or not children:
                raise PolicyConfigError(f"'{name}' condition must be a non-empty list")
            return node_class(
                children=tuple(parse_condition(child, checkov) for child in children)
            )

    return _parse_leaf(data, checkov)


def _parse_operator(raw_operator: Any, checkov: bool) -> Operator:
    name = str(raw_operator).lower()
    if checkov and name in CHECKOV_OPERATOR_ALIASES:
        return CHECKOV_OPERATOR_ALIASES[name]
    try:
        return Operator(name)
    except ValueError:
        raise PolicyConfigError(f"Unknown operator: {raw_operator}") from None


def _parse_leaf_resource_types(raw: Any, attribute: str) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list):
        raise PolicyConfigError(f"resource_types on {attribute} must be a list of strings")
    return tuple(str(resource_type).strip() for resource_type in raw if str(resource_type).strip())


def _parse_leaf(data: Mapping[str, Any], checkov: bool = False) -> AttributeCondition:
    cond_type = data.get("cond_type", "attribute")
    if cond_type != "attribute":
        raise PolicyConfigError(f"Unsupported cond_type: {cond_type}")

    attribute = data.get("attribute")
    if not isinstance(attribute, str) or not attribute.strip():
        raise PolicyConfigError("Attribute condition is missing 'attribute'")

    operator = _parse_operator(data.get("operator"), checkov)

    value = data.get("value")
    if operator in VALUE_OPERATORS and "value" not in data:
        raise PolicyConfigError(
            f"Operator '{operator.value}' on {attribute} requires a value"
        )
    if operator == Operator.ONE_OF:
        if not isinstance(value, list) or not value:
            raise PolicyConfigError(
                f"Operator 'one_of' on {attribute} requires a non-empty list value"
            )
        value = tuple(value)

    return AttributeCondition(
        attribute=attribute.strip(),
        operator=operator,
        value=value,
        resource_types=_parse_leaf_resource_types(data.get("resource_types"), attribute),
    )
