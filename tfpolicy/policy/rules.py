"""Policy rule definitions for tfpolicy.

A rule names the resource types it targets, a severity, and the condition
tree a resource of those types must satisfy. Rules are written in YAML,
either in the native layout or in the Checkov custom policy layout
(``metadata`` + ``definition``).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .conditions import Condition, parse_condition
from .errors import PolicyConfigError


class Severity(str, Enum):
    """Rule severity, ordered LOW < MEDIUM < HIGH < CRITICAL."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def level(self) -> int:
        return SEVERITY_LEVELS[self]

    def __lt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level < other.level

    def __le__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level <= other.level

    def __gt__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level > other.level

    def __ge__(self, other):
        if not isinstance(other, Severity):
            return NotImplemented
        return self.level >= other.level

    @classmethod
    def parse(cls, value: Any) -> "Severity":
        """Parse a severity name case-insensitively.

        Raises:
            ValueError: If the name is not a known severity
        """
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(
                f"Unknown severity: {value}. Must be one of: "
                f"{', '.join(s.value for s in cls)}"
            ) from None


# Severity level ordering (higher = more severe)
SEVERITY_LEVELS = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


@dataclass(frozen=True)
class PolicyRule:
    """A named, severity-tagged condition checked against resources."""

    id: str
    name: str
    severity: Severity
    resource_types: Tuple[str, ...]
    condition: Condition
    category: Optional[str] = None
    guideline: Optional[str] = None
    source: Optional[str] = None

    def applies_to(self, resource_type: str) -> bool:
        """Check whether resources of this type are targeted by the rule."""
        return resource_type in self.resource_types

    def to_dict(self) -> Dict[str, Any]:
        """Convert rule to dictionary for serialization."""
        return {
            "id": self.id,
            "name": self.name,
            "severity": self.severity.value,
            "resource_types": list(self.resource_types),
            "condition": self.condition.to_dict(),
            "category": self.category,
            "guideline": self.guideline,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], source: Optional[str] = None) -> "PolicyRule":
        """Create a rule from either supported YAML layout.

        Raises:
            PolicyConfigError: If the rule is malformed
        """
        if not isinstance(data, Mapping):
            raise PolicyConfigError(
                f"Rule must be a mapping, got {type(data).__name__}", source=source
            )
        if "metadata" in data or "definition" in data:
            return _from_checkov_dict(data, source)
        return _from_native_dict(data, source)


def _require_id(raw_id: Any, source: Optional[str]) -> str:
    if not isinstance(raw_id, str) or not raw_id.strip():
        raise PolicyConfigError("Rule is missing a string 'id'", source=source)
    return raw_id.strip()


def _parse_severity(raw: Any, rule_id: str, source: Optional[str]) -> Severity:
    if raw is None:
        raise PolicyConfigError("Rule is missing 'severity'", rule_id=rule_id, source=source)
    try:
        return Severity.parse(raw)
    except ValueError as e:
        raise PolicyConfigError(str(e), rule_id=rule_id, source=source) from None


def _parse_resource_types(raw: Any, rule_id: str, source: Optional[str]) -> Tuple[str, ...]:
    if isinstance(raw, str):
        raw = [raw]
    if not isinstance(raw, list) or not raw:
        raise PolicyConfigError(
            "Rule must target a non-empty list of resource_types",
            rule_id=rule_id,
            source=source,
        )
    # Keep first-seen order, drop duplicates
    seen: List[str] = []
    for resource_type in raw:
        resource_type = str(resource_type).strip()
        if resource_type and resource_type not in seen:
            seen.append(resource_type)
    if not seen:
        raise PolicyConfigError(
            "Rule must target a non-empty list of resource_types",
            rule_id=rule_id,
            source=source,
        )
    return tuple(seen)


def _parse_rule_condition(
    raw: Any, rule_id: str, source: Optional[str], checkov: bool = False
) -> Condition:
    if raw is None:
        raise PolicyConfigError("Rule has an empty condition", rule_id=rule_id, source=source)
    try:
        return parse_condition(raw, checkov=checkov)
    except PolicyConfigError as e:
        raise PolicyConfigError(e.message, rule_id=rule_id, source=source) from None


def _from_native_dict(data: Mapping[str, Any], source: Optional[str]) -> PolicyRule:
    rule_id = _require_id(data.get("id"), source)
    return PolicyRule(
        id=rule_id,
        name=str(data.get("name") or rule_id),
        severity=_parse_severity(data.get("severity"), rule_id, source),
        resource_types=_parse_resource_types(data.get("resource_types"), rule_id, source),
        condition=_parse_rule_condition(data.get("condition"), rule_id, source),
        category=data.get("category"),
        guideline=data.get("guideline"),
        source=source,
    )


def _collect_leaf_resource_types(definition: Any) -> List[str]:
    """Union of ``resource_types`` declared on Checkov-style leaves.

    The leaves keep their own types, so each one is only checked against
    resources of the types it names.
    """
    found: List[str] = []
    if isinstance(definition, Mapping):
        declared = definition.get("resource_types")
        if isinstance(declared, str):
            declared = [declared]
        for resource_type in declared or []:
            if resource_type not in found:
                found.append(resource_type)
        for key in ("and", "or", "AND", "OR"):
            for child in definition.get(key) or []:
                for resource_type in _collect_leaf_resource_types(child):
                    if resource_type not in found:
                        found.append(resource_type)
    return found


def _from_checkov_dict(data: Mapping[str, Any], source: Optional[str]) -> PolicyRule:
    metadata = data.get("metadata") or {}
    if not isinstance(metadata, Mapping):
        raise PolicyConfigError("'metadata' must be a mapping", source=source)

    rule_id = _require_id(metadata.get("id"), source)
    definition = data.get("definition")
    resource_types = data.get("resource_types") or _collect_leaf_resource_types(definition)

    return PolicyRule(
        id=rule_id,
        name=str(metadata.get("name") or rule_id),
        severity=_parse_severity(metadata.get("severity"), rule_id, source),
        resource_types=_parse_resource_types(resource_types, rule_id, source),
        condition=_parse_rule_condition(definition, rule_id, source, checkov=True),
        category=metadata.get("category"),
        guideline=metadata.get("guideline"),
        source=source,
    )
