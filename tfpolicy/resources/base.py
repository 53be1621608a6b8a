"""Resource model shared by all resource sources.

A resource is a declared infrastructure entity (for example
``aws_s3_bucket.logs``) with a fully resolved attribute tree and any
suppression markers that opt it out of specific rules.
"""

import copy
import re
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional


# Matches count/for_each instance keys such as [0] or ["blue"]
INSTANCE_KEY_PATTERN = re.compile(r"\[[^\]]*\]")

DEFAULT_SUPPRESSION_REASON = "No reason provided"


class ResourceLoadError(Exception):
    """Raised when a resource source cannot be read or understood."""


@dataclass(frozen=True)
class Resource:
    """A typed infrastructure entity with a tree-shaped attribute bag."""

    id: str
    type: str
    attributes: Mapping[str, Any] = field(default_factory=dict)
    suppressions: Mapping[str, str] = field(default_factory=dict)
    file_path: Optional[str] = None

    @property
    def tags(self) -> Dict[str, Any]:
        """Tag key-value pairs (the ``tags`` map of the attribute tree)."""
        tags = self.attributes.get("tags")
        return dict(tags) if isinstance(tags, Mapping) else {}

    @property
    def block_key(self) -> str:
        """``type.name`` key matching a ``resource`` block in source files.

        Module prefixes and instance keys are dropped, so
        ``module.app.aws_s3_bucket.logs[0]`` maps to ``aws_s3_bucket.logs``.
        """
        address = INSTANCE_KEY_PATTERN.sub("", self.id)
        parts = address.split(".")
        if len(parts) >= 2:
            return ".".join(parts[-2:])
        return address

    def suppression_for(self, rule_id: str) -> Optional[str]:
        """Return the suppression reason for a rule, or None."""
        return self.suppressions.get(rule_id)

    def with_suppressions(self, suppressions: Mapping[str, str]) -> "Resource":
        """Return a copy carrying additional suppression markers."""
        merged = dict(self.suppressions)
        merged.update(suppressions)
        return replace(self, suppressions=merged)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "attributes": copy.deepcopy(dict(self.attributes)),
            "suppressions": dict(self.suppressions),
            "file_path": self.file_path,
        }


def parse_suppressions(raw: Any, resource_id: str = "") -> Dict[str, str]:
    """Normalize suppression markers to a ``rule id -> reason`` mapping.

    Accepts a mapping of rule ids to reasons, or a list whose items are
    rule id strings or ``{"id": ..., "reason": ...}`` mappings.

    Raises:
        ResourceLoadError: If the markers have an unexpected shape
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        return {
            str(rule_id): str(reason) if reason else DEFAULT_SUPPRESSION_REASON
            for rule_id, reason in raw.items()
        }
    if isinstance(raw, list):
        suppressions = {}
        for item in raw:
            if isinstance(item, str):
                suppressions[item] = DEFAULT_SUPPRESSION_REASON
            elif isinstance(item, Mapping) and item.get("id"):
                reason = item.get("reason") or item.get("comment")
                suppressions[str(item["id"])] = str(reason) if reason else DEFAULT_SUPPRESSION_REASON
            else:
                raise ResourceLoadError(
                    f"Invalid suppression entry on {resource_id or 'resource'}: {item!r}"
                )
        return suppressions
    raise ResourceLoadError(
        f"Suppressions on {resource_id or 'resource'} must be a mapping or list"
    )
