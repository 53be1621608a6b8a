"""Terraform plan JSON parser.

Reads the output of ``terraform show -json <planfile>`` and turns the
planned values of every managed resource, including those declared in
child modules, into Resource objects.
"""

import copy
import json
from pathlib import Path
from typing import Any, Dict, List, Union

from ..common.logger import get_logger
from .base import Resource, ResourceLoadError

logger = get_logger("plan_parser")


class TerraformPlanParser:
    """Parser for Terraform plan JSON documents."""

    def parse_file(self, path: Union[str, Path]) -> List[Resource]:
        """Parse a plan JSON file.

        Args:
            path: Path to the JSON plan

        Returns:
            List of managed resources in plan order

        Raises:
            ResourceLoadError: If the file is unreadable or not a plan
        """
        plan_file = Path(path)
        try:
            with plan_file.open("r") as f:
                plan = json.load(f)
        except OSError as e:
            raise ResourceLoadError(f"Cannot read plan file {plan_file}: {e}") from e
        except json.JSONDecodeError as e:
            raise ResourceLoadError(f"Invalid JSON in plan file {plan_file}: {e}") from e

        return self.parse(plan, source=str(plan_file))

    def parse(self, plan: Dict[str, Any], source: str = "<plan>") -> List[Resource]:
        """Parse an already decoded plan document.

        Raises:
            ResourceLoadError: If the document has no planned values
        """
        if not isinstance(plan, dict) or "planned_values" not in plan:
            raise ResourceLoadError(f"{source} is not a Terraform plan (missing planned_values)")

        root_module = plan["planned_values"].get("root_module") or {}
        resources: List[Resource] = []
        self._collect_module(root_module, resources)

        logger.info(f"Parsed {len(resources)} resource(s) from {source}")
        return resources

    def _collect_module(self, module: Dict[str, Any], resources: List[Resource]) -> None:
        for entry in module.get("resources", []):
            if entry.get("mode", "managed") != "managed":
                continue
            address = entry.get("address")
            resource_type = entry.get("type")
            if not address or not resource_type:
                logger.debug(f"Skipping plan entry without address or type: {entry}")
                continue
            resources.append(
                Resource(
                    id=address,
                    type=resource_type,
                    attributes=copy.deepcopy(entry.get("values") or {}),
                )
            )

        for child in module.get("child_modules", []):
            self._collect_module(child, resources)


def is_plan_document(document: Any) -> bool:
    """Check whether a decoded JSON document looks like a Terraform plan."""
    return isinstance(document, dict) and "planned_values" in document
