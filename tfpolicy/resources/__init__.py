"""Resource sources for tfpolicy.

Resources are read from Terraform plan JSON or from a YAML/JSON manifest;
suppression comments in ``.tf`` sources can be merged onto either.
"""

import json
from pathlib import Path
from typing import List, Optional, Union

import yaml

from ..common.logger import get_logger
from .base import Resource, ResourceLoadError, parse_suppressions
from .manifest import parse_manifest
from .plan import TerraformPlanParser, is_plan_document
from .suppressions import apply_suppressions, scan_directory, scan_source

logger = get_logger("resources")


def load_resources(
    path: Union[str, Path], source_dir: Optional[Union[str, Path]] = None
) -> List[Resource]:
    """Load resources from a plan JSON file or a manifest.

    The format is detected from the document: a JSON object with
    ``planned_values`` is a Terraform plan, anything else is a manifest.

    Args:
        path: Plan JSON, or YAML/JSON manifest
        source_dir: Optional Terraform source tree to read suppression
            comments from

    Returns:
        List of resources

    Raises:
        ResourceLoadError: If the input cannot be read or parsed
    """
    resource_file = Path(path)
    if not resource_file.is_file():
        raise ResourceLoadError(f"Resource file not found: {resource_file}")

    try:
        text = resource_file.read_text()
    except OSError as e:
        raise ResourceLoadError(f"Cannot read {resource_file}: {e}") from e

    try:
        if resource_file.suffix.lower() == ".json":
            document = json.loads(text)
        else:
            document = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ResourceLoadError(f"Cannot parse {resource_file}: {e}") from e

    if is_plan_document(document):
        logger.debug(f"Reading {resource_file} as a Terraform plan")
        resources = TerraformPlanParser().parse(document, source=str(resource_file))
    else:
        logger.debug(f"Reading {resource_file} as a resource manifest")
        resources = parse_manifest(document, source=str(resource_file))

    if source_dir is not None:
        resources = apply_suppressions(resources, scan_directory(source_dir))

    return resources


__all__ = [
    "Resource",
    "ResourceLoadError",
    "TerraformPlanParser",
    "apply_suppressions",
    "load_resources",
    "parse_manifest",
    "parse_suppressions",
    "scan_directory",
    "scan_source",
]
