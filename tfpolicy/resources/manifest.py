"""Resource manifest loader.

A manifest is a YAML or JSON document listing already resolved resources:

    resources:
      - id: aws_s3_bucket.logs
        type: aws_s3_bucket
        attributes:
          acl: private
        suppressions:
          CUSTOM_003: Log bucket is managed by the platform team
"""

import copy
from typing import Any, Dict, List, Mapping

from ..common.logger import get_logger
from .base import Resource, ResourceLoadError, parse_suppressions

logger = get_logger("manifest")


def parse_manifest(document: Any, source: str = "<manifest>") -> List[Resource]:
    """Build resources from a decoded manifest document.

    Args:
        document: A list of resource mappings, or a mapping with a
            ``resources`` list
        source: Name used in error messages

    Returns:
        List of resources in document order

    Raises:
        ResourceLoadError: If the manifest is malformed or repeats an id
    """
    if document is None:
        return []
    if isinstance(document, Mapping):
        document = document.get("resources", [])
    if not isinstance(document, list):
        raise ResourceLoadError(f"{source}: manifest must be a list of resources")

    resources: List[Resource] = []
    seen: Dict[str, int] = {}
    for index, entry in enumerate(document):
        resource = _parse_entry(entry, index, source)
        if resource.id in seen:
            raise ResourceLoadError(
                f"{source}: duplicate resource id {resource.id} "
                f"(entries {seen[resource.id]} and {index})"
            )
        seen[resource.id] = index
        resources.append(resource)

    logger.info(f"Loaded {len(resources)} resource(s) from {source}")
    return resources


def _parse_entry(entry: Any, index: int, source: str) -> Resource:
    if not isinstance(entry, Mapping):
        raise ResourceLoadError(f"{source}: resource #{index} must be a mapping")

    resource_type = entry.get("type")
    if not resource_type:
        raise ResourceLoadError(f"{source}: resource #{index} is missing 'type'")

    resource_id = entry.get("id") or entry.get("address")
    if not resource_id:
        name = entry.get("name")
        if not name:
            raise ResourceLoadError(f"{source}: resource #{index} needs an 'id' or 'name'")
        resource_id = f"{resource_type}.{name}"

    attributes = entry.get("attributes") or {}
    if not isinstance(attributes, Mapping):
        raise ResourceLoadError(f"{source}: attributes of {resource_id} must be a mapping")

    return Resource(
        id=str(resource_id),
        type=str(resource_type),
        attributes=copy.deepcopy(dict(attributes)),
        suppressions=parse_suppressions(entry.get("suppressions"), str(resource_id)),
        file_path=entry.get("file_path"),
    )
