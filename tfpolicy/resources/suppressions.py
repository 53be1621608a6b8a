"""Suppression markers written as comments in Terraform source.

Inside a ``resource "type" "name" { ... }`` block a comment such as

    #checkov:skip=CUSTOM_001:Public website bucket

opts that resource out of the named rule. ``//`` comments and the
``tfpolicy:skip=`` prefix are accepted as well.
"""

import re
from pathlib import Path
from typing import Dict, Iterable, List, Union

from ..common.logger import get_logger
from .base import DEFAULT_SUPPRESSION_REASON, Resource, ResourceLoadError

logger = get_logger("suppressions")

RESOURCE_BLOCK_PATTERN = re.compile(r'^\s*resource\s+"([^"]+)"\s+"([^"]+)"')
SKIP_MARKER_PATTERN = re.compile(
    r"(?:#|//)\s*(?:checkov|tfpolicy):skip=([A-Za-z0-9_.\-]+)(?::(.*))?"
)
# Strings are blanked before braces are counted
STRING_LITERAL_PATTERN = re.compile(r'"(?:[^"\\]|\\.)*"')


def scan_source(text: str) -> Dict[str, Dict[str, str]]:
    """Collect suppression markers per resource block in one source text.

    Args:
        text: Contents of a ``.tf`` file

    Returns:
        Mapping of ``type.name`` to ``rule id -> reason``
    """
    markers: Dict[str, Dict[str, str]] = {}
    current = None
    depth = 0
    opened = False

    for line in text.splitlines():
        if current is None:
            match = RESOURCE_BLOCK_PATTERN.match(line)
            if not match:
                continue
            current = f"{match.group(1)}.{match.group(2)}"
            depth = 0
            opened = False

        skip = SKIP_MARKER_PATTERN.search(line)
        if skip:
            reason = (skip.group(2) or "").strip() or DEFAULT_SUPPRESSION_REASON
            markers.setdefault(current, {})[skip.group(1)] = reason

        code = STRING_LITERAL_PATTERN.sub('""', line)
        code = code.split("#", 1)[0].split("//", 1)[0]
        depth += code.count("{") - code.count("}")
        if depth > 0:
            opened = True
        elif opened or "{" in code:
            current = None

    return markers


def scan_directory(path: Union[str, Path]) -> Dict[str, Dict[str, str]]:
    """Collect suppression markers from every ``.tf`` file under a path.

    Raises:
        ResourceLoadError: If the path does not exist or a file is unreadable
    """
    root = Path(path)
    if not root.exists():
        raise ResourceLoadError(f"Source path not found: {root}")

    files = [root] if root.is_file() else sorted(root.rglob("*.tf"))
    markers: Dict[str, Dict[str, str]] = {}
    for source_file in files:
        try:
            text = source_file.read_text()
        except OSError as e:
            raise ResourceLoadError(f"Cannot read {source_file}: {e}") from e
        for block_key, skips in scan_source(text).items():
            markers.setdefault(block_key, {}).update(skips)

    logger.debug(f"Found suppression markers for {len(markers)} resource block(s) in {root}")
    return markers


def apply_suppressions(
    resources: Iterable[Resource], markers: Dict[str, Dict[str, str]]
) -> List[Resource]:
    """Attach suppression markers to the resources whose block they sit in.

    Args:
        resources: Resources to update
        markers: Output of ``scan_directory``

    Returns:
        New list of resources with suppressions merged in
    """
    updated = []
    matched = set()
    for resource in resources:
        skips = markers.get(resource.block_key)
        if skips:
            matched.add(resource.block_key)
            resource = resource.with_suppressions(skips)
        updated.append(resource)

    for block_key in sorted(set(markers) - matched):
        logger.warning(f"Suppression markers on {block_key} match no loaded resource")

    return updated
