"""Loading of policy rule files.

Rule files are YAML documents holding a single rule, a list of rules, or a
mapping with a ``rules`` list. All rules are validated while loading so a
malformed rule stops the run before anything is evaluated.
"""

from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Union

import yaml

from ..common.logger import get_logger
from .errors import PolicyConfigError
from .rules import PolicyRule

logger = get_logger("policy_loader")

RULE_FILE_EXTENSIONS = (".yaml", ".yml")


class RuleSet:
    """Ordered collection of rules with globally unique ids."""

    def __init__(self, rules: Optional[Iterable[PolicyRule]] = None):
        self._rules: Dict[str, PolicyRule] = {}
        for rule in rules or []:
            self.add(rule)

    def add(self, rule: PolicyRule) -> None:
        """Add a rule.

        Raises:
            PolicyConfigError: If a rule with the same id is already present
        """
        existing = self._rules.get(rule.id)
        if existing is not None:
            where = f" (first defined in {existing.source})" if existing.source else ""
            raise PolicyConfigError(
                f"Duplicate rule id{where}", rule_id=rule.id, source=rule.source
            )
        self._rules[rule.id] = rule

    def get(self, rule_id: str) -> Optional[PolicyRule]:
        return self._rules.get(rule_id)

    def filter(
        self,
        run_rules: Optional[Iterable[str]] = None,
        skip_rules: Optional[Iterable[str]] = None,
    ) -> "RuleSet":
        """Return a new rule set restricted by allow and deny lists.

        Args:
            run_rules: Only keep these rule ids (all when empty)
            skip_rules: Drop these rule ids

        Returns:
            Filtered RuleSet
        """
        run = set(run_rules or [])
        skip = set(skip_rules or [])

        for rule_id in sorted((run | skip) - set(self._rules)):
            logger.warning(f"Rule filter references unknown rule id: {rule_id}")

        kept = [
            rule
            for rule in self._rules.values()
            if (not run or rule.id in run) and rule.id not in skip
        ]
        return RuleSet(kept)

    def ids(self) -> List[str]:
        return list(self._rules)

    def __iter__(self) -> Iterator[PolicyRule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: object) -> bool:
        return rule_id in self._rules


def _split_documents(document: Any, source: str) -> List[Any]:
    if document is None:
        return []
    if isinstance(document, list):
        return document
    if isinstance(document, dict):
        if "rules" in document:
            rules = document["rules"]
            if not isinstance(rules, list):
                raise PolicyConfigError("'rules' must be a list", source=source)
            return rules
        return [document]
    raise PolicyConfigError(
        f"Rule file root must be a mapping or list, got {type(document).__name__}",
        source=source,
    )


def load_rule_file(path: Union[str, Path]) -> List[PolicyRule]:
    """Load and validate every rule in one YAML file.

    Args:
        path: Path to a rule file

    Returns:
        List of rules in file order

    Raises:
        PolicyConfigError: If the file is unreadable, not YAML, or holds a bad rule
    """
    rule_file = Path(path)
    source = str(rule_file)

    try:
        with rule_file.open("r") as f:
            documents = list(yaml.safe_load_all(f))
    except OSError as e:
        raise PolicyConfigError(f"Cannot read rule file: {e}", source=source) from e
    except yaml.YAMLError as e:
        raise PolicyConfigError(f"Invalid YAML: {e}", source=source) from e

    rules = []
    for document in documents:
        for rule_data in _split_documents(document, source):
            rules.append(PolicyRule.from_dict(rule_data, source=source))

    logger.debug(f"Loaded {len(rules)} rule(s) from {source}")
    return rules


def discover_rule_files(path: Union[str, Path]) -> List[Path]:
    """List rule files under a directory in sorted order (or the file itself).

    Raises:
        PolicyConfigError: If the path does not exist
    """
    root = Path(path)
    if not root.exists():
        raise PolicyConfigError(f"Policy path not found: {root}")
    if root.is_file():
        return [root]
    return sorted(
        p for p in root.rglob("*") if p.is_file() and p.suffix.lower() in RULE_FILE_EXTENSIONS
    )


def load_rules(paths: Iterable[Union[str, Path]]) -> RuleSet:
    """Load all rules from the given files and directories.

    Args:
        paths: Rule files or directories to search for rule files

    Returns:
        RuleSet with every rule found

    Raises:
        PolicyConfigError: On any malformed rule or duplicate rule id
    """
    rule_set = RuleSet()
    for path in paths:
        files = discover_rule_files(path)
        if not files:
            logger.warning(f"No rule files found in {path}")
        for rule_file in files:
            for rule in load_rule_file(rule_file):
                rule_set.add(rule)

    logger.info(f"Loaded {len(rule_set)} policy rule(s)")
    return rule_set
