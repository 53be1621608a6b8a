"""Policy evaluation engine for tfpolicy.

Evaluates policy rules against resources and produces one verdict per
applicable (rule, resource) pair. Evaluation is a pure function of its
inputs, so pairs can be spread across worker threads; the verdict list is
always returned sorted by (resource id, rule id).
"""

import concurrent.futures
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..common.logger import get_logger
from ..policy.conditions import AttributeCondition
from ..policy.rules import PolicyRule, Severity
from ..resources.base import Resource

logger = get_logger("evaluator")


class Outcome(str, Enum):
    """Outcome of evaluating one rule against one resource."""

    PASS = "PASS"
    FAIL = "FAIL"
    SKIPPED = "SKIPPED"


@dataclass(frozen=True)
class Verdict:
    """Result of evaluating a single rule against a single resource."""

    rule_id: str
    resource_id: str
    outcome: Outcome
    severity: Severity
    rule_name: str = ""
    resource_type: str = ""
    skip_reason: Optional[str] = None
    failed_conditions: Tuple[AttributeCondition, ...] = ()

    @property
    def sort_key(self) -> Tuple[str, str]:
        return (self.resource_id, self.rule_id)

    def to_dict(self) -> Dict[str, Any]:
        """Convert verdict to dictionary for JSON serialization."""
        return {
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "resource_id": self.resource_id,
            "resource_type": self.resource_type,
            "outcome": self.outcome.value,
            "severity": self.severity.value,
            "skip_reason": self.skip_reason,
            "failed_conditions": [c.to_dict() for c in self.failed_conditions],
        }


@dataclass
class EvaluationReport:
    """Ordered verdicts of one evaluation run plus run metadata."""

    verdicts: List[Verdict]
    rule_count: int = 0
    resource_count: int = 0
    evaluated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def passed(self) -> List[Verdict]:
        return [v for v in self.verdicts if v.outcome == Outcome.PASS]

    @property
    def failed(self) -> List[Verdict]:
        return [v for v in self.verdicts if v.outcome == Outcome.FAIL]

    @property
    def skipped(self) -> List[Verdict]:
        return [v for v in self.verdicts if v.outcome == Outcome.SKIPPED]

    def blocking_failures(
        self, soft_fail: bool = False, hard_fail_on: Optional[Severity] = None
    ) -> List[Verdict]:
        """Failures that should make a CI run fail.

        Args:
            soft_fail: Never block, report only
            hard_fail_on: Only failures at or above this severity block

        Returns:
            List of blocking FAIL verdicts
        """
        if soft_fail:
            return []
        failed = self.failed
        if hard_fail_on is not None:
            failed = [v for v in failed if v.severity >= hard_fail_on]
        return failed

    def summary(self) -> Dict[str, int]:
        return {
            "rules": self.rule_count,
            "resources": self.resource_count,
            "passed": len(self.passed),
            "failed": len(self.failed),
            "skipped": len(self.skipped),
        }

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for JSON serialization."""
        return {
            "evaluated_at": self.evaluated_at.isoformat(),
            "summary": self.summary(),
            "results": [v.to_dict() for v in self.verdicts],
        }


class PolicyEvaluator:
    """
    Evaluates resources against policy rules.

    A rule applies to a resource when the resource type is one of the
    rule's target types. Each applicable pair yields:
    - SKIPPED: the resource carries a suppression marker for the rule
    - PASS: the rule's condition tree holds for the resource attributes
    - FAIL: otherwise, with the failed leaf conditions attached
    """

    def __init__(self, collect_failures: bool = True, max_workers: int = 1):
        """
        Initialize the evaluator.

        Args:
            collect_failures: Evaluate every child of a failing AND so all
                failed sub-conditions are reported; when False, AND stops at
                the first failure
            max_workers: Worker threads used by ``evaluate_all``
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {max_workers}")
        self.collect_failures = collect_failures
        self.max_workers = max_workers

    def evaluate(self, rule: PolicyRule, resource: Resource) -> Verdict:
        """
        Evaluate one rule against one resource.

        Args:
            rule: Rule to evaluate
            resource: Resource whose type the rule targets

        Returns:
            Verdict for the pair

        Raises:
            ValueError: If the rule does not target the resource type
        """
        if not rule.applies_to(resource.type):
            raise ValueError(
                f"Rule {rule.id} does not apply to {resource.id} ({resource.type})"
            )

        base = dict(
            rule_id=rule.id,
            resource_id=resource.id,
            severity=rule.severity,
            rule_name=rule.name,
            resource_type=resource.type,
        )

        reason = resource.suppression_for(rule.id)
        if reason is not None:
            return Verdict(outcome=Outcome.SKIPPED, skip_reason=reason, **base)

        result = rule.condition.evaluate(
            resource.attributes, self.collect_failures, resource_type=resource.type
        )
        if result.passed:
            return Verdict(outcome=Outcome.PASS, **base)
        return Verdict(
            outcome=Outcome.FAIL, failed_conditions=result.failed_conditions, **base
        )

    def applicable_pairs(
        self, rules: Iterable[PolicyRule], resources: Iterable[Resource]
    ) -> List[Tuple[PolicyRule, Resource]]:
        """List (rule, resource) pairs where the rule targets the resource type."""
        by_type: Dict[str, List[PolicyRule]] = {}
        for rule in rules:
            for resource_type in rule.resource_types:
                by_type.setdefault(resource_type, []).append(rule)

        return [
            (rule, resource)
            for resource in resources
            for rule in by_type.get(resource.type, [])
        ]

    def evaluate_all(
        self, rules: Iterable[PolicyRule], resources: Iterable[Resource]
    ) -> EvaluationReport:
        """
        Evaluate every applicable (rule, resource) pair.

        Args:
            rules: Rules to evaluate
            resources: Resources observed in this run

        Returns:
            EvaluationReport with verdicts sorted by (resource id, rule id)
        """
        rules = list(rules)
        resources = list(resources)
        pairs = self.applicable_pairs(rules, resources)

        logger.info(
            f"Evaluating {len(rules)} rule(s) against {len(resources)} resource(s) "
            f"({len(pairs)} applicable pair(s))"
        )

        if self.max_workers > 1 and len(pairs) > 1:
            with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                verdicts = list(pool.map(lambda pair: self.evaluate(*pair), pairs))
        else:
            verdicts = [self.evaluate(rule, resource) for rule, resource in pairs]

        verdicts.sort(key=lambda v: v.sort_key)

        for verdict in verdicts:
            if verdict.outcome == Outcome.SKIPPED:
                logger.debug(
                    f"{verdict.rule_id} skipped for {verdict.resource_id}: {verdict.skip_reason}"
                )

        report = EvaluationReport(
            verdicts=verdicts, rule_count=len(rules), resource_count=len(resources)
        )
        summary = report.summary()
        logger.info(
            f"Evaluation finished: {summary['passed']} passed, "
            f"{summary['failed']} failed, {summary['skipped']} skipped"
        )
        return report
