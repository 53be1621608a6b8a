"""Plain-text console report."""

from itertools import groupby
from typing import List

from ..evaluator.engine import EvaluationReport, Outcome


def render_console(report: EvaluationReport, show_passed: bool = True) -> str:
    """Render a report as plain text grouped by resource.

    Args:
        report: Evaluation report
        show_passed: Include PASS lines

    Returns:
        Report text ending with a summary line
    """
    lines: List[str] = []

    for resource_id, verdicts in groupby(report.verdicts, key=lambda v: v.resource_id):
        verdicts = list(verdicts)
        shown = [v for v in verdicts if show_passed or v.outcome != Outcome.PASS]
        if not shown:
            continue

        lines.append(f"{resource_id} ({verdicts[0].resource_type})")
        for verdict in shown:
            lines.append(
                f"  [{verdict.outcome.value}] {verdict.rule_id} "
                f"({verdict.severity.value}) {verdict.rule_name}"
            )
            if verdict.outcome == Outcome.SKIPPED:
                lines.append(f"      reason: {verdict.skip_reason}")
            for condition in verdict.failed_conditions:
                lines.append(f"      failed: {condition.describe()}")
        lines.append("")

    summary = report.summary()
    lines.append(
        f"Rules: {summary['rules']}  Resources: {summary['resources']}  "
        f"Passed: {summary['passed']}  Failed: {summary['failed']}  "
        f"Skipped: {summary['skipped']}"
    )
    return "\n".join(lines) + "\n"

