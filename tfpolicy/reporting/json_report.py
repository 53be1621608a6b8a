"""Machine-readable JSON report."""

import json
from pathlib import Path
from typing import Union

from ..common.logger import get_logger
from ..evaluator.engine import EvaluationReport

logger = get_logger("json_report")


def render_json(report: EvaluationReport) -> str:
    """Serialize a report to an indented JSON document."""
    return json.dumps(report.to_dict(), indent=2) + "\n"


def save_json(report: EvaluationReport, output_path: Union[str, Path]) -> Path:
    """Write a report to a JSON file, creating parent directories.

    Args:
        report: Evaluation report
        output_path: Destination file

    Returns:
        Path the report was written to
    """
    path = Path(output_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        f.write(render_json(report))
    logger.debug(f"Report saved to {path}")
    return path
