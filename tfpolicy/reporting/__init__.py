"""Report sinks for evaluation results."""

from typing import Callable, Dict

from ..evaluator.engine import EvaluationReport
from .console import render_console
from .json_report import render_json, save_json

RENDERERS: Dict[str, Callable[[EvaluationReport], str]] = {
    "console": render_console,
    "json": render_json,
}


def render(report: EvaluationReport, output: str = "console") -> str:
    """Render a report in the named output format.

    Raises:
        ValueError: If the format is unknown
    """
    try:
        renderer = RENDERERS[output]
    except KeyError:
        raise ValueError(f"Unknown output format: {output}") from None
    return renderer(report)


__all__ = [
    "RENDERERS",
    "render",
    "render_console",
    "render_json",
    "save_json",
]
