"""Policy evaluation for tfpolicy."""

from .engine import EvaluationReport, Outcome, PolicyEvaluator, Verdict

__all__ = ["EvaluationReport", "Outcome", "PolicyEvaluator", "Verdict"]
