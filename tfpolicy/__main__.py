"""CLI interface for the policy evaluator.

Exit codes:
    0  no blocking failures
    1  at least one blocking failure
    2  configuration, rule or resource loading error
"""

import argparse
import sys
from typing import List, Optional

import yaml

from . import __version__
from .common.config import TfPolicyConfig, load_typed_config
from .common.logger import setup_logger
from .evaluator.engine import PolicyEvaluator
from .policy.errors import PolicyConfigError
from .policy.loader import load_rules
from .policy.rules import Severity
from .reporting import render, render_console, save_json
from .resources import ResourceLoadError, load_resources

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_ERROR = 2


def _split_ids(values: Optional[List[str]]) -> List[str]:
    """Flatten repeated and comma-separated rule id options."""
    ids = []
    for value in values or []:
        ids.extend(part.strip() for part in value.split(",") if part.strip())
    return ids


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="tfpolicy",
        description="Evaluate YAML policy rules against Terraform resources",
    )
    parser.add_argument(
        "resources",
        help="Terraform plan JSON (terraform show -json) or a resource manifest",
    )
    parser.add_argument(
        "-p", "--policies", action="append", metavar="PATH",
        help="Rule file or directory (repeatable; overrides policy_dirs)",
    )
    parser.add_argument(
        "-d", "--source-dir", metavar="DIR",
        help="Terraform sources to read checkov:skip suppression comments from",
    )
    parser.add_argument("-c", "--config", help="Path to tfpolicy.yaml")
    parser.add_argument("-o", "--output", choices=["console", "json"])
    parser.add_argument("--output-file", metavar="FILE", help="Also write a JSON report here")
    parser.add_argument(
        "--run-rule", action="append", metavar="IDS",
        help="Only evaluate these rule ids (comma-separated, repeatable)",
    )
    parser.add_argument(
        "--skip-rule", action="append", metavar="IDS",
        help="Do not evaluate these rule ids (comma-separated, repeatable)",
    )
    parser.add_argument("--soft-fail", action="store_true", default=None,
                        help="Always exit 0 after reporting")
    parser.add_argument(
        "--hard-fail-on", metavar="SEVERITY",
        help="Only failures at or above this severity set a non-zero exit code",
    )
    parser.add_argument("--workers", type=int, metavar="N", help="Evaluation threads")
    parser.add_argument(
        "--first-failure-only", action="store_true",
        help="Report only the first failed sub-condition per verdict",
    )
    parser.add_argument("--quiet", action="store_true", help="Hide passed checks")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ERROR or CRITICAL")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def apply_overrides(config: TfPolicyConfig, args: argparse.Namespace) -> TfPolicyConfig:
    """Apply command-line options on top of file configuration."""
    if args.policies:
        config.policy_dirs = list(args.policies)
    if args.run_rule:
        config.run_rules = _split_ids(args.run_rule)
    if args.skip_rule:
        config.skip_rules = config.skip_rules + _split_ids(args.skip_rule)
    if args.output:
        config.reporting.output = args.output
    if args.output_file:
        config.reporting.output_file = args.output_file
    if args.soft_fail:
        config.reporting.soft_fail = True
    if args.hard_fail_on:
        config.reporting.hard_fail_on = args.hard_fail_on.upper()
    if args.workers is not None:
        config.evaluation.max_workers = args.workers
    if args.first_failure_only:
        config.evaluation.collect_failures = False
    if args.log_level:
        config.logging.level = args.log_level
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the tfpolicy CLI."""
    args = build_parser().parse_args(argv)

    try:
        config = apply_overrides(load_typed_config(args.config), args)
        hard_fail_on = (
            Severity.parse(config.reporting.hard_fail_on)
            if config.reporting.hard_fail_on
            else None
        )
        logger = setup_logger(level=config.logging.level, log_dir=config.logging.log_dir)
    except (FileNotFoundError, TypeError, ValueError, yaml.YAMLError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_ERROR

    try:
        rules = load_rules(config.policy_dirs).filter(config.run_rules, config.skip_rules)
        resources = load_resources(args.resources, source_dir=args.source_dir)
    except PolicyConfigError as e:
        logger.error(f"Policy configuration error: {e}")
        return EXIT_ERROR
    except ResourceLoadError as e:
        logger.error(f"Resource loading error: {e}")
        return EXIT_ERROR

    try:
        evaluator = PolicyEvaluator(
            collect_failures=config.evaluation.collect_failures,
            max_workers=config.evaluation.max_workers,
        )
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        return EXIT_ERROR

    report = evaluator.evaluate_all(rules, resources)

    if args.quiet and config.reporting.output == "console":
        sys.stdout.write(render_console(report, show_passed=False))
    else:
        sys.stdout.write(render(report, config.reporting.output))
    if config.reporting.output_file:
        try:
            save_json(report, config.reporting.output_file)
        except OSError as e:
            logger.error(f"Cannot write report to {config.reporting.output_file}: {e}")
            return EXIT_ERROR

    blocking = report.blocking_failures(
        soft_fail=config.reporting.soft_fail, hard_fail_on=hard_fail_on
    )
    if blocking:
        logger.warning(f"{len(blocking)} blocking policy failure(s)")
        return EXIT_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
