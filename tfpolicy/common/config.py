"""Configuration management for tfpolicy.

Handles loading and validation of the YAML configuration file that selects
policy directories, rule filters, evaluation and reporting options.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml


DEFAULT_CONFIG_PATH = "tfpolicy.yaml"
CONFIG_ENV_VAR = "TFPOLICY_CONFIG"

OUTPUT_FORMATS = ("console", "json")


@dataclass
class EvaluationConfig:
    """Configuration for the policy evaluator."""

    max_workers: int = 1
    collect_failures: bool = True


@dataclass
class ReportingConfig:
    """Configuration for report output and exit codes."""

    output: str = "console"
    output_file: Optional[str] = None
    soft_fail: bool = False
    hard_fail_on: Optional[str] = None


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"
    log_dir: Optional[str] = None


@dataclass
class TfPolicyConfig:
    """Top-level configuration for tfpolicy."""

    policy_dirs: List[str] = field(default_factory=lambda: ["policies"])
    run_rules: List[str] = field(default_factory=list)
    skip_rules: List[str] = field(default_factory=list)
    evaluation: EvaluationConfig = field(default_factory=EvaluationConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_TRUE_STRINGS = ("true", "yes", "on", "1")
_FALSE_STRINGS = ("false", "no", "off", "0")


def _as_bool(value: Any, name: str, default: bool) -> bool:
    """Parse a boolean setting, including strings produced by env expansion.

    A missing or null value gives ``default``.

    Raises:
        ValueError: If the value is not boolean-like
    """
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


def _as_list(value: Any) -> List[str]:
    """Accept a single string or a list of strings."""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(item) for item in value]


def parse_evaluation_config(evaluation_dict: Dict[str, Any]) -> EvaluationConfig:
    """Parse evaluation configuration dictionary.

    Args:
        evaluation_dict: Evaluation configuration dictionary

    Returns:
        EvaluationConfig instance

    Raises:
        ValueError: If max_workers is not a positive integer or
            collect_failures is not a boolean
    """
    max_workers = evaluation_dict.get("max_workers", 1)
    if not isinstance(max_workers, int) or isinstance(max_workers, bool) or max_workers < 1:
        raise ValueError(f"max_workers must be a positive integer, got {max_workers!r}")

    return EvaluationConfig(
        max_workers=max_workers,
        collect_failures=_as_bool(
            evaluation_dict.get("collect_failures"), "collect_failures", default=True
        ),
    )


def parse_reporting_config(reporting_dict: Dict[str, Any]) -> ReportingConfig:
    """Parse reporting configuration dictionary.

    Args:
        reporting_dict: Reporting configuration dictionary

    Returns:
        ReportingConfig instance

    Raises:
        ValueError: If the output format is unknown or soft_fail is not a boolean
    """
    output = str(reporting_dict.get("output", "console")).lower()
    if output not in OUTPUT_FORMATS:
        raise ValueError(
            f"Unknown output format: {output}. Must be one of: {', '.join(OUTPUT_FORMATS)}"
        )

    hard_fail_on = reporting_dict.get("hard_fail_on")
    return ReportingConfig(
        output=output,
        output_file=reporting_dict.get("output_file"),
        soft_fail=_as_bool(reporting_dict.get("soft_fail"), "soft_fail", default=False),
        hard_fail_on=str(hard_fail_on).upper() if hard_fail_on else None,
    )


def parse_logging_config(logging_dict: Dict[str, Any]) -> LoggingConfig:
    """Parse logging configuration dictionary."""
    return LoggingConfig(
        level=str(logging_dict.get("level", "INFO")),
        log_dir=logging_dict.get("log_dir"),
    )


def parse_config(config_dict: Dict[str, Any]) -> TfPolicyConfig:
    """Parse the full configuration dictionary.

    Args:
        config_dict: Full configuration dictionary

    Returns:
        TfPolicyConfig instance
    """
    policy_dirs = _as_list(config_dict.get("policy_dirs")) or ["policies"]

    return TfPolicyConfig(
        policy_dirs=policy_dirs,
        run_rules=_as_list(config_dict.get("run_rules")),
        skip_rules=_as_list(config_dict.get("skip_rules")),
        evaluation=parse_evaluation_config(config_dict.get("evaluation") or {}),
        reporting=parse_reporting_config(config_dict.get("reporting") or {}),
        logging=parse_logging_config(config_dict.get("logging") or {}),
    )


def resolve_config_path(config_path: Optional[str] = None) -> str:
    """Pick the configuration file path.

    An explicit path wins, then the ``TFPOLICY_CONFIG`` environment
    variable, then ``tfpolicy.yaml`` in the working directory.
    """
    if config_path:
        return config_path
    return os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_PATH)


def load_config(config_path: str = DEFAULT_CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from YAML file.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
        TypeError: If the document root is not a mapping
    """
    config_file = Path(config_path)

    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with config_file.open("r") as f:
        config = yaml.safe_load(f)

    if config is None:
        config = {}

    if not isinstance(config, dict):
        raise TypeError(
            f"Configuration root must be a mapping, got {type(config).__name__}"
        )

    return _expand_env_vars(config)


def _expand_env_vars(obj: Any) -> Any:
    """Recursively expand environment variables in configuration.

    Args:
        obj: Configuration object (dict, list, str, etc.)

    Returns:
        Configuration with expanded environment variables
    """
    if isinstance(obj, dict):
        return {key: _expand_env_vars(value) for key, value in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    elif isinstance(obj, str):
        return os.path.expandvars(obj)
    else:
        return obj


def load_typed_config(config_path: Optional[str] = None) -> TfPolicyConfig:
    """Load and parse configuration into typed dataclasses.

    A missing configuration file yields the defaults; an explicitly named
    file that does not exist is an error.

    Args:
        config_path: Path to configuration file

    Returns:
        TfPolicyConfig instance

    Raises:
        FileNotFoundError: If an explicitly requested config file doesn't exist
        yaml.YAMLError: If config file is invalid YAML
    """
    path = resolve_config_path(config_path)
    try:
        config_dict = load_config(path)
    except FileNotFoundError:
        if config_path or os.environ.get(CONFIG_ENV_VAR):
            raise
        config_dict = {}
    return parse_config(config_dict)
