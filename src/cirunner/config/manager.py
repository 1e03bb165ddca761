"""
Configuration resolution.

This module provides the main configuration interface: it gathers every
source in precedence order and hands the merged options to validation.
"""

import logging
import os
from pathlib import Path
from typing import Any, Mapping, Optional

from ..models.config import RunnerConfig
from ..validation import handle_config_error, ErrorSeverity
from .loader import (
    ENV_PREFIX,
    infer_ci_environment,
    load_env_options,
    load_runner_file,
    merge_option_sources,
)
from .validators import validate_runner_config

logger = logging.getLogger(__name__)


def resolve_config_path(
    cli_options: Mapping[str, Any], environ: Mapping[str, str]
) -> Optional[Path]:
    """Configuration file given by ``--config`` or ``CIRUNNER_CONFIG``, if any."""
    path = cli_options.get("config") or environ.get(f"{ENV_PREFIX}CONFIG")
    return Path(path).expanduser() if path else None


def load_runner_config(
    cli_options: Mapping[str, Any],
    environ: Optional[Mapping[str, str]] = None,
) -> RunnerConfig:
    """
    Build the runner configuration from every source.

    Precedence, highest first: command-line options, ``CIRUNNER_*``
    environment variables, the TOML file, values inferred from the CI
    environment, then built-in defaults.

    Args:
        cli_options: Options parsed from the command line (None means unset)
        environ: Environment mapping, defaults to ``os.environ``

    Returns:
        Fully validated RunnerConfig instance

    Raises:
        FileNotFoundError: If an explicit configuration file is missing
        ValidationError: If configuration validation fails
        tomllib.TOMLDecodeError: If the TOML file is malformed
    """
    if environ is None:
        environ = os.environ

    if environ.get("RUNNER_NAME"):
        logger.warning(
            "ignoring RUNNER_NAME environment variable, use CIRUNNER_NAME or --name instead"
        )

    file_options = {}
    config_path = resolve_config_path(cli_options, environ)
    if config_path is not None:
        file_options = load_runner_file(config_path)

    cli_only = {key: value for key, value in cli_options.items() if key != "config"}
    merged = merge_option_sources(
        cli_only,
        load_env_options(environ),
        file_options,
        infer_ci_environment(environ),
    )

    try:
        return validate_runner_config(merged)
    except Exception as e:
        handle_config_error(
            error=e,
            context="validating runner options",
            severity=ErrorSeverity.DEBUG,
            reraise=True,
            logger=logger
        )
        raise
