"""
Configuration management for the cirunner package.

This module provides a clean interface for resolving the runner launch
configuration from the command line, the environment and TOML files.
"""

# Main configuration interface
from .manager import load_runner_config, resolve_config_path

# For advanced usage - direct access to loaders and validators
from .loader import (
    OPTION_NAMES,
    infer_ci_environment,
    load_env_options,
    load_runner_file,
    load_toml_file,
    merge_option_sources,
)
from .validators import (
    random_runner_name,
    validate_cloud_config,
    validate_runner_config,
)

__all__ = [
    # Main interface
    "load_runner_config",
    "resolve_config_path",
    # Advanced interface
    "OPTION_NAMES",
    "infer_ci_environment",
    "load_env_options",
    "load_runner_file",
    "load_toml_file",
    "merge_option_sources",
    "random_runner_name",
    "validate_cloud_config",
    "validate_runner_config",
]
