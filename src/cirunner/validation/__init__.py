"""
Validation and error handling for the cirunner package.

This module provides input validation for launch parameters and the
error taxonomy shared by the lifecycle components.
"""

from .exceptions import (
    ConfigError,
    ErrorSeverity,
    FatalRuntimeError,
    InfraCommandError,
    TransientOperationalError,
    ValidationError,
    handle_cli_error,
    handle_config_error,
    handle_error,
)

from .validators import (
    parse_duration,
    parse_key_value_pairs,
    validate_boolean,
    validate_enum_choice,
    validate_labels,
    validate_positive_float,
    validate_positive_integer,
    validate_runner_name,
    validate_string_list,
)

__all__ = [
    # Errors
    "ConfigError",
    "ErrorSeverity",
    "FatalRuntimeError",
    "InfraCommandError",
    "TransientOperationalError",
    "ValidationError",
    "handle_cli_error",
    "handle_config_error",
    "handle_error",
    # Validators
    "parse_duration",
    "parse_key_value_pairs",
    "validate_boolean",
    "validate_enum_choice",
    "validate_labels",
    "validate_positive_float",
    "validate_positive_integer",
    "validate_runner_name",
    "validate_string_list",
]
