"""
Exception taxonomy and error handling helpers.

This module defines the error types used by the runner lifecycle and the
shared logging helper used wherever an error is reported, swallowed or
re-raised.
"""

import logging
import sys
from enum import Enum
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


class ErrorSeverity(Enum):
    """Severity levels for error handling."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class ValidationError(Exception):
    """
    Exception raised when a configuration value fails validation.

    This is the base type for all configuration problems detected before
    the runner is provisioned.
    """

    def __init__(self, message: str, field_name: Optional[str] = None,
                 value: Any = None, severity: ErrorSeverity = ErrorSeverity.ERROR):
        super().__init__(message)
        self.field_name = field_name
        self.value = value
        self.severity = severity


class ConfigError(ValidationError):
    """
    Invalid flag combination or a pre-flight check that forbids launching.

    Examples are a runner name collision without ``reuse`` or ``reuse_idle``
    on a platform that cannot report idle runners. Always fatal.
    """


class TransientOperationalError(Exception):
    """
    A best-effort teardown step (unregister, retry, destroy) failed.

    Raised and caught inside the teardown sequence; never escalated.
    """

    def __init__(self, step: str, cause: BaseException):
        super().__init__(f"{step} failed: {cause}")
        self.step = step
        self.cause = cause


class FatalRuntimeError(Exception):
    """
    Unrecoverable failure while the runner is up.

    Carried by a shutdown request; the only runtime path to exit code 1.
    """


class InfraCommandError(Exception):
    """A terraform invocation exited with a non-zero status."""

    def __init__(self, command: str, returncode: int, stderr: str = ""):
        message = f"'{command}' exited with code {returncode}"
        if stderr.strip():
            message = f"{message}: {stderr.strip()}"
        super().__init__(message)
        self.command = command
        self.returncode = returncode
        self.stderr = stderr


def handle_error(
    error: BaseException,
    context: str,
    severity: Union[ErrorSeverity, str] = ErrorSeverity.ERROR,
    reraise: bool = True,
    logger: Optional[logging.Logger] = None,
    include_traceback: bool = False,
) -> None:
    """
    Handle errors with consistent logging and optional re-raising.

    Args:
        error: The exception that occurred
        context: Context description of where the error occurred
        severity: Severity level for logging
        reraise: Whether to re-raise the exception after logging
        logger: Logger instance to use (defaults to module logger)
        include_traceback: Attach the traceback to the log record
    """
    effective_logger = logger or globals()['logger']

    error_msg = f"Error in {context}: {error}"

    # Handle both enum and string severity values
    if isinstance(severity, str):
        severity_str = severity.lower()
    else:
        severity_str = severity.value

    exc_info = error if include_traceback else None
    if severity_str == "debug":
        effective_logger.debug(error_msg, exc_info=error)
    elif severity_str == "info":
        effective_logger.info(error_msg, exc_info=exc_info)
    elif severity_str == "warning":
        effective_logger.warning(error_msg, exc_info=exc_info)
    elif severity_str == "error":
        effective_logger.error(error_msg, exc_info=exc_info)
    elif severity_str == "critical":
        effective_logger.critical(error_msg, exc_info=error)

    if reraise:
        raise error


def handle_config_error(error: BaseException, context: str, **kwargs) -> None:
    """Handle configuration-related errors."""
    handle_error(error, f"config {context}", **kwargs)


def handle_cli_error(error: BaseException, context: str, **kwargs) -> None:
    """Log a CLI-level error and terminate the process."""
    exit_code = kwargs.pop('exit_code', 1)
    severity = kwargs.pop('severity', ErrorSeverity.ERROR)
    handle_error(error, f"CLI {context}", severity=severity, reraise=False, **kwargs)
    sys.exit(exit_code)
