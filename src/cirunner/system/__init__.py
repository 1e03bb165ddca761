"""
System interaction utilities for the cirunner package.

This module provides external command execution and management of the
runner agent subprocess.
"""

from .commands import check_binary_installed, redact_command, run_command
from .processes import RunnerProcess, terminate_process_tree

__all__ = [
    "check_binary_installed",
    "redact_command",
    "run_command",
    "RunnerProcess",
    "terminate_process_tree",
]
