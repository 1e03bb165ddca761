"""
Command execution utilities.

This module provides the coroutine used to run short-lived external commands
(terraform, runner configuration scripts) and capture their output.
"""

import asyncio
import logging
import re
import shutil
from pathlib import Path
from typing import Mapping, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# Flags and KEY=value arguments whose value must never reach the logs.
_SENSITIVE_NAME = re.compile(r"token|secret|password", re.IGNORECASE)
REDACTED = "***"


def redact_command(args: Sequence[str]) -> str:
    """
    Render a command line for logging with credentials masked.

    Masks the value following a sensitive flag (``--token abc``), the value
    of a sensitive ``--flag=value`` and of ``KEY=value`` arguments such as
    ``OAUTH_CLIENT_SECRET=...`` passed to ``docker -e``.
    """
    parts = []
    mask_next = False
    for arg in map(str, args):
        if mask_next:
            parts.append(REDACTED)
            mask_next = False
            continue
        name, sep, _ = arg.partition("=")
        if not _SENSITIVE_NAME.search(name):
            parts.append(arg)
        elif sep:
            parts.append(f"{name}={REDACTED}")
        elif arg.startswith("-"):
            parts.append(arg)
            mask_next = True
        else:
            parts.append(arg)
    return " ".join(parts)


async def run_command(
    args: Sequence[str],
    cwd: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Tuple[int, str, str]:
    """Execute a command and capture its output.

    Runs the command without a shell, waiting for it to finish while the
    event loop keeps serving other tasks.

    Args:
        args: Program and arguments.
        cwd: Working directory path for command execution.
        env: Full environment for the child, None to inherit.

    Returns:
        Tuple of (return_code, stdout_string, stderr_string).
        return_code is -1 when the program could not be started.
    """
    logger.debug(f"Executing command: '{redact_command(args)}' in '{cwd or '.'}'")
    try:
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as e:
        logger.error(f"Command not found: {args[0]}: {type(e).__name__}: {e}")
        return -1, "", f"Error: Command not found '{args[0]}'"
    except PermissionError as e:
        logger.error(f"Command not executable: {args[0]}: {e}")
        return -1, "", f"Error: Permission denied running '{args[0]}'"

    stdout, stderr = await process.communicate()
    return (
        process.returncode,
        stdout.decode("utf-8", errors="replace"),
        stderr.decode("utf-8", errors="replace"),
    )


def check_binary_installed(name: str) -> bool:
    """Check if an executable is available on the system PATH."""
    return shutil.which(name) is not None
