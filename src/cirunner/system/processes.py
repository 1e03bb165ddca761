"""
Runner subprocess management.

This module owns the lifetime of the local runner agent process: spawning it,
forwarding its output and exit status to the orchestrator's control queue,
and terminating its whole process tree with escalating signals.
"""

import asyncio
import logging
import os
import signal
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

import psutil

from ..models.runtime import LogChunk, ProcessExited, ProcessLost
from .commands import redact_command

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 4096

# Seconds to wait after each termination phase
TERMINATION_INTERRUPT_TIMEOUT = 10.0
TERMINATION_GRACEFUL_TIMEOUT = 5.0
TERMINATION_FORCE_TIMEOUT = 2.0


class RunnerProcess:
    """
    Handle to the running CI runner agent.

    Output and lifecycle events are not delivered through callbacks: after
    ``attach`` the handle posts ``LogChunk``, ``ProcessExited`` and
    ``ProcessLost`` messages to the given queue.
    """

    def __init__(self, process: asyncio.subprocess.Process, name: str):
        self.process = process
        self.name = name
        self._tasks: List[asyncio.Task] = []
        self._lost_reported = False

    @classmethod
    async def spawn(
        cls,
        args: Sequence[str],
        name: str,
        cwd: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> "RunnerProcess":
        """
        Start the runner agent with piped stdout and stderr.

        The child gets its own session so the whole tree can be signalled.

        Raises:
            FileNotFoundError: If the runner executable does not exist
        """
        logger.info(f"Starting {name}: {redact_command(args)}")
        process = await asyncio.create_subprocess_exec(
            *args,
            cwd=cwd,
            env=dict(env) if env is not None else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            start_new_session=True,
        )
        logger.debug(f"{name} started with PID {process.pid}")
        return cls(process, name)

    @property
    def pid(self) -> int:
        return self.process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    def attach(self, queue: asyncio.Queue) -> None:
        """Start forwarding output and exit status to ``queue``."""
        if self._tasks:
            return
        readers = []
        for stream_name, stream in (("stdout", self.process.stdout), ("stderr", self.process.stderr)):
            if stream is not None:
                readers.append(asyncio.create_task(
                    self._read_stream(stream, stream_name, queue),
                    name=f"{self.name}-{stream_name}",
                ))
        waiter = asyncio.create_task(self._wait(readers, queue), name=f"{self.name}-waiter")
        self._tasks = readers + [waiter]

    async def _read_stream(self, stream: asyncio.StreamReader, stream_name: str,
                           queue: asyncio.Queue) -> None:
        try:
            while True:
                data = await stream.read(READ_CHUNK_SIZE)
                if not data:
                    break
                queue.put_nowait(LogChunk(data.decode("utf-8", errors="replace"), stream_name))
        except OSError as e:
            logger.warning(f"Lost {stream_name} of {self.name}: {e}")
            if not self._lost_reported:
                self._lost_reported = True
                queue.put_nowait(ProcessLost(e))

    async def _wait(self, readers: List[asyncio.Task], queue: asyncio.Queue) -> None:
        returncode = await self.process.wait()
        # Deliver remaining output before the exit notification.
        await asyncio.gather(*readers, return_exceptions=True)
        logger.debug(f"{self.name} (PID: {self.pid}) exited with code {returncode}")
        queue.put_nowait(ProcessExited(returncode))

    async def terminate(self) -> None:
        """
        Terminate the runner and its children, escalating SIGINT, SIGTERM, SIGKILL.

        The blocking psutil waits run in a worker thread.
        """
        if self.process.returncode is not None:
            logger.debug(f"{self.name} already exited with code {self.process.returncode}")
            return
        await asyncio.to_thread(terminate_process_tree, self.pid, self.name)

    async def close(self) -> None:
        """Cancel the forwarding tasks."""
        for task in self._tasks:
            if not task.done():
                task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)


def terminate_process_tree(pid: int, name: str) -> None:
    """
    Terminate a process and all its children with escalating signals.

    Runners finish their current step on SIGINT, so that is tried first;
    SIGTERM and SIGKILL follow for processes still alive after each grace
    period.
    """
    if pid <= 0:
        logger.warning(f"Invalid PID {pid} for {name}, skipping termination")
        return

    logger.info(f"Starting termination of {name} (PID: {pid}) and its process tree")

    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        logger.info(f"Process {name} (PID: {pid}) already terminated")
        return
    except psutil.AccessDenied:
        logger.warning(f"Access denied to process {name} (PID: {pid}), attempting force kill")
        _force_kill_process(pid)
        return

    phases = [
        {"name": "interrupt", "signal": signal.SIGINT, "timeout": TERMINATION_INTERRUPT_TIMEOUT},
        {"name": "graceful", "signal": signal.SIGTERM, "timeout": TERMINATION_GRACEFUL_TIMEOUT},
        {"name": "force_kill", "signal": signal.SIGKILL, "timeout": TERMINATION_FORCE_TIMEOUT},
    ]

    for phase_idx, phase in enumerate(phases):
        if not _is_process_alive(parent):
            logger.info(f"Process {name} terminated before phase {phase['name']}")
            break

        children = _get_process_children(parent)
        all_processes = [parent] + children
        logger.info(f"Phase {phase['name']}: signalling {name} and {len(children)} children")

        signalled = _apply_termination_signal(all_processes, phase["signal"])
        if not signalled:
            continue

        remaining = _wait_for_termination(signalled, phase["timeout"])
        if not remaining:
            logger.info(f"All processes terminated in phase {phase['name']}")
            break

        logger.warning(f"Phase {phase['name']}: {len(remaining)} processes still alive")
        if phase_idx == len(phases) - 1:
            for process in remaining:
                logger.error(f"Failed to terminate PID {process.pid} of {name}")

    logger.info(f"Termination completed for {name} (PID: {pid})")


def _is_process_alive(process: psutil.Process) -> bool:
    """Safely check if a process is still alive and not a zombie."""
    try:
        if not process.is_running():
            return False
        return process.status() not in (psutil.STATUS_ZOMBIE, psutil.STATUS_DEAD)
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return False


def _get_process_children(parent: psutil.Process) -> List[psutil.Process]:
    """Get the live descendants of a process, tolerating races."""
    try:
        return [child for child in parent.children(recursive=True) if _is_process_alive(child)]
    except (psutil.NoSuchProcess, psutil.AccessDenied):
        return []


def _apply_termination_signal(processes: List[psutil.Process], sig: int) -> List[psutil.Process]:
    """Send ``sig`` to each live process and return those that were signalled."""
    signalled = []
    for process in processes:
        if not _is_process_alive(process):
            continue
        try:
            process.send_signal(sig)
            signalled.append(process)
            logger.debug(f"Sent {signal.Signals(sig).name} to PID {process.pid}")
        except psutil.NoSuchProcess:
            continue
        except psutil.AccessDenied:
            logger.warning(f"Access denied sending {signal.Signals(sig).name} to PID {process.pid}")
    return signalled


def _wait_for_termination(processes: List[psutil.Process], timeout: float) -> List[psutil.Process]:
    """Wait for processes to exit and return any that are still alive."""
    _, still_alive = psutil.wait_procs(processes, timeout=timeout)
    return [process for process in still_alive if _is_process_alive(process)]


def _force_kill_process(pid: int) -> None:
    try:
        os.kill(pid, signal.SIGKILL)
    except ProcessLookupError:
        pass
    except PermissionError as e:
        logger.error(f"Permission denied killing PID {pid}: {e}")
