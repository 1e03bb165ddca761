"""
Runner lifecycle orchestration.

This module provides the LifecycleOrchestrator, which provisions the runner,
consumes every runtime event from a single control queue and funnels all
termination triggers into one teardown sequence that runs at most once.
"""

import asyncio
import json
import logging
from typing import Awaitable, Callable, List, Optional

from ..infra.terraform import TerraformProvisioner
from ..models.config import RunnerConfig
from ..models.runtime import (
    ControlMessage,
    LogChunk,
    OrchestratorState,
    ProcessExited,
    ProcessLost,
    ShutdownRequest,
)
from ..platforms.base import CIPlatformClient
from ..provisioning.base import ProvisioningStrategy, Watcher
from ..provisioning.preflight import run_preflight
from ..system.processes import RunnerProcess
from ..validation import (
    ErrorSeverity,
    FatalRuntimeError,
    TransientOperationalError,
    handle_error,
)
from .jobs import JobActivityTracker
from .signal_handler import SignalHandler

logger = logging.getLogger(__name__)

# Wakes the control loop once the orchestrator has terminated.
_STOP = object()

PreflightCheck = Callable[[RunnerConfig, CIPlatformClient], Awaitable[bool]]


class LifecycleOrchestrator:
    """
    Owner of the runner process, the pending jobs and every watcher.

    Triggers never run teardown themselves: signals, watchers, the job
    tracker and the runner handle post a ``ShutdownRequest`` (or a process
    message) to ``queue``; the control loop consumes it and calls
    ``request_shutdown``. ``request_shutdown`` performs its state
    check-and-set before its first ``await``, so concurrent callers cannot
    both start a teardown.
    """

    def __init__(
        self,
        config: RunnerConfig,
        platform: CIPlatformClient,
        strategy: ProvisioningStrategy,
        terraform: TerraformProvisioner,
        preflight: PreflightCheck = run_preflight,
    ):
        self.config = config
        self.platform = platform
        self.strategy = strategy
        self.terraform = terraform
        self._preflight = preflight

        self.state = OrchestratorState.STARTING
        self.queue: asyncio.Queue = asyncio.Queue()
        self.jobs = JobActivityTracker(config.single, on_single_job_done=self.post_shutdown)
        self.process: Optional[RunnerProcess] = None
        self.shutdown_request: Optional[ShutdownRequest] = None
        self.exit_code: Optional[int] = None
        self.watchers: List[Watcher] = []

        self._watcher_tasks: List[asyncio.Task] = []
        self._start_task: Optional[asyncio.Task] = None
        self.signal_handler = SignalHandler(
            on_signal=self.post_shutdown,
            on_error=lambda error: self.post_shutdown(error=error),
        )

    # --- Triggers ---

    def build_request(self, reason: Optional[str] = None,
                      error: Optional[BaseException] = None) -> ShutdownRequest:
        return ShutdownRequest(
            reason=reason,
            error=error,
            cloud=self.strategy.cloud,
            infra_resource=self.config.workdir if self.config.has_destroy_target else None,
            destroy_delay=self.config.destroy_delay,
        )

    def post_shutdown(self, reason: Optional[str] = None,
                      error: Optional[BaseException] = None) -> None:
        """Queue a shutdown trigger for the control loop."""
        if self.state is OrchestratorState.TERMINATED:
            return
        self.queue.put_nowait(self.build_request(reason, error))

    async def request_shutdown(self, request: ShutdownRequest) -> bool:
        """
        Run the teardown sequence for the first request; ignore later ones.

        Args:
            request: Why the runner stops

        Returns:
            True if this call performed the teardown
        """
        if self.state in (OrchestratorState.SHUTTING_DOWN, OrchestratorState.TERMINATED):
            logger.debug(f"Shutdown already in progress, ignoring: {request.describe()}")
            return False
        self.state = OrchestratorState.SHUTTING_DOWN
        self.shutdown_request = request
        self._cancel_watchers()

        try:
            await self._teardown(request)
        finally:
            self._finish(request.exit_code)
        return True

    # --- Teardown ---

    async def _teardown(self, request: ShutdownRequest) -> None:
        self._log_request(request)
        await self._await_launch()

        if not request.cloud:
            await self._run_step("unregister", self._unregister_runner())
            await self._run_step("terminate", self._terminate_runner())

        await self._retry_pending_jobs()

        if request.infra_resource is not None:
            logger.info(f"Waiting {request.destroy_delay} seconds to destroy")
            await asyncio.sleep(request.destroy_delay)
            await self._run_step("destroy", self._destroy_infrastructure(request))

    async def _await_launch(self) -> None:
        """Let an in-flight launch settle so its runner is unregistered and stopped."""
        if self._start_task is None or self._start_task.done():
            return
        logger.warning("Shutdown requested while the runner is launching, waiting for launch to finish")
        await asyncio.gather(self._start_task, return_exceptions=True)

    def _log_request(self, request: ShutdownRequest) -> None:
        if request.is_error:
            status = {"error": request.describe(), "status": "terminated"}
            logger.error(f"runner status {json.dumps(status)}")
            logger.debug("Shutdown error details", exc_info=request.error)
        else:
            status = {"reason": request.reason, "status": "terminated"}
            logger.info(f"runner status {json.dumps(status)}")

    async def _run_step(self, step: str, operation: Awaitable[None]) -> None:
        try:
            await operation
        except Exception as e:
            handle_error(
                error=TransientOperationalError(step, e),
                context="runner teardown",
                severity=ErrorSeverity.ERROR,
                reraise=False,
                logger=logger
            )

    async def _unregister_runner(self) -> None:
        if self.process is None:
            return
        logger.info(f"Unregistering runner {self.config.name}...")
        await self.platform.unregister_runner(self.config.name)
        logger.info(f"Unregistered runner {self.config.name}")

    async def _terminate_runner(self) -> None:
        if self.process is None:
            return
        await self.process.terminate()

    async def _retry_pending_jobs(self) -> None:
        if not self.config.retry_enabled or self.jobs.pending_count == 0:
            return

        pending = self.jobs.pending
        logger.info(f"Still {len(pending)} pending jobs, retrying workflow...")
        results = await asyncio.gather(
            *(self.platform.rerun_pipeline_job(job.pipeline_id, job.id) for job in pending),
            return_exceptions=True,
        )
        for job, result in zip(pending, results):
            if isinstance(result, Exception):
                handle_error(
                    error=TransientOperationalError(f"rerun of pipeline {job.pipeline_id}", result),
                    context="runner teardown",
                    severity=ErrorSeverity.ERROR,
                    reraise=False,
                    logger=logger
                )

    async def _destroy_infrastructure(self, request: ShutdownRequest) -> None:
        output = await self.terraform.destroy(request.infra_resource)
        logger.debug(output)

    def _finish(self, exit_code: int) -> None:
        if self.state is OrchestratorState.TERMINATED:
            return
        self.state = OrchestratorState.TERMINATED
        self.exit_code = exit_code
        self.queue.put_nowait(_STOP)

    # --- Startup ---

    async def _start(self) -> None:
        try:
            if not await self._preflight(self.config, self.platform):
                if self.state is OrchestratorState.STARTING:
                    self._finish(0)
                return
            if self.state is not OrchestratorState.STARTING:
                return

            process = await self.strategy.launch(self.queue)
            self.process = process
            if self.state is not OrchestratorState.STARTING:
                # Teardown is waiting on this launch and stops the runner itself.
                return

            self.state = OrchestratorState.RUNNING
            if process is None:
                logger.info("Runner deployed, nothing left to supervise locally")
                self._finish(0)
                return

            self._arm_watchers()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.post_shutdown(error=e)

    def _arm_watchers(self) -> None:
        self.watchers = self.strategy.build_watchers(self.jobs, self.post_shutdown)
        for watcher in self.watchers:
            task = asyncio.create_task(watcher.run(), name=watcher.name)
            task.add_done_callback(self._on_watcher_done)
            self._watcher_tasks.append(task)
        if self.watchers:
            logger.debug(f"Armed {', '.join(w.name for w in self.watchers)}")

    def _on_watcher_done(self, task: asyncio.Task) -> None:
        if task.cancelled() or task.exception() is None:
            return
        self.post_shutdown(error=FatalRuntimeError(f"{task.get_name()} failed: {task.exception()!r}"))

    def _cancel_watchers(self) -> None:
        for task in self._watcher_tasks:
            if not task.done():
                task.cancel()

    # --- Control loop ---

    async def _dispatch(self, message: ControlMessage) -> None:
        if isinstance(message, ShutdownRequest):
            await self.request_shutdown(message)
        elif isinstance(message, LogChunk):
            await self._handle_log_chunk(message)
        elif isinstance(message, ProcessExited):
            reason = f"runner closed with exit code {message.returncode}"
            if message.returncode == 0:
                await self.request_shutdown(self.build_request(reason=reason))
            else:
                await self.request_shutdown(self.build_request(error=FatalRuntimeError(reason)))
        elif isinstance(message, ProcessLost):
            await self.request_shutdown(self.build_request(error=FatalRuntimeError("runner process lost")))
        else:
            logger.warning(f"Ignoring unknown control message: {message!r}")

    async def _handle_log_chunk(self, chunk: LogChunk) -> None:
        logger.debug(f"runner {chunk.stream}: {chunk.data.rstrip()}")
        try:
            events = await self.platform.parse_log_chunk(chunk.data, self.config.name)
        except Exception as e:
            handle_error(
                error=e,
                context="parsing runner output",
                severity=ErrorSeverity.WARNING,
                reraise=False,
                logger=logger
            )
            return

        for event in events:
            logger.info(f"runner status {json.dumps(event.to_log_dict(), default=str)}")
            self.jobs.handle_event(event)

    async def _control_loop(self) -> None:
        while self.state is not OrchestratorState.TERMINATED:
            message = await self.queue.get()
            if message is _STOP:
                continue
            await self._dispatch(message)

    async def run(self) -> int:
        """
        Provision the runner and supervise it until teardown completes.

        Returns:
            Process exit code: 1 if shutdown was caused by an error, else 0
        """
        loop = asyncio.get_running_loop()
        self.signal_handler.setup_signal_handlers(loop)
        self._start_task = asyncio.create_task(self._start(), name="provisioning")
        try:
            await self._control_loop()
        finally:
            self.signal_handler.cleanup_signal_handlers()
            await self._cleanup()
        return self.exit_code if self.exit_code is not None else 1

    async def _cleanup(self) -> None:
        pending = list(self._watcher_tasks)
        if self._start_task is not None and not self._start_task.done():
            self._start_task.cancel()
            pending.append(self._start_task)
        self._cancel_watchers()
        await asyncio.gather(*pending, return_exceptions=True)

        if self.process is not None:
            await self.process.close()
        await self.platform.aclose()
