"""
Job activity tracking.

The tracker is the only writer of the pending-job registry. It is fed with
the LogEvents parsed from runner output by the orchestrator's control loop;
watchers and the teardown retry step only read it.
"""

import logging
from typing import Callable, List, Optional, Tuple

from ..models.runtime import LogEvent, LogStatus, RunningJob

logger = logging.getLogger(__name__)

SINGLE_JOB_REASON = "single job"


class JobActivityTracker:
    """
    Registry of jobs the runner picked up and has not finished.

    A finished job removes the most recently started entry, whatever its id:
    runner output does not reliably identify which job ended.
    """

    def __init__(self, single: bool = False,
                 on_single_job_done: Optional[Callable[[str], None]] = None):
        self.single = single
        self._on_single_job_done = on_single_job_done
        self._jobs: List[RunningJob] = []
        self._closed = False

    @property
    def pending(self) -> Tuple[RunningJob, ...]:
        return tuple(self._jobs)

    @property
    def pending_count(self) -> int:
        return len(self._jobs)

    def handle_event(self, event: LogEvent) -> None:
        if self._closed:
            logger.debug(f"Ignoring {event.status.value} after single job completion")
            return

        if event.status is LogStatus.JOB_STARTED:
            self._jobs.append(RunningJob(
                id=event.job_id,
                pipeline_id=event.pipeline_id,
                start_time=event.date,
            ))
            logger.debug(f"Job {event.job_id} started, {len(self._jobs)} pending")

        elif event.status is LogStatus.JOB_ENDED:
            if self._jobs:
                finished = self._jobs.pop()
                logger.debug(f"Job {finished.id} ended, {len(self._jobs)} pending")
            else:
                logger.warning("Job ended event received with no pending job")

            if self.single:
                self._closed = True
                if self._on_single_job_done is not None:
                    self._on_single_job_done(SINGLE_JOB_REASON)
