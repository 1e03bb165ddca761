"""
Periodic watchers that end the runner on inactivity or overlong jobs.

Each watcher exposes ``tick()``, one synchronous evaluation step that
returns True once it has fired, and ``run()``, the coroutine that calls
``tick()`` on a fixed interval until then.
"""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from .jobs import JobActivityTracker

logger = logging.getLogger(__name__)

# GitHub cancels jobs after 35 days; leave a margin to request the rerun.
GITHUB_JOB_CEILING = timedelta(days=35)
WATCHDOG_SAFETY_MARGIN = timedelta(minutes=5)
WATCHDOG_REASON = "timeout:35days"


class IdleWatcher:
    """
    Shuts the runner down after ``idle_timeout`` consecutive idle ticks.

    A tick is idle when no job is pending; any busy tick resets the count.
    An ``idle_timeout`` of 0 disables the watcher.
    """

    name = "idle-watcher"

    def __init__(self, idle_timeout: int, jobs: JobActivityTracker,
                 trigger: Callable[[str], None], interval: float = 1.0):
        self.idle_timeout = idle_timeout
        self.jobs = jobs
        self.trigger = trigger
        self.interval = interval
        self.idle_ticks = 0
        self.fired = False

    @property
    def active(self) -> bool:
        return self.idle_timeout > 0

    def tick(self) -> bool:
        if self.fired or not self.active:
            return self.fired
        if self.jobs.pending_count == 0:
            self.idle_ticks += 1
        else:
            self.idle_ticks = 0
        if self.idle_ticks >= self.idle_timeout:
            self.fired = True
            logger.info(f"Runner idle for {self.idle_ticks} seconds")
            self.trigger(f"timeout:{self.idle_timeout}")
        return self.fired

    async def run(self) -> None:
        if not self.active:
            return
        while True:
            await asyncio.sleep(self.interval)
            if self.tick():
                return


class LongRunningJobWatchdog:
    """
    Shuts the runner down before the platform kills a job for running too long.

    Only meaningful on GitHub with retries enabled: teardown then requests a
    rerun of the job's workflow.
    """

    name = "long-job-watchdog"

    def __init__(self, jobs: JobActivityTracker, trigger: Callable[[str], None],
                 ceiling: timedelta = GITHUB_JOB_CEILING - WATCHDOG_SAFETY_MARGIN,
                 interval: float = 60.0,
                 clock: Optional[Callable[[], datetime]] = None):
        self.jobs = jobs
        self.trigger = trigger
        self.ceiling = ceiling
        self.interval = interval
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.fired = False

    @staticmethod
    def applies_to(driver: str, retry_enabled: bool) -> bool:
        return driver == "github" and retry_enabled

    def tick(self) -> bool:
        if self.fired:
            return True
        now = self.clock()
        for job in self.jobs.pending:
            if now - job.start_time > self.ceiling:
                logger.warning(f"Job {job.id} has been running since {job.start_time.isoformat()}")
                self.fired = True
                self.trigger(WATCHDOG_REASON)
                break
        return self.fired

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            if self.tick():
                return
