"""
Runtime data models.

This module contains the data structures created and exchanged while a runner
is alive: tracked jobs, parsed log events, platform runner listings, shutdown
requests and the messages consumed by the orchestrator's control loop.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union


class OrchestratorState(Enum):
    """Lifecycle states; transitions only move forward."""
    STARTING = "starting"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class LogStatus(Enum):
    JOB_STARTED = "job_started"
    JOB_ENDED = "job_ended"


@dataclass
class LogEvent:
    """
    A job lifecycle event parsed from runner output.
    """

    status: LogStatus
    job_id: Optional[str] = None
    pipeline_id: Optional[str] = None
    date: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    # Extra platform-specific fields, logged alongside the status.
    details: Dict[str, Any] = field(default_factory=dict)

    def to_log_dict(self) -> Dict[str, Any]:
        data = {
            "status": self.status.value,
            "job": self.job_id,
            "pipeline": self.pipeline_id,
            "date": self.date.isoformat(),
        }
        data.update(self.details)
        return data


@dataclass
class RunningJob:
    """
    A job the runner has picked up and not yet finished.
    """

    id: Optional[str]
    pipeline_id: Optional[str]
    start_time: datetime


@dataclass
class RunnerInfo:
    """
    A runner registered on the CI platform.
    """

    id: str
    name: str
    labels: List[str] = field(default_factory=list)
    online: bool = False
    busy: bool = False


@dataclass
class ShutdownRequest:
    """
    Why and how the runner should be torn down.

    Exactly one of ``reason`` and ``error`` is normally set; an ``error``
    makes the process exit with code 1.
    """

    reason: Optional[str] = None
    error: Optional[BaseException] = None
    cloud: bool = False
    # Directory holding the terraform state to destroy, None when nothing to destroy.
    infra_resource: Optional[Path] = None
    destroy_delay: float = 0

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def exit_code(self) -> int:
        return 1 if self.is_error else 0

    def describe(self) -> str:
        if self.error is not None:
            return str(self.error)
        return self.reason or "unknown"


@dataclass
class LogChunk:
    """Raw output read from the runner's stdout or stderr."""
    data: str
    stream: str = "stdout"


@dataclass
class ProcessExited:
    """The runner subprocess exited."""
    returncode: Optional[int]


@dataclass
class ProcessLost:
    """The connection to the runner subprocess was lost."""
    error: Optional[BaseException] = None


ControlMessage = Union[LogChunk, ProcessExited, ProcessLost, ShutdownRequest]
