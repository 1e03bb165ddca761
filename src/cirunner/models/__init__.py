"""
Data models for the cirunner package.

This package contains the data structures used throughout the runner
lifecycle, organized by their purpose:
- config: Launch configuration models
- runtime: Models created and exchanged while the runner is alive
"""

from .config import CloudConfig, RunnerConfig
from .runtime import (
    ControlMessage,
    LogChunk,
    LogEvent,
    LogStatus,
    OrchestratorState,
    ProcessExited,
    ProcessLost,
    RunnerInfo,
    RunningJob,
    ShutdownRequest,
)

__all__ = [
    # Config models
    "CloudConfig",
    "RunnerConfig",
    # Runtime models
    "ControlMessage",
    "LogChunk",
    "LogEvent",
    "LogStatus",
    "OrchestratorState",
    "ProcessExited",
    "ProcessLost",
    "RunnerInfo",
    "RunningJob",
    "ShutdownRequest",
]
