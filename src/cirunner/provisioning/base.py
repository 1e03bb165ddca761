"""
Abstract base for provisioning strategies.
"""

import asyncio
from abc import ABC, abstractmethod
from typing import Callable, List, Optional, Protocol

from ..lifecycle.jobs import JobActivityTracker
from ..models.config import RunnerConfig
from ..system.processes import RunnerProcess


class Watcher(Protocol):
    name: str

    async def run(self) -> None:
        ...


class ProvisioningStrategy(ABC):
    """
    How the runner is brought up: as a local subprocess or on a cloud instance.

    ``cloud`` tells the teardown whether the runner is owned by this process
    (unregister and terminate it) or delegated to the cloud instance.
    """

    cloud: bool = False

    def __init__(self, config: RunnerConfig):
        self.config = config

    @abstractmethod
    async def launch(self, queue: asyncio.Queue) -> Optional[RunnerProcess]:
        """
        Provision the runner.

        Returns:
            The local runner handle, already attached to ``queue``, or None
            when nothing runs locally
        """

    def build_watchers(self, jobs: JobActivityTracker,
                       trigger: Callable[[str], None]) -> List[Watcher]:
        """Watchers to arm once the runner is up."""
        return []
