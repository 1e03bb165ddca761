"""
Local provisioning: the runner agent runs as a subprocess of this command.
"""

import asyncio
import base64
import json
import logging
from typing import Callable, List, Optional

from ..infra.terraform import STATE_FILE_NAME, TerraformProvisioner
from ..lifecycle.jobs import JobActivityTracker
from ..lifecycle.power import PowerEventListener
from ..lifecycle.watchers import IdleWatcher, LongRunningJobWatchdog
from ..models.config import RunnerConfig
from ..platforms.base import CIPlatformClient
from ..system.processes import RunnerProcess
from .base import ProvisioningStrategy, Watcher

logger = logging.getLogger(__name__)


def decode_tf_resource(tf_resource: str) -> dict:
    """Decode the base64 JSON of a single terraform state resource."""
    return json.loads(base64.b64decode(tf_resource).decode("utf-8"))


class LocalStrategy(ProvisioningStrategy):
    """
    Spawns the platform's runner agent and arms the local watchers.

    When ``tf_resource`` is given, a provider-only terraform workspace is
    created in the workdir and the resource is written into its state, so
    that teardown's ``terraform destroy`` removes the machine hosting us.
    """

    cloud = False

    def __init__(self, config: RunnerConfig, platform: CIPlatformClient,
                 terraform: TerraformProvisioner):
        super().__init__(config)
        self.platform = platform
        self.terraform = terraform

    async def register_destroy_target(self) -> None:
        config = self.config
        await self.terraform.check_minimum_version()

        self.terraform.write_main_file(
            config.workdir, self.terraform.render_local_destroy_template(config.tpi_version)
        )
        await self.terraform.init_workspace(config.workdir)
        await self.terraform.apply(config.workdir)

        state_path = config.workdir / STATE_FILE_NAME
        state = self.terraform.load_state(state_path)
        state["resources"] = [decode_tf_resource(config.tf_resource)]
        self.terraform.save_state(state, state_path)
        logger.info("Registered infrastructure resource for destruction on shutdown")

    async def launch(self, queue: asyncio.Queue) -> Optional[RunnerProcess]:
        logger.info(f"Launching {self.config.driver} runner")
        if self.config.tf_resource:
            await self.register_destroy_target()

        process = await self.platform.start_runner_process(self.config)
        process.attach(queue)
        return process

    def build_watchers(self, jobs: JobActivityTracker,
                       trigger: Callable[[str], None]) -> List[Watcher]:
        watchers: List[Watcher] = []
        if PowerEventListener.available():
            watchers.append(PowerEventListener(trigger))
        if self.config.idle_timeout > 0:
            watchers.append(IdleWatcher(self.config.idle_timeout, jobs, trigger))
        if LongRunningJobWatchdog.applies_to(self.config.driver, self.config.retry_enabled):
            watchers.append(LongRunningJobWatchdog(jobs, trigger))
        return watchers
