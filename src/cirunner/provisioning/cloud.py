"""
Cloud provisioning: terraform boots the runner on a cloud instance.
"""

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from ..infra.terraform import STATE_FILE_NAME, TerraformProvisioner
from ..models.config import RunnerConfig
from ..system.processes import RunnerProcess
from .base import ProvisioningStrategy

logger = logging.getLogger(__name__)

# State attributes safe to print; tokens and SSH keys are never among them.
NON_SENSITIVE_ATTRIBUTES = (
    "aws_security_group",
    "aws_subnet_id",
    "cloud",
    "driver",
    "id",
    "idle_timeout",
    "image",
    "instance_gpu",
    "instance_hdd_size",
    "instance_ip",
    "instance_launch_time",
    "instance_type",
    "instance_permission_set",
    "labels",
    "cml_version",
    "metadata",
    "name",
    "region",
    "repo",
    "single",
    "spot",
    "spot_price",
    "timeouts",
)

DEPRECATED_GPU_ALIASES = {"tesla": "v100"}


def non_sensitive_attributes(state: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Whitelisted attributes of every instance of every ``iterative_*`` resource."""
    result = []
    for resource in state.get("resources", []):
        if not str(resource.get("type", "")).startswith("iterative_"):
            continue
        for instance in resource.get("instances", []):
            attributes = instance.get("attributes") or {}
            result.append({key: attributes.get(key) for key in NON_SENSITIVE_ATTRIBUTES})
    return result


def resolve_gpu(gpu: Optional[str]) -> Optional[str]:
    if gpu in DEPRECATED_GPU_ALIASES:
        replacement = DEPRECATED_GPU_ALIASES[gpu]
        logger.warning(f'GPU model "{gpu}" has been deprecated; please use "{replacement}" instead.')
        return replacement
    return gpu


class CloudStrategy(ProvisioningStrategy):
    """
    Applies the cloud runner template; nothing runs locally afterwards.
    """

    cloud = True

    def __init__(self, config: RunnerConfig, terraform: TerraformProvisioner):
        super().__init__(config)
        self.terraform = terraform

    async def deploy(self) -> Dict[str, Any]:
        config = self.config
        logger.info("Terraform apply...")
        await self.terraform.check_minimum_version()

        gpu = resolve_gpu(config.cloud.gpu if config.cloud else None)
        self.terraform.write_main_file(
            config.workdir, self.terraform.render_cloud_runner_template(config, gpu)
        )
        await self.terraform.init_workspace(config.workdir)
        await self.terraform.apply(config.workdir)
        return self.terraform.load_state(config.workdir / STATE_FILE_NAME)

    async def launch(self, queue: asyncio.Queue) -> Optional[RunnerProcess]:
        logger.info("Deploying cloud runner plan...")
        state = await self.deploy()
        for attributes in non_sensitive_attributes(state):
            logger.info(json.dumps(attributes))
        return None
