"""
Factory for provisioning strategies.
"""

import logging

from ..infra.terraform import TerraformProvisioner
from ..models.config import RunnerConfig
from ..platforms.base import CIPlatformClient
from .base import ProvisioningStrategy
from .cloud import CloudStrategy
from .local import LocalStrategy

logger = logging.getLogger(__name__)


def select_strategy(config: RunnerConfig, platform: CIPlatformClient,
                    terraform: TerraformProvisioner) -> ProvisioningStrategy:
    """Cloud strategy when a cloud is configured, local otherwise."""
    if config.is_cloud:
        logger.debug(f"Provisioning a {config.cloud.cloud} runner")
        return CloudStrategy(config, terraform)
    return LocalStrategy(config, platform, terraform)
