"""
Pre-flight checks run before anything is provisioned.

They decide whether a new runner is needed at all (reuse of an existing
runner ends the command successfully) and reject launches that would
clash with an existing runner.
"""

import json
import logging
import os
from dataclasses import asdict

from ..models.config import RunnerConfig
from ..platforms.base import CIPlatformClient
from ..validation import ConfigError

logger = logging.getLogger(__name__)

WORKDIR_MODE = 0o766


async def run_preflight(config: RunnerConfig, platform: CIPlatformClient) -> bool:
    """
    Check the platform and prepare the working directory.

    Args:
        config: Launch configuration
        platform: Client for the repository's CI platform

    Returns:
        True to launch a new runner, False when an existing runner is reused

    Raises:
        ConfigError: On a name collision without ``reuse``, or ``reuse_idle``
            on a platform that cannot report idle runners
    """
    await platform.repo_token_check()

    if config.docker_volumes and config.driver != "gitlab":
        logger.warning("Parameter docker_volumes is only supported in gitlab")

    runners = await platform.list_runners()

    if platform.find_runner_by_name(config.name, runners) is not None:
        if not config.reuse:
            raise ConfigError(
                f"Runner name {config.name} is already in use. "
                "Please change the name or terminate the existing runner.",
                field_name="name",
                value=config.name,
            )
        logger.info(f"Reusing existing runner named {config.name}...")
        return False

    matching = platform.find_runners_by_labels(config.labels, runners)

    if config.reuse and any(runner.online for runner in matching):
        logger.info(f"Reusing existing online runners with the {config.labels_csv} labels...")
        return False

    if config.reuse_idle:
        if not platform.supports_reuse_idle:
            raise ConfigError(
                f"reuse_idle is unsupported by {config.driver}",
                field_name="reuse_idle",
                value=True,
            )
        logger.info(f"Checking for existing idle runner matching labels: {config.labels_csv}.")
        for runner in matching:
            if runner.online and not runner.busy:
                logger.info(f"Found matching idle runner. {json.dumps(asdict(runner))}")
                return False

    if config.driver == "github":
        logger.warning(
            "Github Actions timeout has been updated from 72h to 35 days. "
            "Update your workflow accordingly to be able to restart it automatically."
        )

    prepare_workdir(config)
    return True


def prepare_workdir(config: RunnerConfig) -> None:
    logger.info(f"Preparing workdir {config.workdir}...")
    config.workdir.mkdir(parents=True, exist_ok=True)
    os.chmod(config.workdir, WORKDIR_MODE)
