"""
Terraform-backed infrastructure provisioner.

This module drives the ``terraform`` binary through asyncio subprocesses and
reads/writes the JSON state file kept in the runner working directory.
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Tuple

from ..models.config import RunnerConfig
from ..system.commands import check_binary_installed, run_command
from ..validation import FatalRuntimeError, InfraCommandError
from .templates import render_cloud_runner_template, render_provider_template

logger = logging.getLogger(__name__)

MIN_TERRAFORM_VERSION = (0, 14, 0)
STATE_FILE_NAME = "terraform.tfstate"
MAIN_FILE_NAME = "main.tf"


def parse_version(text: str) -> Tuple[int, ...]:
    """Parse ``"1.5.7"`` (optionally prefixed with ``v``) into a comparable tuple."""
    match = re.search(r"(\d+)\.(\d+)\.(\d+)", text)
    if not match:
        raise ValueError(f"Unrecognized version: {text}")
    return tuple(int(part) for part in match.groups())


class TerraformProvisioner:
    """
    Thin async wrapper over the terraform CLI.

    Every command runs non-interactively in the given working directory and
    raises ``InfraCommandError`` on a non-zero exit status.
    """

    def __init__(self, binary: str = "terraform"):
        self.binary = binary

    def _environment(self) -> Dict[str, str]:
        env = dict(os.environ)
        env["TF_IN_AUTOMATION"] = "true"
        env["TF_INPUT"] = "0"
        return env

    async def _run(self, args: Sequence[str], cwd: Optional[Path] = None) -> str:
        command = [self.binary, *args]
        returncode, stdout, stderr = await run_command(command, cwd=cwd, env=self._environment())
        if returncode != 0:
            raise InfraCommandError(" ".join(command), returncode, stderr)
        return stdout

    async def check_minimum_version(self) -> str:
        """
        Ensure the installed terraform is recent enough.

        Returns:
            The installed version string

        Raises:
            FatalRuntimeError: If terraform is missing or older than the minimum version
        """
        if not check_binary_installed(self.binary):
            raise FatalRuntimeError(
                f"{self.binary} was not found on PATH; install terraform to provision infrastructure"
            )
        output = await self._run(["version", "-json"])
        try:
            version = json.loads(output)["terraform_version"]
        except (json.JSONDecodeError, KeyError):
            version = output.split("\n", 1)[0]
        if parse_version(version) < MIN_TERRAFORM_VERSION:
            minimum = ".".join(str(part) for part in MIN_TERRAFORM_VERSION)
            raise FatalRuntimeError(f"Terraform version must be at least {minimum}, found {version}")
        logger.debug(f"Using terraform {version}")
        return version

    def render_local_destroy_template(self, provider_version: str) -> str:
        return render_provider_template(provider_version)

    def render_cloud_runner_template(self, config: RunnerConfig, gpu: Optional[str] = None) -> str:
        return render_cloud_runner_template(config, gpu)

    def write_main_file(self, directory: Path, content: str) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / MAIN_FILE_NAME
        path.write_text(content, encoding="utf-8")
        return path

    async def init_workspace(self, directory: Path) -> str:
        logger.info(f"Terraform init in {directory}")
        return await self._run(["init", "-no-color"], cwd=directory)

    async def apply(self, directory: Path) -> str:
        logger.info(f"Terraform apply in {directory}")
        return await self._run(["apply", "-auto-approve", "-no-color"], cwd=directory)

    async def destroy(self, directory: Path) -> str:
        logger.info(f"Terraform destroy in {directory}")
        return await self._run(["destroy", "-auto-approve", "-no-color"], cwd=directory)

    def load_state(self, path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save_state(self, state: Dict[str, Any], path: Path) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(state, f, indent=2)
