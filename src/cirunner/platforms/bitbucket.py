"""
Bitbucket Pipelines platform client.

The token is the base64 encoding of ``<user>:<app password>`` and is sent
as HTTP basic credentials. Runners are managed through the repository's
pipelines-config endpoints; the agent is the Atlassian runner container.
"""

import logging
import re
from typing import Dict, List, Optional

import httpx

from ..models.config import RunnerConfig
from ..models.runtime import LogEvent, LogStatus, RunnerInfo
from ..system.processes import RunnerProcess
from ..validation import ConfigError
from .base import CIPlatformClient, split_repo_url

logger = logging.getLogger(__name__)

API_URL = "https://api.bitbucket.org"
RUNNER_IMAGE = "docker-public.packages.atlassian.com/sox/atlassian/bitbucket-pipelines-runner:1"

_STEP_ID = re.compile(r"pipelineUuid=\{(?P<pipeline>[^}]+)\}.*?stepUuid=\{(?P<step>[^}]+)\}")


class BitbucketClient(CIPlatformClient):
    """
    Client for a Bitbucket Cloud repository.

    Bitbucket does not report whether a runner is executing a step, so
    ``reuse_idle`` is not supported.
    """

    driver = "bitbucket"
    supports_reuse_idle = False

    def __init__(self, repo: str, token: str,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        _, path = split_repo_url(repo)
        parts = path.split("/")
        if len(parts) != 2:
            raise ValueError(f"Bitbucket repository must be <workspace>/<name>, got '{path}'")
        self.workspace, self.slug = parts
        # Identifiers of the step announced by the runner before it starts running.
        self._pending_step: Dict[str, str] = {}
        super().__init__(repo, token, transport=transport)

    def api_base_url(self) -> str:
        return API_URL

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Basic {self.token}"}

    @property
    def repo_path(self) -> str:
        return f"/2.0/repositories/{self.workspace}/{self.slug}"

    @property
    def runners_path(self) -> str:
        return f"/internal/repositories/{self.workspace}/{self.slug}/pipelines-config/runners"

    async def repo_token_check(self) -> None:
        try:
            await self.request("GET", self.repo_path)
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (401, 403, 404):
                raise ConfigError(
                    f"Token permissions are not valid for {self.repo}: "
                    f"Bitbucket answered {e.response.status_code}",
                    field_name="token",
                ) from e
            raise

    async def list_runners(self) -> List[RunnerInfo]:
        response = await self.request("GET", self.runners_path)
        runners = []
        for runner in response.json().get("values", []):
            state = runner.get("state") or {}
            runners.append(RunnerInfo(
                id=runner["uuid"],
                name=runner.get("name", ""),
                labels=list(runner.get("labels", [])),
                online=state.get("status") == "ONLINE",
                busy=bool(state.get("step")),
            ))
        return runners

    async def unregister_runner(self, name: str) -> None:
        runner = self.find_runner_by_name(name, await self.list_runners())
        if runner is None:
            logger.warning(f"Runner {name} is not registered on {self.repo}")
            return
        await self.request("DELETE", f"{self.runners_path}/{runner.id}")

    async def rerun_pipeline_job(self, pipeline_id: Optional[str], job_id: Optional[str]) -> None:
        if not pipeline_id:
            logger.warning(f"Cannot rerun step {job_id}: pipeline unknown")
            return
        pipeline = (await self.request("GET", f"{self.repo_path}/pipelines/{{{pipeline_id}}}")).json()
        logger.info(f"Triggering a new pipeline on the target of {pipeline_id}")
        await self.request("POST", f"{self.repo_path}/pipelines/", json={"target": pipeline["target"]})

    async def start_runner_process(self, config: RunnerConfig) -> RunnerProcess:
        repository = (await self.request("GET", self.repo_path)).json()
        labels = ["self.hosted", "linux"] + [label for label in config.labels
                                             if label not in ("self.hosted", "linux")]
        registered = (await self.request("POST", self.runners_path, json={
            "name": config.name,
            "labels": labels,
        })).json()
        oauth = registered["oauth_client"]

        args = [
            "docker", "container", "run", "-i", "--rm",
            "--name", config.name,
            "-v", "/tmp:/tmp",
            "-v", "/var/run/docker.sock:/var/run/docker.sock",
            "-v", "/var/lib/docker/containers:/var/lib/docker/containers:ro",
            "-e", f"ACCOUNT_UUID={repository['workspace']['uuid']}",
            "-e", f"REPOSITORY_UUID={repository['uuid']}",
            "-e", f"RUNNER_UUID={registered['uuid']}",
            "-e", "RUNTIME_PREREQUISITES_ENABLED=true",
            "-e", f"OAUTH_CLIENT_ID={oauth['id']}",
            "-e", f"OAUTH_CLIENT_SECRET={oauth['secret']}",
            "-e", "WORKING_DIRECTORY=/tmp",
            RUNNER_IMAGE,
        ]
        return await RunnerProcess.spawn(args, name="bitbucket-runner", cwd=config.workdir)

    async def parse_log_chunk(self, data: str, runner_name: str) -> List[LogEvent]:
        events = []
        for line in data.splitlines():
            step = _STEP_ID.search(line)
            if step:
                self._pending_step = {"pipeline": step.group("pipeline"), "step": step.group("step")}
                continue
            if "Updating step progress to RUNNING" in line:
                events.append(LogEvent(
                    LogStatus.JOB_STARTED,
                    job_id=self._pending_step.get("step"),
                    pipeline_id=self._pending_step.get("pipeline"),
                ))
            elif "Completing step with result" in line:
                events.append(LogEvent(
                    LogStatus.JOB_ENDED,
                    job_id=self._pending_step.get("step"),
                    details={"success": "FAILED" not in line.upper()},
                ))
        return events
