"""
GitLab CI platform client.

Runner output is parsed from ``gitlab-runner --log-format=json``: one JSON
object per line with the human readable message under ``msg``.
"""

import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import quote

import httpx

from ..models.config import RunnerConfig
from ..models.runtime import LogEvent, LogStatus, RunnerInfo
from ..system.processes import RunnerProcess
from ..validation import ConfigError
from .base import CIPlatformClient, split_repo_url

logger = logging.getLogger(__name__)

DOCKER_IMAGE = "ubuntu:22.04"


class GitLabClient(CIPlatformClient):
    """
    Client for a GitLab project, gitlab.com or self-managed.
    """

    driver = "gitlab"

    def __init__(self, repo: str, token: str,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.origin, self.project_path = split_repo_url(repo)
        self._project_id: Optional[int] = None
        super().__init__(repo, token, transport=transport)

    def api_base_url(self) -> str:
        return f"{self.origin}/api/v4"

    def auth_headers(self) -> Dict[str, str]:
        return {"PRIVATE-TOKEN": self.token}

    @property
    def project_ref(self) -> str:
        return quote(self.project_path, safe="")

    async def project_id(self) -> int:
        if self._project_id is None:
            response = await self.request("GET", f"/projects/{self.project_ref}")
            self._project_id = response.json()["id"]
        return self._project_id

    async def repo_token_check(self) -> None:
        try:
            await self.project_id()
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (401, 403, 404):
                raise ConfigError(
                    f"Token permissions are not valid for {self.repo}: "
                    f"GitLab answered {e.response.status_code}",
                    field_name="token",
                ) from e
            raise

    async def list_runners(self) -> List[RunnerInfo]:
        project_id = await self.project_id()
        response = await self.request(
            "GET", f"/projects/{project_id}/runners", params={"per_page": 100}
        )
        runners = []
        for runner in response.json():
            details = (await self.request("GET", f"/runners/{runner['id']}")).json()
            running = await self.request(
                "GET", f"/runners/{runner['id']}/jobs", params={"status": "running"}
            )
            runners.append(RunnerInfo(
                id=str(runner["id"]),
                name=runner.get("description") or details.get("description", ""),
                labels=list(details.get("tag_list", [])),
                online=runner.get("status") == "online",
                busy=bool(running.json()),
            ))
        return runners

    async def unregister_runner(self, name: str) -> None:
        runner = self.find_runner_by_name(name, await self.list_runners())
        if runner is None:
            logger.warning(f"Runner {name} is not registered on {self.repo}")
            return
        await self.request("DELETE", f"/runners/{runner.id}")

    async def rerun_pipeline_job(self, pipeline_id: Optional[str], job_id: Optional[str]) -> None:
        project_id = await self.project_id()
        if job_id:
            logger.info(f"Requesting retry of job {job_id}")
            await self.request("POST", f"/projects/{project_id}/jobs/{job_id}/retry")
        elif pipeline_id:
            logger.info(f"Requesting retry of pipeline {pipeline_id}")
            await self.request("POST", f"/projects/{project_id}/pipelines/{pipeline_id}/retry")
        else:
            logger.warning("Cannot retry a job without job or pipeline id")

    async def _register_runner(self, config: RunnerConfig) -> str:
        response = await self.request("POST", "/user/runners", data={
            "runner_type": "project_type",
            "project_id": await self.project_id(),
            "description": config.name,
            "tag_list": config.labels_csv,
            "run_untagged": "false",
        })
        return response.json()["token"]

    async def start_runner_process(self, config: RunnerConfig) -> RunnerProcess:
        runner_token = await self._register_runner(config)

        args = [
            "gitlab-runner", "--log-format=json", "run-single",
            "--url", self.origin,
            "--token", runner_token,
            "--name", config.name,
            "--builds-dir", str(config.workdir / "builds"),
            "--cache-dir", str(config.workdir / "cache"),
        ]
        if config.idle_timeout > 0:
            args += ["--wait-timeout", str(config.idle_timeout)]
        if config.docker_volumes:
            args += ["--executor", "docker", "--docker-image", DOCKER_IMAGE]
            for volume in config.docker_volumes:
                args += ["--docker-volumes", volume]
        else:
            args += ["--executor", "shell"]
        if config.single:
            args += ["--max-builds", "1"]

        return await RunnerProcess.spawn(args, name="gitlab-runner", cwd=config.workdir)

    async def _pipeline_of_job(self, job_id: str) -> Optional[str]:
        try:
            response = await self.request("GET", f"/projects/{await self.project_id()}/jobs/{job_id}")
        except httpx.HTTPError as e:
            logger.warning(f"Could not look up pipeline of job {job_id}: {e}")
            return None
        pipeline = response.json().get("pipeline") or {}
        return str(pipeline["id"]) if "id" in pipeline else None

    async def parse_log_chunk(self, data: str, runner_name: str) -> List[LogEvent]:
        events = []
        for line in data.splitlines():
            line = line.strip()
            if not line.startswith("{"):
                continue
            try:
                record: Dict[str, Any] = json.loads(line)
            except json.JSONDecodeError:
                continue

            msg = str(record.get("msg", ""))
            job = record.get("job")
            if "Checking for jobs... received" in msg:
                job_id = str(job) if job is not None else None
                pipeline = record.get("pipeline")
                pipeline_id = str(pipeline) if pipeline is not None else None
                if pipeline_id is None and job_id is not None:
                    pipeline_id = await self._pipeline_of_job(job_id)
                events.append(LogEvent(
                    LogStatus.JOB_STARTED, job_id=job_id, pipeline_id=pipeline_id,
                    details={"repo_url": record.get("repo_url")},
                ))
            elif "Job succeeded" in msg or "Job failed" in msg:
                events.append(LogEvent(
                    LogStatus.JOB_ENDED,
                    job_id=str(job) if job is not None else None,
                    details={"success": "Job succeeded" in msg},
                ))
        return events
