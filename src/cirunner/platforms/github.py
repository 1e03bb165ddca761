"""
GitHub Actions platform client.
"""

import asyncio
import logging
import os
import platform
import re
import tarfile
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from ..models.config import RunnerConfig
from ..models.runtime import LogEvent, LogStatus, RunnerInfo
from ..system.commands import run_command
from ..system.processes import RunnerProcess
from ..validation import ConfigError, FatalRuntimeError
from .base import CIPlatformClient, split_repo_url

logger = logging.getLogger(__name__)

RUNNER_DOWNLOAD_URL = (
    "https://github.com/actions/runner/releases/download/"
    "v{version}/actions-runner-{os}-{arch}-{version}.tar.gz"
)

_JOB_STARTED = re.compile(r"Running job: (?P<job>.+)")
_JOB_ENDED = re.compile(r"Job (?P<job>.+) completed with result: (?P<result>\w+)")

_ARCHES = {"x86_64": "x64", "amd64": "x64", "aarch64": "arm64", "arm64": "arm64", "armv7l": "arm"}


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


class GitHubClient(CIPlatformClient):
    """
    Client for GitHub (and GitHub Enterprise) repository runners.

    The runner agent is the ``actions/runner`` release, unpacked into
    ``<workdir>/actions-runner`` and configured with a registration token.
    """

    driver = "github"

    def __init__(self, repo: str, token: str,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.origin, path = split_repo_url(repo)
        parts = path.split("/")
        if len(parts) != 2:
            raise ValueError(f"GitHub repository must be <owner>/<name>, got '{path}'")
        self.owner, self.name = parts
        super().__init__(repo, token, transport=transport)

    def api_base_url(self) -> str:
        if os.environ.get("GITHUB_API_URL"):
            return os.environ["GITHUB_API_URL"].rstrip("/")
        if self.origin == "https://github.com":
            return "https://api.github.com"
        return f"{self.origin}/api/v3"

    def auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    @property
    def repo_path(self) -> str:
        return f"/repos/{self.owner}/{self.name}"

    async def repo_token_check(self) -> None:
        try:
            await self.request("GET", self.repo_path)
        except httpx.HTTPStatusError as e:
            if e.response.status_code in (401, 403, 404):
                raise ConfigError(
                    f"Token permissions are not valid for {self.repo}: "
                    f"GitHub answered {e.response.status_code}",
                    field_name="token",
                ) from e
            raise

    async def list_runners(self) -> List[RunnerInfo]:
        runners = []
        page = 1
        while True:
            response = await self.request(
                "GET", f"{self.repo_path}/actions/runners",
                params={"per_page": 100, "page": page},
            )
            batch = response.json().get("runners", [])
            for runner in batch:
                runners.append(RunnerInfo(
                    id=str(runner["id"]),
                    name=runner["name"],
                    labels=[label["name"] for label in runner.get("labels", [])],
                    online=runner.get("status") == "online",
                    busy=bool(runner.get("busy")),
                ))
            if len(batch) < 100:
                return runners
            page += 1

    async def unregister_runner(self, name: str) -> None:
        runner = self.find_runner_by_name(name, await self.list_runners())
        if runner is None:
            logger.warning(f"Runner {name} is not registered on {self.repo}")
            return
        await self.request("DELETE", f"{self.repo_path}/actions/runners/{runner.id}")

    async def rerun_pipeline_job(self, pipeline_id: Optional[str], job_id: Optional[str]) -> None:
        if not pipeline_id:
            logger.warning(f"Cannot rerun job {job_id}: workflow run unknown")
            return
        logger.info(f"Requesting rerun of workflow run {pipeline_id}")
        await self.request("POST", f"{self.repo_path}/actions/runs/{pipeline_id}/rerun")

    async def _registration_token(self) -> str:
        response = await self.request(
            "POST", f"{self.repo_path}/actions/runners/registration-token"
        )
        return response.json()["token"]

    async def _ensure_runner_installed(self, runner_dir: Path, version: str) -> None:
        if (runner_dir / "config.sh").exists():
            return

        system = "osx" if platform.system() == "Darwin" else "linux"
        arch = _ARCHES.get(platform.machine().lower(), "x64")
        url = RUNNER_DOWNLOAD_URL.format(version=version, os=system, arch=arch)
        archive = runner_dir.parent / f"actions-runner-{version}.tar.gz"
        runner_dir.mkdir(parents=True, exist_ok=True)

        logger.info(f"Downloading GitHub runner {version} from {url}")
        async with httpx.AsyncClient(follow_redirects=True, timeout=None) as downloader:
            async with downloader.stream("GET", url) as response:
                response.raise_for_status()
                with open(archive, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)

        def _extract() -> None:
            with tarfile.open(archive) as tar:
                tar.extractall(runner_dir, filter="data")
            archive.unlink()

        await asyncio.to_thread(_extract)

    async def start_runner_process(self, config: RunnerConfig) -> RunnerProcess:
        runner_dir = config.workdir / "actions-runner"
        await self._ensure_runner_installed(runner_dir, config.runner_version)

        args = [
            "./config.sh",
            "--unattended",
            "--url", self.repo,
            "--token", await self._registration_token(),
            "--name", config.name,
            "--labels", config.labels_csv,
            "--work", str(config.workdir / "_work"),
            "--replace",
        ]
        if config.single:
            args.append("--ephemeral")

        returncode, _, stderr = await run_command(args, cwd=runner_dir)
        if returncode != 0:
            raise FatalRuntimeError(f"GitHub runner configuration failed: {stderr.strip()}")

        return await RunnerProcess.spawn(["./run.sh"], name="github-runner", cwd=runner_dir)

    async def _find_running_job(self, runner_name: str) -> Optional[Dict[str, Any]]:
        response = await self.request(
            "GET", f"{self.repo_path}/actions/runs", params={"status": "in_progress"}
        )
        for run in response.json().get("workflow_runs", []):
            jobs = await self.request("GET", f"{self.repo_path}/actions/runs/{run['id']}/jobs")
            for job in jobs.json().get("jobs", []):
                if job.get("runner_name") == runner_name and job.get("status") == "in_progress":
                    return job
        return None

    async def parse_log_chunk(self, data: str, runner_name: str) -> List[LogEvent]:
        events = []
        for line in data.splitlines():
            ended = _JOB_ENDED.search(line)
            if ended:
                events.append(LogEvent(
                    LogStatus.JOB_ENDED,
                    details={"name": ended.group("job"), "success": ended.group("result") == "Succeeded"},
                ))
                continue

            started = _JOB_STARTED.search(line)
            if not started:
                continue
            event = LogEvent(LogStatus.JOB_STARTED, details={"name": started.group("job").strip()})
            try:
                job = await self._find_running_job(runner_name)
            except httpx.HTTPError as e:
                logger.warning(f"Could not look up the job picked by {runner_name}: {e}")
                job = None
            if job is not None:
                event.job_id = str(job["id"])
                event.pipeline_id = str(job["run_id"])
                event.date = _parse_timestamp(job.get("started_at")) or event.date
            events.append(event)
        return events
