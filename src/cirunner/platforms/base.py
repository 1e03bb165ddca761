"""
Abstract base for CI platform clients.

A platform client talks to the hosting service (GitHub, GitLab, Bitbucket)
on behalf of one repository: it lists and unregisters self-hosted runners,
requests pipeline reruns, starts the platform's runner agent and parses that
agent's output into job lifecycle events.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import urlparse

import httpx

from ..models.config import RunnerConfig
from ..models.runtime import LogEvent, RunnerInfo
from ..system.processes import RunnerProcess

logger = logging.getLogger(__name__)

DEFAULT_HTTP_TIMEOUT = 30.0


def split_repo_url(repo: str) -> Tuple[str, str]:
    """
    Split a repository URL into its origin and its path.

    Args:
        repo: Repository URL such as ``https://github.com/owner/name``

    Returns:
        Tuple of (``scheme://host``, path without surrounding slashes or ``.git``)

    Raises:
        ValueError: If the URL has no host or no path
    """
    parsed = urlparse(repo)
    if not parsed.scheme or not parsed.netloc:
        raise ValueError(f"Repository must be a full URL, got '{repo}'")
    path = parsed.path.strip("/")
    if path.endswith(".git"):
        path = path[:-len(".git")]
    if not path:
        raise ValueError(f"Repository URL has no path: '{repo}'")
    return f"{parsed.scheme}://{parsed.netloc}", path


class CIPlatformClient(ABC):
    """
    Abstract CI platform client bound to one repository.

    Subclasses provide the HTTP base URL and authentication headers and
    implement the platform-specific operations. HTTP failures surface as
    ``httpx.HTTPStatusError``.
    """

    driver: str = ""
    supports_reuse_idle: bool = True

    def __init__(self, repo: str, token: str,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.repo = repo
        self.token = token
        self.client = httpx.AsyncClient(
            base_url=self.api_base_url(),
            headers=self.auth_headers(),
            timeout=DEFAULT_HTTP_TIMEOUT,
            transport=transport,
        )

    @abstractmethod
    def api_base_url(self) -> str:
        """Base URL of the platform REST API for this repository."""

    @abstractmethod
    def auth_headers(self) -> Dict[str, str]:
        """Headers authenticating every API request."""

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send an API request and raise on an error status."""
        response = await self.client.request(method, url, **kwargs)
        response.raise_for_status()
        return response

    async def aclose(self) -> None:
        await self.client.aclose()

    @abstractmethod
    async def repo_token_check(self) -> None:
        """
        Verify the token can administer the repository's runners.

        Raises:
            ConfigError: If the token is rejected
        """

    @abstractmethod
    async def list_runners(self) -> List[RunnerInfo]:
        """List the self-hosted runners registered on the repository."""

    def find_runner_by_name(self, name: str, runners: Iterable[RunnerInfo]) -> Optional[RunnerInfo]:
        for runner in runners:
            if runner.name == name:
                return runner
        return None

    def find_runners_by_labels(self, labels: Iterable[str],
                               runners: Iterable[RunnerInfo]) -> List[RunnerInfo]:
        """Runners carrying every one of ``labels``."""
        wanted = set(labels)
        return [runner for runner in runners if wanted.issubset(runner.labels)]

    @abstractmethod
    async def unregister_runner(self, name: str) -> None:
        """Remove the runner called ``name`` from the platform."""

    @abstractmethod
    async def rerun_pipeline_job(self, pipeline_id: Optional[str], job_id: Optional[str]) -> None:
        """Ask the platform to run the pipeline (or job) again."""

    @abstractmethod
    async def start_runner_process(self, config: RunnerConfig) -> RunnerProcess:
        """Register and start the platform's runner agent."""

    @abstractmethod
    async def parse_log_chunk(self, data: str, runner_name: str) -> List[LogEvent]:
        """Extract job lifecycle events from a chunk of runner agent output."""
