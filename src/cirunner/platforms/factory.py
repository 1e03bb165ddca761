"""
Factory for CI platform clients.
"""

import logging
from typing import Dict, Optional, Type

import httpx

from .base import CIPlatformClient
from .bitbucket import BitbucketClient
from .github import GitHubClient
from .gitlab import GitLabClient

logger = logging.getLogger(__name__)

PLATFORM_CLIENTS: Dict[str, Type[CIPlatformClient]] = {
    "github": GitHubClient,
    "gitlab": GitLabClient,
    "bitbucket": BitbucketClient,
}


def create_platform_client(
    driver: str,
    repo: str,
    token: str,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> CIPlatformClient:
    """
    Create the client for ``driver`` bound to ``repo``.

    Args:
        driver: One of ``github``, ``gitlab``, ``bitbucket``
        repo: Repository URL
        token: Personal access token
        transport: Optional httpx transport, used by tests

    Returns:
        Platform client instance

    Raises:
        ValueError: If the driver is unknown or the repository URL is malformed
    """
    try:
        client_class = PLATFORM_CLIENTS[driver]
    except KeyError:
        raise ValueError(
            f"Unknown driver '{driver}'. Available drivers: {', '.join(PLATFORM_CLIENTS)}"
        )
    logger.debug(f"Creating {client_class.__name__} for {repo}")
    return client_class(repo, token, transport=transport)
