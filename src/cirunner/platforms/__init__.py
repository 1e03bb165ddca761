"""
CI platform clients.

This package provides the clients for the supported hosting services:
- github: GitHub Actions
- gitlab: GitLab CI
- bitbucket: Bitbucket Pipelines
"""

from .base import CIPlatformClient, split_repo_url
from .bitbucket import BitbucketClient
from .factory import PLATFORM_CLIENTS, create_platform_client
from .github import GitHubClient
from .gitlab import GitLabClient

__all__ = [
    "BitbucketClient",
    "CIPlatformClient",
    "GitHubClient",
    "GitLabClient",
    "PLATFORM_CLIENTS",
    "create_platform_client",
    "split_repo_url",
]
