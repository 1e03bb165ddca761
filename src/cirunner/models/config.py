"""
Configuration data models.

This module contains the immutable launch parameters of a runner, resolved
once at startup from CLI flags, environment variables and the optional
TOML configuration file.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional, Tuple


@dataclass(frozen=True)
class CloudConfig:
    """
    Parameters of a cloud-backed runner, rendered into the infrastructure template.
    """

    # Target cloud: aws, azure, gcp or kubernetes.
    cloud: str
    # Generic region (us-east, us-west, eu-west, eu-north) or a native cloud region.
    region: str = "us-west"
    # Generic instance type (m, l, xl) or a native type such as t2.micro.
    instance_type: Optional[str] = None
    # Instance profile in AWS or service account in GCP.
    permission_set: str = ""
    metadata: Dict[str, Optional[str]] = field(default_factory=dict)
    gpu: Optional[str] = None
    hdd_size: Optional[int] = None
    # Private RSA key with newlines escaped; None means a throwaway key.
    ssh_private: Optional[str] = None
    spot: bool = False
    # Maximum spot bid in USD, -1 for the current spot price.
    spot_price: float = -1
    # Base64-encoded shell script run during instance initialization.
    startup_script: Optional[str] = None
    aws_security_group: str = ""
    aws_subnet: str = ""


@dataclass(frozen=True)
class RunnerConfig:
    """
    Immutable snapshot of every launch parameter.

    ``cloud`` is None for a local runner; its presence alone selects the
    cloud provisioning strategy.
    """

    # --- CI platform ---
    driver: str
    repo: str
    token: str
    name: str
    labels: Tuple[str, ...] = ("cml",)

    # --- Lifecycle behaviour ---
    # Seconds without pending jobs before shutdown, 0 disables the idle watcher.
    idle_timeout: int = 300
    single: bool = False
    reuse: bool = False
    reuse_idle: bool = False
    no_retry: bool = False

    # --- Local execution ---
    workdir: Path = Path(".")
    docker_volumes: Tuple[str, ...] = ()
    runner_version: str = "2.319.0"

    # --- Infrastructure ---
    cloud: Optional[CloudConfig] = None
    tpi_version: str = ">= 0.9.10"
    # cirunner release installed on cloud instances.
    cml_version: Optional[str] = None
    # Base64 JSON of a single terraform state resource to destroy on shutdown.
    tf_resource: Optional[str] = None
    destroy_delay: float = 10

    log_level: str = "INFO"

    @property
    def is_cloud(self) -> bool:
        return self.cloud is not None

    @property
    def labels_csv(self) -> str:
        return ",".join(self.labels)

    @property
    def retry_enabled(self) -> bool:
        return not self.no_retry

    @property
    def has_destroy_target(self) -> bool:
        """Whether teardown must destroy the infrastructure in ``workdir``."""
        return bool(self.tf_resource)
