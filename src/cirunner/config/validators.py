"""
Configuration validation utilities.

This module turns the merged raw options into a validated, immutable
RunnerConfig.
"""

import logging
import secrets
import string
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from .. import __version__
from ..models.config import CloudConfig, RunnerConfig
from ..validation import (
    ConfigError,
    ValidationError,
    parse_duration,
    parse_key_value_pairs,
    validate_boolean,
    validate_enum_choice,
    validate_labels,
    validate_positive_float,
    validate_positive_integer,
    validate_runner_name,
    validate_string_list,
)

logger = logging.getLogger(__name__)

DRIVERS = ["github", "gitlab", "bitbucket"]
CLOUDS = ["aws", "azure", "gcp", "kubernetes"]
LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_LABELS = "cml"
DEFAULT_IDLE_TIMEOUT = "5 minutes"
DEFAULT_CLOUD_REGION = "us-west"
DEFAULT_SPOT_PRICE = -1
DEFAULT_TPI_VERSION = ">= 0.9.10"
DEFAULT_RUNNER_VERSION = "2.319.0"
DEFAULT_DESTROY_DELAY = 10

_RANDID_ALPHABET = string.ascii_lowercase + string.digits


def random_runner_name() -> str:
    """Default runner name, ``cirunner-`` followed by ten random characters."""
    suffix = "".join(secrets.choice(_RANDID_ALPHABET) for _ in range(10))
    return f"cirunner-{suffix}"


def default_workdir(name: str) -> Path:
    return Path.home() / ".cirunner" / name


def _infer_driver(repo: Optional[str]) -> Optional[str]:
    if not repo:
        return None
    host = urlparse(repo).netloc.lower()
    for driver in DRIVERS:
        if driver in host:
            return driver
    return None


def _require(options: Dict[str, Any], key: str) -> str:
    value = options.get(key)
    if value is None or str(value).strip() == "":
        raise ValidationError(
            f"{key} is required (use --{key.replace('_', '-')} or CIRUNNER_{key.upper()})",
            field_name=key,
            value=value
        )
    return str(value).strip()


def validate_cloud_config(options: Dict[str, Any]) -> Optional[CloudConfig]:
    """
    Validate the ``cloud_*`` options.

    Args:
        options: Merged raw options

    Returns:
        CloudConfig, or None when no cloud is requested (local runner)

    Raises:
        ValidationError: If validation fails
    """
    cloud = options.get("cloud")
    if not cloud:
        return None

    cloud = validate_enum_choice(cloud, CLOUDS, field_name="cloud", case_sensitive=False)

    gpu = options.get("cloud_gpu")
    if gpu == "nogpu" or gpu == "":
        gpu = None

    hdd_size = options.get("cloud_hdd_size")
    if hdd_size is not None and hdd_size != "":
        hdd_size = validate_positive_integer(hdd_size, min_value=1, field_name="cloud_hdd_size")
    else:
        hdd_size = None

    ssh_private = options.get("cloud_ssh_private")
    if ssh_private:
        ssh_private = str(ssh_private).replace("\n", "\\n")
    else:
        ssh_private = None

    metadata_items = options.get("cloud_metadata")
    if isinstance(metadata_items, str):
        metadata_items = validate_string_list(metadata_items, field_name="cloud_metadata")

    return CloudConfig(
        cloud=cloud,
        region=str(options.get("cloud_region") or DEFAULT_CLOUD_REGION),
        instance_type=options.get("cloud_type") or None,
        permission_set=str(options.get("cloud_permission_set") or ""),
        metadata=parse_key_value_pairs(metadata_items, field_name="cloud_metadata"),
        gpu=gpu,
        hdd_size=hdd_size,
        ssh_private=ssh_private,
        spot=validate_boolean(options.get("cloud_spot", False), field_name="cloud_spot"),
        spot_price=validate_positive_float(
            options.get("cloud_spot_price", DEFAULT_SPOT_PRICE),
            min_value=-1,
            field_name="cloud_spot_price",
        ),
        startup_script=options.get("cloud_startup_script") or None,
        aws_security_group=str(options.get("cloud_aws_security_group") or ""),
        aws_subnet=str(options.get("cloud_aws_subnet") or ""),
    )


def validate_runner_config(options: Dict[str, Any]) -> RunnerConfig:
    """
    Validate and create a RunnerConfig from merged raw options.

    Args:
        options: Option name to raw value, highest-precedence source already applied

    Returns:
        Validated RunnerConfig instance

    Raises:
        ConfigError: If mutually exclusive flags are combined
        ValidationError: If any other validation fails
    """
    single = validate_boolean(options.get("single", False), field_name="single")
    reuse = validate_boolean(options.get("reuse", False), field_name="reuse")
    reuse_idle = validate_boolean(options.get("reuse_idle", False), field_name="reuse_idle")

    chosen = [flag for flag, enabled in
              (("single", single), ("reuse", reuse), ("reuse_idle", reuse_idle)) if enabled]
    if len(chosen) > 1:
        raise ConfigError(
            f"Options {', '.join(chosen)} are mutually exclusive",
            field_name=chosen[0],
            value=chosen
        )

    repo = _require(options, "repo")
    driver = options.get("driver") or _infer_driver(repo)
    if not driver:
        raise ValidationError(
            f"driver is required and could not be inferred from repo {repo}",
            field_name="driver",
            value=driver
        )
    driver = validate_enum_choice(driver, DRIVERS, field_name="driver", case_sensitive=False)
    token = _require(options, "token")

    name = validate_runner_name(options.get("name") or random_runner_name())
    workdir_value = options.get("workdir")
    workdir = Path(workdir_value).expanduser() if workdir_value else default_workdir(name)

    tf_resource = options.get("tf_resource")
    if tf_resource is not None and not isinstance(tf_resource, str):
        raise ValidationError(
            "tf_resource must be a base64-encoded string",
            field_name="tf_resource",
            value=tf_resource
        )

    config = RunnerConfig(
        driver=driver,
        repo=repo,
        token=token,
        name=name,
        labels=tuple(validate_labels(options.get("labels") or DEFAULT_LABELS)),
        idle_timeout=parse_duration(
            options.get("idle_timeout", DEFAULT_IDLE_TIMEOUT), field_name="idle_timeout"
        ),
        single=single,
        reuse=reuse,
        reuse_idle=reuse_idle,
        no_retry=validate_boolean(options.get("no_retry", False), field_name="no_retry"),
        workdir=workdir,
        docker_volumes=tuple(
            validate_string_list(options.get("docker_volumes"), field_name="docker_volumes")
        ),
        runner_version=str(options.get("runner_version") or DEFAULT_RUNNER_VERSION),
        cloud=validate_cloud_config(options),
        tpi_version=str(options.get("tpi_version") or DEFAULT_TPI_VERSION),
        cml_version=str(options.get("cml_version") or __version__),
        tf_resource=tf_resource or None,
        destroy_delay=validate_positive_float(
            options.get("destroy_delay", DEFAULT_DESTROY_DELAY),
            min_value=0,
            field_name="destroy_delay",
        ),
        log_level=validate_enum_choice(
            options.get("log_level") or "INFO", LOG_LEVELS,
            field_name="log_level", case_sensitive=False
        ),
    )

    logger.debug(f"Validated configuration for runner {config.name} ({config.driver})")
    return config
