"""
Configuration source loading utilities.

This module handles the low-level reading of every configuration source:
the optional TOML file, ``CIRUNNER_*`` environment variables and the
defaults inferred from the CI environment the command runs in.
"""

import logging
import tomllib
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from ..validation import handle_config_error, ErrorSeverity

logger = logging.getLogger(__name__)

ENV_PREFIX = "CIRUNNER_"

# Every option accepted from the command line, the environment or the TOML file.
OPTION_NAMES = (
    "driver",
    "repo",
    "token",
    "labels",
    "idle_timeout",
    "name",
    "no_retry",
    "single",
    "reuse",
    "reuse_idle",
    "workdir",
    "docker_volumes",
    "cloud",
    "cloud_region",
    "cloud_type",
    "cloud_permission_set",
    "cloud_metadata",
    "cloud_gpu",
    "cloud_hdd_size",
    "cloud_ssh_private",
    "cloud_spot",
    "cloud_spot_price",
    "cloud_startup_script",
    "cloud_aws_security_group",
    "cloud_aws_subnet",
    "tpi_version",
    "cml_version",
    "runner_version",
    "tf_resource",
    "destroy_delay",
    "log_level",
)


def load_toml_file(file_path: Path, description: str = "configuration file") -> Dict[str, Any]:
    """
    Load and parse a TOML file with error handling.

    Args:
        file_path: Path to the TOML file to load
        description: Human-readable description for error messages

    Returns:
        Parsed TOML data as a dictionary

    Raises:
        FileNotFoundError: If the file doesn't exist
        tomllib.TOMLDecodeError: If the file is malformed
    """
    logger.info(f"Loading {description} from: {file_path}")

    if not file_path.exists():
        logger.error(f"{description} not found: {file_path}")
        raise FileNotFoundError(f"{description} not found: {file_path}")

    try:
        with open(file_path, "rb") as f:
            return tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        handle_config_error(
            error=e,
            context=f"parsing {description}",
            severity=ErrorSeverity.CRITICAL,
            reraise=True,
            logger=logger
        )
        raise


def load_runner_file(config_path: Path) -> Dict[str, Any]:
    """
    Load the ``[runner]`` table of a configuration file as flat options.

    Keys of the nested ``[runner.cloud]`` table are prefixed with ``cloud_``,
    except ``cloud.provider`` which becomes the ``cloud`` option itself.

    Args:
        config_path: Path to the TOML file

    Returns:
        Dictionary of option name to raw value
    """
    data = load_toml_file(config_path, "runner configuration file")
    runner_data = dict(data.get("runner", {}))

    cloud_data = runner_data.pop("cloud", None)
    if isinstance(cloud_data, dict):
        for key, value in cloud_data.items():
            option = "cloud" if key == "provider" else f"cloud_{key}"
            runner_data[option] = value
    elif cloud_data is not None:
        runner_data["cloud"] = cloud_data

    unknown = sorted(key for key in runner_data if key not in OPTION_NAMES)
    if unknown:
        logger.warning(f"Ignoring unknown options in {config_path}: {', '.join(unknown)}")
        for key in unknown:
            runner_data.pop(key)

    return runner_data


def load_env_options(environ: Mapping[str, str]) -> Dict[str, str]:
    """
    Collect options from ``CIRUNNER_<OPTION>`` environment variables.

    Values are returned as strings; type conversion is left to validation.
    """
    options = {}
    for name in OPTION_NAMES:
        value = environ.get(f"{ENV_PREFIX}{name.upper()}")
        if value is not None:
            options[name] = value
    return options


def infer_ci_environment(environ: Mapping[str, str]) -> Dict[str, str]:
    """
    Infer driver, repository and token from the CI system running this command.

    Used as the lowest-precedence source so a runner launched from inside a
    pipeline needs no explicit ``--driver``/``--repo``/``--token``.
    """
    inferred: Dict[str, str] = {}

    if environ.get("GITHUB_ACTIONS") or environ.get("GITHUB_REPOSITORY"):
        inferred["driver"] = "github"
        if environ.get("GITHUB_REPOSITORY"):
            server = environ.get("GITHUB_SERVER_URL", "https://github.com")
            inferred["repo"] = f"{server.rstrip('/')}/{environ['GITHUB_REPOSITORY']}"
    elif environ.get("GITLAB_CI") or environ.get("CI_PROJECT_URL"):
        inferred["driver"] = "gitlab"
        if environ.get("CI_PROJECT_URL"):
            inferred["repo"] = environ["CI_PROJECT_URL"]
    elif environ.get("BITBUCKET_BUILD_NUMBER") or environ.get("BITBUCKET_REPO_FULL_NAME"):
        inferred["driver"] = "bitbucket"
        if environ.get("BITBUCKET_REPO_FULL_NAME"):
            inferred["repo"] = f"https://bitbucket.org/{environ['BITBUCKET_REPO_FULL_NAME']}"

    for token_var in ("REPO_TOKEN", "GITHUB_TOKEN", "GITLAB_TOKEN", "BITBUCKET_TOKEN"):
        if environ.get(token_var):
            inferred["token"] = environ[token_var]
            break

    return inferred


def merge_option_sources(*sources: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Merge option dictionaries, earlier sources taking precedence.

    ``None`` values never override a lower-precedence source.
    """
    merged: Dict[str, Any] = {}
    for source in reversed(sources):
        if not source:
            continue
        for key, value in source.items():
            if value is not None:
                merged[key] = value
    return merged
