"""
Command-line interface for cirunner.

This module provides the ``cirunner runner`` entry point: it parses the
launch flags, resolves the configuration, and drives the lifecycle
orchestrator until the runner has been torn down.
"""

import argparse
import asyncio
import logging
import sys
from typing import Any, Dict, List, Optional

from ..config import load_runner_config
from ..infra.terraform import TerraformProvisioner
from ..lifecycle.orchestrator import LifecycleOrchestrator
from ..models.config import RunnerConfig
from ..platforms import create_platform_client
from ..provisioning import select_strategy
from ..validation import ValidationError, handle_cli_error

# --- Logging Setup ---
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)-5.5s] %(name)s:%(filename)s:%(lineno)d\t %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    stream=sys.stdout,
)
logger = logging.getLogger(__name__)

# Request logs would carry tokens in URLs and headers.
for _noisy in ("httpx", "httpcore"):
    logging.getLogger(_noisy).setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cirunner",
        description="Manage the lifecycle of self-hosted CI runners.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)
    runner = subparsers.add_parser(
        "runner", help="Launch and register a self-hosted runner"
    )

    runner.add_argument("--config", type=str,
                        help="TOML file with a [runner] table (env: CIRUNNER_CONFIG)")
    runner.add_argument("--driver", type=str, choices=["github", "gitlab", "bitbucket"],
                        help="Platform where the repository is hosted. Inferred from the environment if omitted")
    runner.add_argument("--repo", type=str,
                        help="Repository to register the runner on. Inferred from the environment if omitted")
    runner.add_argument("--token", type=str,
                        help="Personal access token able to register self-hosted runners")
    runner.add_argument("--labels", type=str,
                        help="One or more user-defined labels for this runner, comma-delimited (default: cml)")
    runner.add_argument("--idle-timeout", type=str,
                        help='Time to wait for jobs before shutting down, e.g. "5min". Use "never" to disable '
                             '(default: 5 minutes)')
    runner.add_argument("--name", type=str,
                        help="Name displayed in the repository once registered (default: cirunner-{ID})")
    runner.add_argument("--no-retry", action="store_true", default=None,
                        help="Do not restart workflows terminated by instance disposal or the GitHub job timeout")
    runner.add_argument("--single", action="store_true", default=None,
                        help="Exit after running a single job")
    runner.add_argument("--reuse", action="store_true", default=None,
                        help="Don't launch a new runner if one has the same name or overlapping labels")
    runner.add_argument("--reuse-idle", action="store_true", default=None,
                        help="Only launch a runner if no idle runner with matching labels exists")
    runner.add_argument("--workdir", "--path", dest="workdir", type=str,
                        help=argparse.SUPPRESS)
    runner.add_argument("--docker-volumes", nargs="*", default=None,
                        help="Docker volumes, only supported on GitLab")

    cloud = runner.add_argument_group("cloud")
    cloud.add_argument("--cloud", type=str, choices=["aws", "azure", "gcp", "kubernetes"],
                       help="Cloud to deploy the runner on")
    cloud.add_argument("--cloud-region", type=str,
                       help="Region: us-east, us-west, eu-west, eu-north or a native region (default: us-west)")
    cloud.add_argument("--cloud-type", type=str,
                       help="Instance type: m, l, xl or a native type such as t2.micro")
    cloud.add_argument("--cloud-permission-set", type=str,
                       help="Instance profile in AWS or service account in GCP")
    cloud.add_argument("--cloud-metadata", nargs="*", default=None,
                       help='Key=value pairs attached to the instance as tags/labels')
    cloud.add_argument("--cloud-gpu", type=str,
                       help="GPU type: k80, v100 or a native type such as nvidia-tesla-t4; nogpu for none")
    cloud.add_argument("--cloud-hdd-size", type=int, help="HDD size in GB")
    cloud.add_argument("--cloud-ssh-private", type=str,
                       help="Custom private RSA SSH key; a throwaway key is generated otherwise")
    cloud.add_argument("--cloud-spot", action="store_true", default=None,
                       help="Request a spot instance")
    cloud.add_argument("--cloud-spot-price", type=float,
                       help="Maximum spot bid in USD (default: current spot price)")
    cloud.add_argument("--cloud-startup-script", type=str,
                       help="Base64-encoded shell script run during instance initialization")
    cloud.add_argument("--cloud-aws-security-group", type=str,
                       help="Security group in AWS")
    cloud.add_argument("--cloud-aws-subnet", "--cloud-aws-subnet-id", dest="cloud_aws_subnet", type=str,
                       help="Subnet to use within AWS")

    runner.add_argument("--tpi-version", type=str, help=argparse.SUPPRESS)
    runner.add_argument("--cml-version", type=str, help=argparse.SUPPRESS)
    runner.add_argument("--runner-version", type=str, help=argparse.SUPPRESS)
    runner.add_argument("--tf-resource", "--tf_resource", dest="tf_resource", type=str,
                        help=argparse.SUPPRESS)
    runner.add_argument("--destroy-delay", type=float, help=argparse.SUPPRESS)
    runner.add_argument("--log-level", type=str,
                        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                        help="Logging level (default: INFO)")
    return parser


def options_from_args(args: argparse.Namespace) -> Dict[str, Any]:
    """Command-line options that were actually given."""
    options = vars(args).copy()
    options.pop("command", None)
    return {key: value for key, value in options.items() if value is not None}


async def run_runner(config: RunnerConfig) -> int:
    """Build the collaborators for ``config`` and supervise the runner."""
    platform = create_platform_client(config.driver, config.repo, config.token)
    terraform = TerraformProvisioner()
    strategy = select_strategy(config, platform, terraform)
    orchestrator = LifecycleOrchestrator(config, platform, strategy, terraform)
    return await orchestrator.run()


def main_cli(argv: Optional[List[str]] = None) -> None:
    """
    Main command-line interface for cirunner.

    Raises:
        SystemExit: Always; with code 1 on configuration errors or an
            error-triggered shutdown, 0 otherwise.
    """
    args = build_parser().parse_args(argv)

    try:
        config = load_runner_config(options_from_args(args))
    except (ValidationError, FileNotFoundError) as e:
        handle_cli_error(
            error=e,
            context="configuration",
            exit_code=1,
            logger=logger,
        )

    logging.getLogger().setLevel(config.log_level)
    logger.info(f"Starting runner {config.name} for {config.repo} ({config.driver})")

    try:
        exit_code = asyncio.run(run_runner(config))
    except ValueError as e:
        handle_cli_error(
            error=e,
            context="runner setup",
            exit_code=1,
            logger=logger,
        )

    sys.exit(exit_code)


if __name__ == "__main__":
    main_cli()
