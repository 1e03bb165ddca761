"""
cirunner: lifecycle manager for self-hosted CI runners.

This package launches a self-hosted runner for GitHub, GitLab or Bitbucket,
either as a local subprocess or on a cloud instance provisioned through
terraform, watches it for inactivity and overlong jobs, and tears it down
exactly once when any termination trigger fires.

The package is organized into specialized modules:
- config: Configuration resolution and validation
- models: Data structures and type definitions
- validation: Input validation and error handling
- system: External commands and the runner subprocess
- platforms: CI platform clients
- infra: Terraform provisioning
- provisioning: Pre-flight checks and local/cloud strategies
- lifecycle: Job tracking, watchers and the orchestrator
- cli: Command-line interface

Usage:
    From command line:
        cirunner runner --driver github --repo https://github.com/org/repo --token ...

    Programmatically:
        from cirunner import load_runner_config, run_runner
        config = load_runner_config({"repo": ..., "token": ...})
        exit_code = asyncio.run(run_runner(config))
"""

__version__ = "0.1.0"

from .cli.main import run_runner
from .config import load_runner_config
from .lifecycle.orchestrator import LifecycleOrchestrator
from .models import CloudConfig, OrchestratorState, RunnerConfig, ShutdownRequest

__all__ = [
    "CloudConfig",
    "LifecycleOrchestrator",
    "OrchestratorState",
    "RunnerConfig",
    "ShutdownRequest",
    "load_runner_config",
    "run_runner",
    "__version__",
]
