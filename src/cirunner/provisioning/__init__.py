"""
Runner provisioning.

This package decides whether and how a runner is brought up:
- preflight: checks against the runners already registered
- local: runner agent as a local subprocess
- cloud: runner on a cloud instance through terraform
"""

from .base import ProvisioningStrategy, Watcher
from .cloud import CloudStrategy, non_sensitive_attributes, resolve_gpu
from .factory import select_strategy
from .local import LocalStrategy, decode_tf_resource
from .preflight import prepare_workdir, run_preflight

__all__ = [
    "CloudStrategy",
    "LocalStrategy",
    "ProvisioningStrategy",
    "Watcher",
    "decode_tf_resource",
    "non_sensitive_attributes",
    "prepare_workdir",
    "resolve_gpu",
    "run_preflight",
    "select_strategy",
]
