"""
Infrastructure provisioning through terraform.
"""

from .templates import cloud_runner_attributes, render_cloud_runner_template, render_provider_template
from .terraform import MAIN_FILE_NAME, STATE_FILE_NAME, TerraformProvisioner, parse_version

__all__ = [
    "MAIN_FILE_NAME",
    "STATE_FILE_NAME",
    "TerraformProvisioner",
    "cloud_runner_attributes",
    "parse_version",
    "render_cloud_runner_template",
    "render_provider_template",
]
