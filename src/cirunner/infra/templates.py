"""
Terraform configuration templates.

Two templates are rendered into ``<workdir>/main.tf``:
- the provider-only template, used locally so that ``terraform destroy`` can
  later tear down a resource injected into the state file;
- the cloud runner template, declaring one ``iterative_cml_runner`` resource
  that boots a runner with the same launch parameters on a cloud instance.
"""

import json
from typing import Any, Dict, List, Optional

from ..models.config import RunnerConfig

PROVIDER_TEMPLATE = """terraform {{
  required_providers {{
    iterative = {{
      source  = "iterative/iterative"
      version = {version}
    }}
  }}
}}

provider "iterative" {{}}
"""


def hcl_value(value: Any) -> str:
    """Render a Python value as an HCL literal."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return repr(value)
    if isinstance(value, dict):
        items = ", ".join(f"{json.dumps(str(key))} = {hcl_value(item)}"
                          for key, item in value.items())
        return "{" + items + "}"
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(hcl_value(item) for item in value) + "]"
    if value is None:
        return "null"
    return json.dumps(str(value))


def render_provider_template(tpi_version: str) -> str:
    return PROVIDER_TEMPLATE.format(version=hcl_value(tpi_version))


def cloud_runner_attributes(config: RunnerConfig, gpu: Optional[str] = None) -> Dict[str, Any]:
    """
    Attributes of the ``iterative_cml_runner`` resource.

    Unset optional values are omitted so the provider defaults apply.

    Args:
        config: Launch configuration with a cloud section
        gpu: GPU type after alias resolution, overriding ``config.cloud.gpu``
    """
    cloud = config.cloud
    if cloud is None:
        raise ValueError("A cloud runner template needs a cloud configuration")

    attributes: Dict[str, Any] = {
        "repo": config.repo,
        "token": config.token,
        "driver": config.driver,
        "labels": config.labels_csv,
        "idle_timeout": config.idle_timeout,
        "name": config.name,
        "single": config.single,
        "cml_version": config.cml_version,
        "cloud": cloud.cloud,
        "region": cloud.region,
        "instance_type": cloud.instance_type,
        "instance_permission_set": cloud.permission_set,
        "metadata": cloud.metadata,
        "instance_gpu": gpu if gpu is not None else cloud.gpu,
        "instance_hdd_size": cloud.hdd_size,
        "ssh_private": cloud.ssh_private,
        "spot": cloud.spot,
        "spot_price": cloud.spot_price,
        "startup_script": cloud.startup_script,
        "aws_security_group": cloud.aws_security_group,
        "aws_subnet_id": cloud.aws_subnet,
        "docker_volumes": list(config.docker_volumes),
    }
    return {key: value for key, value in attributes.items()
            if value is not None and value != "" and value != {} and value != []}


def render_cloud_runner_template(config: RunnerConfig, gpu: Optional[str] = None) -> str:
    lines: List[str] = [render_provider_template(config.tpi_version), 'resource "iterative_cml_runner" "runner" {']
    for key, value in cloud_runner_attributes(config, gpu).items():
        lines.append(f"  {key} = {hcl_value(value)}")
    lines.append("}")
    return "\n".join(lines) + "\n"
