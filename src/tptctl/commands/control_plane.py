"""Control plane commands.

    tptctl create control-plane --name dev
    tptctl delete control-plane --name dev
    tptctl get control-planes
"""

from __future__ import annotations

import json
import sys

import click

from .. import output
from ..config import CLIConfig
from ..controlplane.orchestrator import LifecycleOrchestrator
from ..errors import TptctlError
from ..formatters import instance_dicts, print_instances
from ..registry import PROVIDER_ALIASES, InstanceRegistry, Provider

PROVIDER_CHOICES = [p.value for p in Provider] + list(PROVIDER_ALIASES)


@click.command("control-plane")
@click.option("--name", "-n", required=True, help="Name of the control plane instance")
@click.option(
    "--provider",
    "-p",
    type=click.Choice(PROVIDER_CHOICES, case_sensitive=False),
    default=Provider.LOCAL.value,
    show_default=True,
    help="Infrastructure provider for the control plane cluster",
)
@click.option(
    "--force-overwrite-config",
    is_flag=True,
    help="Overwrite the config entry for an instance of the same name",
)
@click.pass_context
def create_control_plane(
    ctx: click.Context, name: str, provider: str, force_overwrite_config: bool
) -> None:
    """Create a new instance of the Threeport control plane.

    Examples:

        # Local kind cluster
        tptctl create control-plane --name dev

        # EKS cluster in AWS
        tptctl create control-plane --name prod --provider cloud
    """
    config: CLIConfig = ctx.obj["config"]
    orchestrator = LifecycleOrchestrator(config)
    try:
        instance = orchestrator.create(name, provider, force_overwrite=force_overwrite_config)
    except TptctlError as e:
        output.error("failed to create threeport control plane", e)
        sys.exit(1)

    output.complete(f"threeport instance {instance.name} created")


@click.command("control-plane")
@click.option("--name", "-n", required=True, help="Name of the control plane instance")
@click.option(
    "--cleanup-inventory",
    is_flag=True,
    help="Delete cloud resources listed in an inventory left by a failed create",
)
@click.pass_context
def delete_control_plane(ctx: click.Context, name: str, cleanup_inventory: bool) -> None:
    """Delete an instance of the Threeport control plane."""
    config: CLIConfig = ctx.obj["config"]
    orchestrator = LifecycleOrchestrator(config)
    try:
        instance = orchestrator.delete(name, cleanup_inventory=cleanup_inventory)
    except TptctlError as e:
        output.error("failed to delete threeport control plane", e)
        sys.exit(1)

    if instance is None:
        output.complete(f"leftover resources for threeport instance {name} deleted")
    else:
        output.complete(f"threeport instance {name} deleted")


@click.command("control-planes")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def get_control_planes(ctx: click.Context, json_output: bool) -> None:
    """List known Threeport control plane instances."""
    config: CLIConfig = ctx.obj["config"]
    try:
        registry = InstanceRegistry.load(config.registry_file)
    except TptctlError as e:
        output.error("failed to read threeport config", e)
        sys.exit(1)

    if json_output:
        click.echo(json.dumps(instance_dicts(registry), indent=2))
    else:
        print_instances(registry)
