"""Workload commands."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from .. import output
from ..config import CLIConfig
from ..errors import TptctlError
from ..workload import (
    WorkloadDefinitionConfig,
    create_workload_definition_sync,
    current_api_endpoint,
)


@click.command("workload-definition")
@click.option(
    "--config",
    "-c",
    "config_path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to file with workload definition config",
)
@click.pass_context
def create_workload_definition(ctx: click.Context, config_path: Path) -> None:
    """Create a new workload definition.

    Example:

        tptctl create workload-definition -c /path/to/config.yaml
    """
    config: CLIConfig = ctx.obj["config"]
    try:
        definition = WorkloadDefinitionConfig.load(config_path)
        api_endpoint = current_api_endpoint(config.registry_file)
        created = create_workload_definition_sync(definition, api_endpoint)
    except TptctlError as e:
        output.error("failed to create workload definition", e)
        sys.exit(1)

    output.complete(f"workload definition {created.get('Name', definition.name)} created")
