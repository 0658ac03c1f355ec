"""CLI output formatting helpers."""

from typing import Any

import click
from rich.console import Console
from rich.table import Table

from .config import SETTABLE_KEYS, CLIConfig
from .registry import InstanceRegistry

console = Console()


def instances_table(registry: InstanceRegistry) -> Table:
    """Build the table of known instances, marking the current one."""
    table = Table(box=None, header_style="bold")
    table.add_column("CURRENT", justify="center")
    table.add_column("NAME")
    table.add_column("PROVIDER")
    table.add_column("API SERVER")
    for instance in registry.instances:
        marker = "*" if instance.name == registry.current_instance else ""
        table.add_row(marker, instance.name, instance.provider.value, instance.api_server)
    return table


def print_instances(registry: InstanceRegistry) -> None:
    """Print the known instances.

    Args:
        registry: Loaded instance registry
    """
    if not registry.instances:
        click.echo("No Threeport instances found.")
        return
    console.print(instances_table(registry))


def instance_dicts(registry: InstanceRegistry) -> list[dict[str, Any]]:
    """Instances as plain dicts, for JSON output."""
    return [
        {**i.to_dict(), "Current": i.name == registry.current_instance}
        for i in registry.instances
    ]


def print_config(config: CLIConfig) -> None:
    """Print effective settings with where each value came from."""
    click.echo(f"Config directory: {config.config_dir} ({config.get_source('config_dir')})")
    click.echo(f"Registry file: {config.registry_file} ({config.get_source('registry_file')})\n")
    data = config.as_dict()
    table = Table(box=None, header_style="bold")
    table.add_column("KEY")
    table.add_column("VALUE")
    table.add_column("SOURCE", style="dim")
    for key in SETTABLE_KEYS:
        table.add_row(key, str(data[key]), config.get_source(key))
    console.print(table)
