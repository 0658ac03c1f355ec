"""CLI settings commands: tptctl config show|set|unset."""

from __future__ import annotations

import json
import sys

import click

from ..config import SETTABLE_KEYS, CLIConfig, save_config, unset_config
from ..formatters import print_config


@click.group("config")
def config_group() -> None:
    """Manage tptctl settings."""


@config_group.command("show")
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
@click.pass_context
def config_show(ctx: click.Context, json_output: bool) -> None:
    """Show effective settings and their sources."""
    config: CLIConfig = ctx.obj["config"]
    if json_output:
        data = config.as_dict()
        data["sources"] = {key: config.get_source(key) for key in data}
        click.echo(json.dumps(data, indent=2))
    else:
        print_config(config)


@config_group.command("set")
@click.argument("key", type=click.Choice(SETTABLE_KEYS))
@click.argument("value")
@click.pass_context
def config_set(ctx: click.Context, key: str, value: str) -> None:
    """Persist a setting to the settings file."""
    config: CLIConfig = ctx.obj["config"]
    try:
        save_config(key, value, base=config.config_dir)
    except ValueError as e:
        click.echo(f"✗ invalid value for {key}: {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ {key} = {value}")


@config_group.command("unset")
@click.argument("key", type=click.Choice(SETTABLE_KEYS))
@click.pass_context
def config_unset(ctx: click.Context, key: str) -> None:
    """Remove a setting from the settings file."""
    config: CLIConfig = ctx.obj["config"]
    if unset_config(key, base=config.config_dir):
        click.echo(f"✓ {key} unset")
    else:
        click.echo(f"{key} was not set")
