"""CLI main entry point."""

import click

from . import __version__
from .commands.control_plane import (
    create_control_plane,
    delete_control_plane,
    get_control_planes,
)
from .commands.settings import config_group
from .commands.workload import create_workload_definition
from .config import load_config
from .shared.logging import configure_logging, level_for_verbosity


@click.group()
@click.option(
    "--threeport-config",
    type=click.Path(dir_okay=False),
    help="Path to config file (default: $HOME/.config/threeport/config.yaml)",
)
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (-v info, -vv debug)")
@click.option("--log-json", is_flag=True, help="Emit logs as JSON")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False),
    help="Write logs to this file instead of stderr",
)
@click.pass_context
def cli(
    ctx: click.Context,
    threeport_config: str | None,
    verbose: int,
    log_json: bool,
    log_file: str | None,
) -> None:
    """Manage Threeport.

    Threeport is a global control plane for your software. tptctl installs
    and manages instances of the Threeport control plane as well as
    applications deployed into the Threeport compute space.
    """
    ctx.ensure_object(dict)
    configure_logging(
        level=level_for_verbosity(verbose), log_file=log_file, json_output=log_json
    )
    ctx.obj["config"] = load_config(threeport_config)


@cli.group()
def create() -> None:
    """Create Threeport objects."""


@cli.group()
def delete() -> None:
    """Delete Threeport objects."""


@cli.group()
def get() -> None:
    """List Threeport objects."""


create.add_command(create_control_plane)
create.add_command(create_workload_definition)
delete.add_command(delete_control_plane)
get.add_command(get_control_planes)
cli.add_command(config_group)


@cli.command()
def version() -> None:
    """Show version information."""
    click.echo(f"tptctl version {__version__}")


def main() -> None:
    """Main entry point."""
    cli(obj={})


if __name__ == "__main__":
    main()
