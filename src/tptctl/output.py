"""User-facing progress output.

Lifecycle steps report progress through these helpers rather than the
logger; the cloud progress relay forwards provider messages here too.
"""

from __future__ import annotations

import click


def info(message: str) -> None:
    """Print an informational progress line."""
    click.echo(f"  {message}")


def warning(message: str) -> None:
    """Print a warning line."""
    click.echo(f"  ⚠ {message}")


def error(message: str, cause: BaseException | None = None) -> None:
    """Print an error line, with its cause when there is one."""
    if cause is not None:
        click.echo(f"✗ {message}: {cause}", err=True)
    else:
        click.echo(f"✗ {message}", err=True)


def complete(message: str) -> None:
    """Print the final success line of an operation."""
    click.echo(f"✓ {message}")
