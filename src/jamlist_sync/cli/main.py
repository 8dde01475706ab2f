"""Command-line interface for the playlist sync engine.

This is the main entry point that delegates to command modules.
"""

from pathlib import Path
from typing import Any, Optional

import click

from ..utils.logging_config import configure_third_party_loggers, setup_logging
from .commands import (
    delete_command,
    pull_command,
    push_command,
    status_command,
    verify_command,
)


@click.group()
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    help="Set logging level",
)
@click.option("--log-file", type=click.Path(), help="Log to file")
@click.pass_context
def cli(ctx: Any, log_level: str, log_file: Optional[str]) -> None:
    """Jamlist playlist sync.

    Reconciles locally edited playlists with their Spotify copies.
    """
    setup_logging(log_level=log_level, log_file=Path(log_file) if log_file else None)
    configure_third_party_loggers()
    ctx.ensure_object(dict)


# Register commands
cli.add_command(push_command)
cli.add_command(pull_command)
cli.add_command(status_command)
cli.add_command(delete_command)
cli.add_command(verify_command)


if __name__ == "__main__":
    cli()
