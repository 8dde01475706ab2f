"""Push and pull commands."""

import logging

import click
from rich.console import Console
from rich.table import Table

from ...core.sync import SyncDirection, SyncResult
from .init import init_services

console = Console()
logger = logging.getLogger(__name__)


def _print_result(result: SyncResult) -> None:
    """Render a reconciliation result as a table."""
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green", justify="right")

    table.add_row("Spotify Playlist", result.remote_id or "-")
    table.add_row("Stage", result.stage.value)
    table.add_row("Created", "yes" if result.created else "no")
    if result.recreated and result.recreate_reason:
        table.add_row("Recreated", result.recreate_reason.value)
    table.add_row("Tracks Added", str(result.tracks_added))
    table.add_row("Tracks Removed", str(result.tracks_removed))
    table.add_row("Metadata Updated", "yes" if result.metadata_updated else "no")
    if result.direction == SyncDirection.PUSH:
        table.add_row("Image Uploaded", "yes" if result.image_uploaded else "no")
    table.add_row("Baseline Committed", "yes" if result.baseline_committed else "no")
    console.print(table)

    if result.errors:
        console.print(f"\n[yellow]Errors: {len(result.errors)}[/yellow]")
        for error in result.errors:
            console.print(f"  • {error}")


def _reconcile(playlist_id: int, direction: SyncDirection) -> None:
    try:
        _, _, orchestrator = init_services()
    except Exception as e:
        logger.exception("Initialization failed")
        console.print(f"[bold red]❌ {e}[/bold red]")
        raise click.Abort()

    result = orchestrator.reconcile(playlist_id, direction)
    _print_result(result)

    if result.success:
        console.print(f"\n[bold green]✅ {direction.value.capitalize()} complete![/bold green]")
    elif result.completed:
        console.print(
            f"\n[yellow]⚠️  {direction.value.capitalize()} completed with warnings[/yellow]"
        )
    else:
        console.print(
            f"\n[bold red]❌ {direction.value.capitalize()} failed[/bold red]"
        )
        raise click.Abort()


@click.command("push")
@click.argument("playlist_id", type=int)
def push_command(playlist_id: int) -> None:
    """Push a local playlist to Spotify, recreating it if needed."""
    console.print(f"[bold blue]📤 Pushing playlist {playlist_id} to Spotify...[/bold blue]")
    _reconcile(playlist_id, SyncDirection.PUSH)


@click.command("pull")
@click.argument("playlist_id", type=int)
def pull_command(playlist_id: int) -> None:
    """Pull the linked Spotify playlist into the local copy."""
    console.print(f"[bold blue]📥 Pulling playlist {playlist_id} from Spotify...[/bold blue]")
    _reconcile(playlist_id, SyncDirection.PULL)
