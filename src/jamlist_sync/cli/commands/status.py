"""Status, delete and verify commands."""

import json
import logging

import click
from rich.console import Console
from rich.table import Table

from ...core.spotify import SpotifyApiError
from ...core.sync import NeedsReconnectError, PlaylistNotFoundError
from .init import init_services

console = Console()
logger = logging.getLogger(__name__)


def _flags(changes: dict) -> str:
    names = [name for name, changed in changes.items() if changed]
    return ", ".join(names) if names else "-"


@click.command("status")
@click.argument("playlist_id", type=int)
@click.option("--json", "as_json", is_flag=True, help="Print the diff as JSON")
def status_command(playlist_id: int, as_json: bool) -> None:
    """Show how a playlist differs from its Spotify copy."""
    _, _, orchestrator = init_services()

    try:
        diff = orchestrator.diff_status(playlist_id)
    except PlaylistNotFoundError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise click.Abort()
    except NeedsReconnectError as e:
        console.print(f"[red]✗ Spotify connection lost, please reconnect: {e}[/red]")
        raise click.Abort()
    except SpotifyApiError as e:
        console.print(f"[red]✗ Could not fetch Spotify playlist: {e}[/red]")
        raise click.Abort()

    data = diff.to_dict()
    if as_json:
        click.echo(json.dumps(data, indent=2))
        return

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Remote State", data["remote_state"])
    table.add_row("In Sync", "yes" if data["in_sync"] else "no")
    table.add_row("Local Tracks", str(data["local_track_count"]))
    table.add_row("Remote Tracks", str(data["remote_track_count"]))
    table.add_row("Only Local", str(len(data["only_local"])))
    table.add_row("Only Remote", str(len(data["only_remote"])))
    table.add_row("Local Changes", _flags(data["local_has_changes"]))
    table.add_row("Remote Changes", _flags(data["remote_has_changes"]))
    table.add_row("Last Synced", data["last_synced_at"] or "never")
    console.print(table)


@click.command("delete")
@click.argument("playlist_id", type=int)
@click.option(
    "--keep-remote",
    is_flag=True,
    help="Delete only the local playlist and leave Spotify untouched",
)
@click.confirmation_option(prompt="Delete this playlist?")
def delete_command(playlist_id: int, keep_remote: bool) -> None:
    """Delete a playlist and clean up its Spotify copy."""
    _, _, orchestrator = init_services()
    result = orchestrator.delete_playlist(playlist_id, delete_remote=not keep_remote)

    if not result.local_deleted:
        for error in result.errors:
            console.print(f"[red]✗ {error}[/red]")
        raise click.Abort()

    console.print(f"[green]✓ Deleted playlist {playlist_id}[/green]")
    if result.remote_id and not keep_remote:
        console.print(
            f"  Removed {result.tracks_removed} tracks from Spotify, "
            f"unfollowed: {'yes' if result.unfollowed else 'no'}"
        )
    for error in result.errors:
        console.print(f"  [yellow]• {error}[/yellow]")


@click.command("verify")
@click.argument("account_id", type=int)
def verify_command(account_id: int) -> None:
    """Check that an account's Spotify connection still works."""
    _, token_manager, _ = init_services()
    status = token_manager.verify_connection(account_id)

    if status.verified:
        name = status.display_name or status.remote_account_id
        console.print(f"[green]✓ Connected to Spotify as {name}[/green]")
        if status.product:
            console.print(f"  Plan: {status.product}")
        if status.token_refreshed:
            console.print("  [dim]Access token was refreshed[/dim]")
        return

    reason = status.reason.value if status.reason else "unknown"
    color = "yellow" if status.connected else "red"
    console.print(f"[{color}]✗ {status.message} ({reason})[/{color}]")
    raise click.Abort()
