"""Database package for playlists, credentials and sync baselines."""

from .models import Account, Base, Playlist, PlaylistTrack, SyncBaselineRecord, Track
from .service import DatabaseService

__all__ = [
    # Models
    "Account",
    "Base",
    "Playlist",
    "PlaylistTrack",
    "SyncBaselineRecord",
    "Track",
    # Database service
    "DatabaseService",
]
