"""Value types for the playlist sync engine."""

from .models import (
    Credential,
    PlaylistLocal,
    RemoteSnapshot,
    RemoteTrack,
    SyncBaseline,
    TrackRef,
    as_utc,
)

__all__ = [
    "Credential",
    "PlaylistLocal",
    "RemoteSnapshot",
    "RemoteTrack",
    "SyncBaseline",
    "TrackRef",
    "as_utc",
]
