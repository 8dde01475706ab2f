"""Jamlist playlist sync.

Keeps locally edited playlists reconciled with their Spotify copies:
token lifecycle, three-way diff, push/pull/recreate orchestration and
cover image normalization.
"""

__version__ = "1.0.0"
__author__ = "Anton"
__email__ = ""

from .config import Config
from .core.sync import SyncDirection, SyncOrchestrator, SyncResult
from .models import PlaylistLocal, SyncBaseline, TrackRef

__all__ = [
    "Config",
    "PlaylistLocal",
    "SyncBaseline",
    "SyncDirection",
    "SyncOrchestrator",
    "SyncResult",
    "TrackRef",
]
