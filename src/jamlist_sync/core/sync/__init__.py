"""Synchronization module.

Handles the three-way diff and the push/pull/delete reconciliation runs.
"""

from .diff_engine import (
    ChangeFlags,
    MetadataChanges,
    PlaylistDiff,
    RemoteState,
    compute_diff,
    normalize_description,
)
from .errors import NeedsReconnectError, PlaylistNotFoundError, SyncError, SyncErrorKind
from .orchestrator import (
    DeleteResult,
    SyncDirection,
    SyncOrchestrator,
    SyncResult,
    SyncStage,
)

__all__ = [
    # Diff engine
    "ChangeFlags",
    "MetadataChanges",
    "PlaylistDiff",
    "RemoteState",
    "compute_diff",
    "normalize_description",
    # Errors
    "NeedsReconnectError",
    "PlaylistNotFoundError",
    "SyncError",
    "SyncErrorKind",
    # Orchestration
    "DeleteResult",
    "SyncDirection",
    "SyncOrchestrator",
    "SyncResult",
    "SyncStage",
]
