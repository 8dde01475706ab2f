"""Three-way diff between the sync baseline, the local and the remote playlist.

The diff answers three questions:

1. Does the remote playlist still exist and is it in the owner's library?
2. Which tracks and fields differ between local and remote right now?
3. With a baseline available, which side changed each differing aspect?

Attribution gives the remote side precedence: a field counts as a local
change only when the remote still matches the baseline.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from ...models import PlaylistLocal, RemoteSnapshot, RemoteTrack, SyncBaseline, TrackRef


class RemoteState(str, Enum):
    """Existence state of the remote playlist."""

    MISSING = "missing"
    ORPHANED = "orphaned"
    ACTIVE = "active"


@dataclass
class ChangeFlags:
    """Which aspects of a playlist changed on one side."""

    name: bool = False
    description: bool = False
    tracks: bool = False

    @property
    def any(self) -> bool:
        """Whether anything changed."""
        return self.name or self.description or self.tracks


@dataclass
class MetadataChanges:
    """Current metadata mismatches between local and remote."""

    name: bool = False
    description: bool = False

    @property
    def any(self) -> bool:
        """Whether any metadata field differs."""
        return self.name or self.description


@dataclass
class PlaylistDiff:
    """Result of comparing baseline, local and remote state."""

    remote_state: RemoteState
    only_local: List[TrackRef] = field(default_factory=list)
    only_remote: List[RemoteTrack] = field(default_factory=list)
    metadata_changes: MetadataChanges = field(default_factory=MetadataChanges)
    local_has_changes: ChangeFlags = field(default_factory=ChangeFlags)
    remote_has_changes: ChangeFlags = field(default_factory=ChangeFlags)
    has_baseline: bool = False
    in_sync: bool = False
    local_track_count: int = 0
    remote_track_count: int = 0
    remote_name: Optional[str] = None
    remote_description: Optional[str] = None
    last_synced_at: Optional[datetime] = None

    @property
    def requires_create(self) -> bool:
        """Whether a push would have to create a new remote playlist."""
        return self.remote_state != RemoteState.ACTIVE

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the diff for display or JSON output."""
        return {
            "remote_state": self.remote_state.value,
            "in_sync": self.in_sync,
            "has_baseline": self.has_baseline,
            "only_local": [t.external_id for t in self.only_local],
            "only_remote": [t.external_id for t in self.only_remote],
            "metadata_changes": asdict(self.metadata_changes),
            "local_has_changes": asdict(self.local_has_changes),
            "remote_has_changes": asdict(self.remote_has_changes),
            "local_track_count": self.local_track_count,
            "remote_track_count": self.remote_track_count,
            "remote_name": self.remote_name,
            "remote_description": self.remote_description,
            "last_synced_at": (
                self.last_synced_at.isoformat() if self.last_synced_at else None
            ),
        }


def normalize_description(description: Optional[str]) -> str:
    """Normalize a description so that whitespace-only differences vanish."""
    if not description:
        return ""
    return description.replace("\r\n", "\n").strip()


def remote_state_of(remote: Optional[RemoteSnapshot]) -> RemoteState:
    """Determine the existence state of a remote snapshot."""
    if remote is None or not remote.exists:
        return RemoteState.MISSING
    if not remote.in_library:
        return RemoteState.ORPHANED
    return RemoteState.ACTIVE


def compute_diff(
    baseline: Optional[SyncBaseline],
    local: PlaylistLocal,
    remote: Optional[RemoteSnapshot],
    default_description: str = "",
) -> PlaylistDiff:
    """Compare a local playlist with its remote copy and the last baseline.

    Args:
        baseline: Last successful sync, or None before the first sync
        local: Local playlist state
        remote: Remote snapshot, or None if there is no remote playlist
        default_description: Description a push sends when the local
            playlist has none

    Returns:
        PlaylistDiff describing divergence and attribution
    """
    state = remote_state_of(remote)
    syncable_local = [t for t in local.tracks if t.external_id]

    if remote is None or state == RemoteState.MISSING:
        # Everything has to be (re)created from the local copy
        local_description = normalize_description(local.description)
        return PlaylistDiff(
            remote_state=state,
            only_local=list(syncable_local),
            metadata_changes=MetadataChanges(
                name=True, description=bool(local_description)
            ),
            local_has_changes=ChangeFlags(
                name=True,
                description=bool(local_description),
                tracks=bool(syncable_local),
            ),
            has_baseline=baseline is not None,
            in_sync=False,
            local_track_count=len(local.tracks),
            last_synced_at=baseline.synced_at if baseline else None,
        )

    remote_ids = set(remote.track_external_ids)
    local_ids = {t.external_id for t in syncable_local}

    only_local = [t for t in syncable_local if t.external_id not in remote_ids]
    only_remote = [t for t in remote.tracks if t.external_id not in local_ids]

    # A push sends the default description for playlists without one
    local_description = normalize_description(local.description)
    local_description = local_description or normalize_description(default_description)
    remote_description = normalize_description(remote.description)
    metadata = MetadataChanges(
        name=local.name != remote.name,
        description=local_description != remote_description,
    )

    if baseline is None:
        # Nothing to attribute against; report divergence as local
        local_changes = ChangeFlags(
            name=metadata.name,
            description=metadata.description,
            tracks=bool(only_local),
        )
        remote_changes = ChangeFlags()
    else:
        baseline_ids = set(baseline.synced_track_external_ids)
        baseline_description = normalize_description(baseline.synced_description)

        remote_name_changed = remote.name != baseline.synced_name
        remote_description_changed = remote_description != baseline_description
        remote_changes = ChangeFlags(
            name=remote_name_changed,
            description=remote_description_changed,
            tracks=any(t.external_id not in baseline_ids for t in only_remote),
        )
        local_changes = ChangeFlags(
            name=local.name != baseline.synced_name and not remote_name_changed,
            description=(
                local_description != baseline_description
                and not remote_description_changed
            ),
            tracks=any(t.external_id not in baseline_ids for t in only_local),
        )

    in_sync = (
        not only_local
        and not only_remote
        and not metadata.any
        and state == RemoteState.ACTIVE
    )

    return PlaylistDiff(
        remote_state=state,
        only_local=only_local,
        only_remote=only_remote,
        metadata_changes=metadata,
        local_has_changes=local_changes,
        remote_has_changes=remote_changes,
        has_baseline=baseline is not None,
        in_sync=in_sync,
        local_track_count=len(local.tracks),
        remote_track_count=len(remote.tracks),
        remote_name=remote.name,
        remote_description=remote.description,
        last_synced_at=baseline.synced_at if baseline else None,
    )
