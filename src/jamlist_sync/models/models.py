"""Value types exchanged between the sync engine components."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from pydantic import BaseModel, field_validator


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Interpret naive datetimes (as read back from SQLite) as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class TrackRef(BaseModel):
    """A track as stored in the local library."""

    id: Optional[int] = None
    external_id: Optional[str] = None  # Spotify track ID
    title: str
    artist: str
    album: Optional[str] = None
    duration_seconds: Optional[int] = None
    image_ref: Optional[str] = None


class PlaylistLocal(BaseModel):
    """The locally editable copy of a playlist."""

    id: int
    owner_id: int
    name: str
    description: Optional[str] = None
    image_ref: Optional[str] = None
    tracks: List[TrackRef] = []
    is_public: bool = True
    is_collaborative: bool = False
    remote_id: Optional[str] = None
    version: int = 0

    @property
    def external_ids(self) -> List[str]:
        """Ordered external IDs of the tracks that can be synced."""
        return [t.external_id for t in self.tracks if t.external_id]

    @property
    def track_count(self) -> int:
        """Get number of tracks in playlist."""
        return len(self.tracks)


class SyncBaseline(BaseModel):
    """Snapshot of the last fully successful reconciliation."""

    remote_id: str
    synced_at: datetime
    synced_name: str
    synced_description: str = ""
    synced_track_external_ids: List[str] = []
    synced_image_ref: Optional[str] = None

    @field_validator("synced_at", mode="after")
    @classmethod
    def validate_synced_at(cls, v: datetime) -> datetime:
        """Normalize sync timestamp to UTC."""
        return as_utc(v)  # type: ignore[return-value]


class RemoteTrack(BaseModel):
    """A track as listed in a remote playlist."""

    external_id: str
    title: str
    artist: str = "Unknown"
    album: Optional[str] = None
    duration_seconds: Optional[int] = None
    image_ref: Optional[str] = None


class RemoteSnapshot(BaseModel):
    """Remote playlist state fetched once per reconciliation."""

    remote_id: str
    name: str
    description: Optional[str] = None
    tracks: List[RemoteTrack] = []
    exists: bool = True
    in_library: bool = True
    is_public: Optional[bool] = None
    is_collaborative: Optional[bool] = None
    owner_id: Optional[str] = None

    @property
    def track_external_ids(self) -> List[str]:
        """Ordered external IDs of the remote tracks."""
        return [t.external_id for t in self.tracks]


class Credential(BaseModel):
    """Remote access credentials for one local account."""

    account_id: int
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    remote_account_id: Optional[str] = None

    @field_validator("expires_at", mode="after")
    @classmethod
    def validate_expires_at(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Normalize expiry to UTC."""
        return as_utc(v)

    @property
    def is_connected(self) -> bool:
        """Whether an access token is stored at all."""
        return bool(self.access_token)

    def is_expired(self, now: datetime, buffer_seconds: int = 0) -> bool:
        """Check whether the access token must be refreshed before use.

        A credential without a recorded expiry is trusted until the remote
        rejects it.
        """
        if self.expires_at is None:
            return False
        return as_utc(now) >= self.expires_at - timedelta(  # type: ignore[operator]
            seconds=buffer_seconds
        )
