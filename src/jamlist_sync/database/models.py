"""SQLAlchemy database models for playlists, tracks and sync baselines."""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base class for all database models."""

    pass


class Account(Base):
    """A local user account and its Spotify connection."""

    __tablename__ = "accounts"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    display_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    # Spotify connection. The Spotify user ID survives token loss so a
    # reconnect of the same Spotify account can be recognized.
    spotify_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )
    access_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    token_expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime, nullable=True
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    playlists: Mapped[List["Playlist"]] = relationship(
        "Playlist", back_populates="owner", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        """String representation of Account."""
        return f"<Account(id={self.id}, spotify_id='{self.spotify_id}')>"


class Track(Base):
    """A track in the local library."""

    __tablename__ = "tracks"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Spotify identifier; tracks without one never reach the remote
    spotify_id: Mapped[Optional[str]] = mapped_column(
        String(255), unique=True, nullable=True, index=True
    )

    # Track metadata
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    artist: Mapped[str] = mapped_column(String(500), nullable=False)
    album: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    duration: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)  # seconds
    image_url: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    # Relationships
    playlist_tracks: Mapped[List["PlaylistTrack"]] = relationship(
        "PlaylistTrack", back_populates="track", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_artist_title", "artist", "title"),)

    def __repr__(self) -> str:
        """String representation of Track."""
        return f"<Track(id={self.id}, title='{self.title}', artist='{self.artist}')>"


class Playlist(Base):
    """The locally editable copy of a playlist."""

    __tablename__ = "playlists"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    owner_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False
    )

    # Playlist metadata
    name: Mapped[str] = mapped_column(String(500), nullable=False, index=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    image_url: Mapped[Optional[str]] = mapped_column(
        Text, nullable=True
    )  # http(s) URL or data: URI
    is_public: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_collaborative: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    # Remote binding (at most one active Spotify playlist)
    spotify_id: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True, index=True
    )

    # Bumped on every local content change
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    owner: Mapped["Account"] = relationship("Account", back_populates="playlists")
    playlist_tracks: Mapped[List["PlaylistTrack"]] = relationship(
        "PlaylistTrack",
        back_populates="playlist",
        cascade="all, delete-orphan",
        order_by="PlaylistTrack.position",
    )
    baseline: Mapped[Optional["SyncBaselineRecord"]] = relationship(
        "SyncBaselineRecord",
        back_populates="playlist",
        cascade="all, delete-orphan",
        uselist=False,
    )

    def __repr__(self) -> str:
        """String representation of Playlist."""
        return (
            f"<Playlist(id={self.id}, name='{self.name}', "
            f"spotify_id='{self.spotify_id}')>"
        )


class PlaylistTrack(Base):
    """Ordered membership of a track in a playlist."""

    __tablename__ = "playlist_tracks"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Foreign keys
    playlist_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("playlists.id", ondelete="CASCADE"), nullable=False
    )
    track_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tracks.id", ondelete="CASCADE"), nullable=False
    )

    # Ordering
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    added_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )

    # Relationships
    playlist: Mapped["Playlist"] = relationship(
        "Playlist", back_populates="playlist_tracks"
    )
    track: Mapped["Track"] = relationship("Track", back_populates="playlist_tracks")

    __table_args__ = (
        Index("idx_playlist_position", "playlist_id", "position"),
        Index("idx_track", "track_id"),
    )

    def __repr__(self) -> str:
        """String representation of PlaylistTrack."""
        return (
            f"<PlaylistTrack(id={self.id}, playlist_id={self.playlist_id}, "
            f"track_id={self.track_id}, position={self.position})>"
        )


class SyncBaselineRecord(Base):
    """Last fully successful reconciliation of a playlist."""

    __tablename__ = "sync_baselines"

    # Primary key
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    playlist_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("playlists.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )

    remote_id: Mapped[str] = mapped_column(String(255), nullable=False)
    synced_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    synced_name: Mapped[str] = mapped_column(String(500), nullable=False)
    synced_description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    synced_track_ids: Mapped[List[str]] = mapped_column(
        JSON, nullable=False, default=list
    )  # Ordered Spotify track IDs
    synced_image_ref: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Relationships
    playlist: Mapped["Playlist"] = relationship("Playlist", back_populates="baseline")

    def __repr__(self) -> str:
        """String representation of SyncBaselineRecord."""
        return (
            f"<SyncBaselineRecord(playlist_id={self.playlist_id}, "
            f"remote_id='{self.remote_id}', synced_at='{self.synced_at}')>"
        )
