"""Database service for playlists, credentials and sync baselines."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from sqlalchemy import create_engine, delete, inspect, select
from sqlalchemy.orm import Session, joinedload, selectinload, sessionmaker

from ..models import Credential, PlaylistLocal, SyncBaseline, TrackRef
from .models import Account, Base, Playlist, PlaylistTrack, SyncBaselineRecord, Track

logger = logging.getLogger(__name__)

# Playlist fields whose change counts as a local content edit
_CONTENT_FIELDS = {"name", "description", "image_url", "is_public", "is_collaborative"}


def _to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite stores datetimes without zone information."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def _to_credential(account: Account) -> Credential:
    return Credential(
        account_id=account.id,
        access_token=account.access_token,
        refresh_token=account.refresh_token,
        expires_at=account.token_expires_at,
        remote_account_id=account.spotify_id,
    )


class DatabaseService:
    """Service for database operations and transaction management."""

    def __init__(self, db_path: Optional[Path] = None) -> None:
        """Initialize database service.

        Args:
            db_path: Path to SQLite database file.
                    If None, uses default ~/.jamlist-sync/sync.db
        """
        if db_path is None:
            db_path = Path.home() / ".jamlist-sync" / "sync.db"

        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        db_exists = self.db_path.exists()

        # Reconciliations of different playlists may run on worker threads
        db_url = f"sqlite:///{self.db_path}"
        self.engine = create_engine(
            db_url, echo=False, connect_args={"check_same_thread": False}
        )

        self.SessionLocal = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self.engine,
        )

        logger.info("Database initialized at: %s", self.db_path)

        if not db_exists:
            logger.info("New database detected, initializing schema...")
            self.init_db()

    def init_db(self) -> None:
        """Create all tables that do not exist yet."""
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database schema created successfully")

    def get_session(self) -> Session:
        """Get a new database session.

        Returns:
            SQLAlchemy Session object

        Note:
            Caller is responsible for closing the session
        """
        return self.SessionLocal()

    def is_initialized(self) -> bool:
        """Check if the required tables exist and a session can be opened."""
        try:
            inspector = inspect(self.engine)
            required = ("accounts", "playlists", "tracks", "sync_baselines")
            missing = [name for name in required if not inspector.has_table(name)]
            if missing:
                logger.debug("Required tables missing: %s", ", ".join(missing))
                return False

            with self.SessionLocal() as session:
                session.execute(select(1))

            return True
        except Exception as e:
            logger.debug("Database initialization check failed: %s", e)
            return False

    # =========================================================================
    # Account / Credential Operations
    # =========================================================================

    def create_account(self, account_data: Dict[str, Any]) -> Account:
        """Create a new account.

        Args:
            account_data: Account column values

        Returns:
            Created Account object
        """
        data = dict(account_data)
        data["token_expires_at"] = _to_naive_utc(data.get("token_expires_at"))
        with self.get_session() as session:
            account = Account(**data)
            session.add(account)
            session.commit()
            logger.info("Created account %s", account.id)
            return account

    def get_account(self, account_id: int) -> Optional[Account]:
        """Get account by database ID."""
        with self.get_session() as session:
            return session.get(Account, account_id)

    def get_credential(self, account_id: int) -> Optional[Credential]:
        """Get the stored Spotify credential of an account.

        Returns:
            Credential value or None if the account does not exist
        """
        account = self.get_account(account_id)
        if account is None:
            return None
        return _to_credential(account)

    def save_credential_tokens(
        self,
        account_id: int,
        access_token: str,
        expires_at: datetime,
        refresh_token: Optional[str] = None,
    ) -> Credential:
        """Persist a refreshed access token.

        Args:
            account_id: Account database ID
            access_token: New access token
            expires_at: Expiry of the new access token
            refresh_token: Rotated refresh token, if the server issued one

        Returns:
            Updated Credential
        """
        with self.get_session() as session:
            account = session.get(Account, account_id)
            if not account:
                raise ValueError(f"Account not found: {account_id}")

            account.access_token = access_token
            account.token_expires_at = _to_naive_utc(expires_at)
            if refresh_token:
                account.refresh_token = refresh_token
            session.commit()
            logger.debug("Stored refreshed token for account %s", account_id)
            return _to_credential(account)

    def clear_credential_tokens(self, account_id: int) -> None:
        """Drop stored tokens but keep the Spotify user ID."""
        with self.get_session() as session:
            account = session.get(Account, account_id)
            if not account:
                return
            account.access_token = None
            account.refresh_token = None
            account.token_expires_at = None
            session.commit()
            logger.info("Cleared Spotify tokens for account %s", account_id)

    def disconnect_account(self, account_id: int) -> None:
        """Remove the Spotify connection entirely, including the Spotify user ID."""
        with self.get_session() as session:
            account = session.get(Account, account_id)
            if not account:
                return
            account.spotify_id = None
            account.access_token = None
            account.refresh_token = None
            account.token_expires_at = None
            session.commit()
            logger.info("Disconnected Spotify from account %s", account_id)

    # =========================================================================
    # Track Operations
    # =========================================================================

    def get_track_by_spotify_id(self, spotify_id: str) -> Optional[Track]:
        """Get track by Spotify ID.

        Args:
            spotify_id: Spotify track ID

        Returns:
            Track object or None if not found
        """
        with self.get_session() as session:
            stmt = select(Track).where(Track.spotify_id == spotify_id)
            return session.scalar(stmt)

    def create_track(self, track_data: Dict[str, Any]) -> Track:
        """Create a new track.

        Args:
            track_data: Track data dictionary

        Returns:
            Created Track object
        """
        with self.get_session() as session:
            track = Track(**track_data)
            session.add(track)
            session.commit()
            logger.debug(
                "Created track: %s - %s (ID: %s)", track.artist, track.title, track.id
            )
            return track

    def get_or_create_track(self, track_data: Dict[str, Any]) -> Track:
        """Look up a track by Spotify ID, creating it when unknown.

        Existing tracks are returned unchanged.
        """
        spotify_id = track_data.get("spotify_id")
        if spotify_id:
            existing = self.get_track_by_spotify_id(spotify_id)
            if existing:
                return existing
        return self.create_track(track_data)

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    def create_playlist(self, playlist_data: Dict[str, Any]) -> Playlist:
        """Create a new playlist.

        Args:
            playlist_data: Playlist data dictionary (owner_id and name required)

        Returns:
            Created Playlist object
        """
        with self.get_session() as session:
            playlist = Playlist(**playlist_data)
            session.add(playlist)
            session.commit()
            logger.info("Created playlist: %s (ID: %s)", playlist.name, playlist.id)
            return playlist

    def update_playlist(self, playlist_id: int, playlist_data: Dict[str, Any]) -> Playlist:
        """Update an existing playlist.

        Changing a content field bumps the playlist version.

        Args:
            playlist_id: Playlist database ID
            playlist_data: Playlist data dictionary with fields to update

        Returns:
            Updated Playlist object
        """
        with self.get_session() as session:
            playlist = session.get(Playlist, playlist_id)
            if not playlist:
                raise ValueError(f"Playlist not found: {playlist_id}")

            content_changed = False
            for key, value in playlist_data.items():
                if not hasattr(playlist, key):
                    continue
                if key in _CONTENT_FIELDS and getattr(playlist, key) != value:
                    content_changed = True
                setattr(playlist, key, value)

            if content_changed:
                playlist.version += 1
            session.commit()
            logger.debug("Updated playlist: %s", playlist.id)
            return playlist

    def set_playlist_remote_id(self, playlist_id: int, remote_id: Optional[str]) -> None:
        """Bind the playlist to a Spotify playlist, or clear the binding."""
        with self.get_session() as session:
            playlist = session.get(Playlist, playlist_id)
            if not playlist:
                raise ValueError(f"Playlist not found: {playlist_id}")
            playlist.spotify_id = remote_id
            session.commit()
            logger.debug("Playlist %s bound to remote %s", playlist_id, remote_id)

    def delete_playlist(self, playlist_id: int) -> bool:
        """Delete a playlist together with its track links and baseline.

        Returns:
            True if a playlist was deleted
        """
        with self.get_session() as session:
            playlist = session.get(Playlist, playlist_id)
            if not playlist:
                return False
            session.delete(playlist)
            session.commit()
            logger.info("Deleted playlist %s", playlist_id)
            return True

    def add_track_to_playlist(
        self, playlist_id: int, track_id: int, position: Optional[int] = None
    ) -> PlaylistTrack:
        """Add a track to a playlist.

        Args:
            playlist_id: Playlist database ID
            track_id: Track database ID
            position: Position in playlist; appended at the end when None

        Returns:
            Created PlaylistTrack association
        """
        with self.get_session() as session:
            playlist = session.get(Playlist, playlist_id)
            if not playlist:
                raise ValueError(f"Playlist not found: {playlist_id}")

            if position is None:
                position = len(playlist.playlist_tracks)
            else:
                # Shift following tracks down to make room
                for pt in playlist.playlist_tracks:
                    if pt.position >= position:
                        pt.position += 1

            playlist_track = PlaylistTrack(
                playlist_id=playlist_id, track_id=track_id, position=position
            )
            session.add(playlist_track)
            playlist.version += 1
            session.commit()
            return playlist_track

    def remove_track_from_playlist(self, playlist_id: int, track_id: int) -> bool:
        """Remove every occurrence of a track from a playlist.

        Returns:
            True if anything was removed
        """
        with self.get_session() as session:
            playlist = session.get(Playlist, playlist_id)
            if not playlist:
                raise ValueError(f"Playlist not found: {playlist_id}")

            remaining = [
                pt for pt in playlist.playlist_tracks if pt.track_id != track_id
            ]
            if len(remaining) == len(playlist.playlist_tracks):
                return False

            playlist.playlist_tracks = remaining
            for index, pt in enumerate(remaining):
                pt.position = index
            playlist.version += 1
            session.commit()
            return True

    def set_playlist_tracks(self, playlist_id: int, track_ids: Sequence[int]) -> None:
        """Replace the playlist's track list with the given order atomically.

        Args:
            playlist_id: Playlist database ID
            track_ids: Track database IDs in their new order
        """
        with self.get_session() as session:
            playlist = session.get(Playlist, playlist_id)
            if not playlist:
                raise ValueError(f"Playlist not found: {playlist_id}")

            session.execute(
                delete(PlaylistTrack).where(PlaylistTrack.playlist_id == playlist_id)
            )
            session.add_all(
                PlaylistTrack(playlist_id=playlist_id, track_id=track_id, position=i)
                for i, track_id in enumerate(track_ids)
            )
            playlist.version += 1
            session.commit()
            logger.debug(
                "Playlist %s now has %d tracks", playlist_id, len(track_ids)
            )

    def get_playlist_local(self, playlist_id: int) -> Optional[PlaylistLocal]:
        """Load a playlist with its ordered tracks as a value object.

        Returns:
            PlaylistLocal or None if the playlist does not exist
        """
        with self.get_session() as session:
            stmt = (
                select(Playlist)
                .where(Playlist.id == playlist_id)
                .options(
                    selectinload(Playlist.playlist_tracks).joinedload(
                        PlaylistTrack.track
                    )
                )
            )
            playlist = session.scalar(stmt)
            if playlist is None:
                return None

            tracks = [
                TrackRef(
                    id=pt.track.id,
                    external_id=pt.track.spotify_id,
                    title=pt.track.title,
                    artist=pt.track.artist,
                    album=pt.track.album,
                    duration_seconds=pt.track.duration,
                    image_ref=pt.track.image_url,
                )
                for pt in sorted(playlist.playlist_tracks, key=lambda pt: pt.position)
            ]

            return PlaylistLocal(
                id=playlist.id,
                owner_id=playlist.owner_id,
                name=playlist.name,
                description=playlist.description,
                image_ref=playlist.image_url,
                tracks=tracks,
                is_public=playlist.is_public,
                is_collaborative=playlist.is_collaborative,
                remote_id=playlist.spotify_id,
                version=playlist.version,
            )

    # =========================================================================
    # Baseline Operations
    # =========================================================================

    def get_baseline(self, playlist_id: int) -> Optional[SyncBaseline]:
        """Get the last successful sync baseline of a playlist."""
        with self.get_session() as session:
            stmt = select(SyncBaselineRecord).where(
                SyncBaselineRecord.playlist_id == playlist_id
            )
            record = session.scalar(stmt)
            if record is None:
                return None
            return SyncBaseline(
                remote_id=record.remote_id,
                synced_at=record.synced_at,
                synced_name=record.synced_name,
                synced_description=record.synced_description or "",
                synced_track_external_ids=list(record.synced_track_ids or []),
                synced_image_ref=record.synced_image_ref,
            )

    def commit_baseline(self, playlist_id: int, baseline: SyncBaseline) -> None:
        """Write a new baseline and the matching remote binding in one transaction.

        Args:
            playlist_id: Playlist database ID
            baseline: Baseline describing the reconciled state
        """
        with self.get_session() as session:
            with session.begin():
                playlist = session.get(
                    Playlist, playlist_id, options=[joinedload(Playlist.baseline)]
                )
                if not playlist:
                    raise ValueError(f"Playlist not found: {playlist_id}")

                record = playlist.baseline
                if record is None:
                    record = SyncBaselineRecord(playlist_id=playlist_id)
                    session.add(record)

                record.remote_id = baseline.remote_id
                record.synced_at = _to_naive_utc(baseline.synced_at)  # type: ignore[assignment]
                record.synced_name = baseline.synced_name
                record.synced_description = baseline.synced_description
                record.synced_track_ids = list(baseline.synced_track_external_ids)
                record.synced_image_ref = baseline.synced_image_ref
                playlist.spotify_id = baseline.remote_id

        logger.info(
            "Committed sync baseline for playlist %s (%d tracks)",
            playlist_id,
            len(baseline.synced_track_external_ids),
        )

    # =========================================================================
    # Statistics
    # =========================================================================

    def get_statistics(self) -> Dict[str, Any]:
        """Get database statistics."""
        with self.get_session() as session:
            return {
                "accounts": session.query(Account).count(),
                "playlists": session.query(Playlist).count(),
                "tracks": session.query(Track).count(),
                "synced_playlists": session.query(SyncBaselineRecord).count(),
                "database_path": str(self.db_path),
            }

    def close(self) -> None:
        """Dispose of the engine's connection pool."""
        self.engine.dispose()
        logger.debug("Database connections closed")
