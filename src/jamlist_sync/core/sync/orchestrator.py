"""Sync orchestrator reconciling local playlists with Spotify.

This module provides the SyncOrchestrator that coordinates:
- TokenManager: resolves a valid access token for the playlist owner
- SpotifyGateway: fetches the remote snapshot and applies mutations
- compute_diff: decides what diverged since the last baseline
- ImageNormalizer: prepares the cover image for upload
- DatabaseService: reads local state and commits the new baseline
"""

import logging
import threading
from collections import Counter
from dataclasses import dataclass
from dataclasses import field as dataclass_field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, List, Optional

from ...config import DEFAULT_DESCRIPTION
from ...database.service import DatabaseService
from ...models import Credential, PlaylistLocal, RemoteSnapshot, SyncBaseline
from ..images.normalizer import ImageNormalizer, UnprocessableImageError
from ..spotify.gateway import FailureKind, SpotifyApiError, SpotifyGateway
from ..spotify.token_manager import NotConnectedError, RefreshFailedError, TokenManager
from .diff_engine import (
    PlaylistDiff,
    RemoteState,
    compute_diff,
    normalize_description,
    remote_state_of,
)
from .errors import NeedsReconnectError, PlaylistNotFoundError, SyncError, SyncErrorKind

logger = logging.getLogger(__name__)


class SyncDirection(str, Enum):
    """Which side wins a reconciliation."""

    PUSH = "push"
    PULL = "pull"


class SyncStage(str, Enum):
    """States of a single reconciliation run."""

    IDLE = "idle"
    FETCHING_REMOTE = "fetching_remote"
    RECREATING = "recreating"
    RECONCILING = "reconciling"
    UPLOADING = "uploading"
    COMMITTING_BASELINE = "committing_baseline"
    DONE = "done"
    FAILED = "failed"

    @classmethod
    def ordered(cls) -> List["SyncStage"]:
        """Return the stages of an uneventful push in execution order."""
        return [
            cls.IDLE,
            cls.FETCHING_REMOTE,
            cls.RECONCILING,
            cls.UPLOADING,
            cls.COMMITTING_BASELINE,
            cls.DONE,
        ]


_API_ERROR_KINDS = {
    FailureKind.NOT_FOUND: SyncErrorKind.REMOTE_NOT_FOUND,
    FailureKind.UNAUTHORIZED: SyncErrorKind.NEEDS_RECONNECT,
    FailureKind.FORBIDDEN: SyncErrorKind.REMOTE_FORBIDDEN,
    FailureKind.TOO_LARGE: SyncErrorKind.PAYLOAD_TOO_LARGE,
}


def _sync_error(
    error: SpotifyApiError, message: str, fatal: bool = False
) -> SyncError:
    kind = _API_ERROR_KINDS.get(error.kind, SyncErrorKind.REMOTE_ERROR)
    return SyncError(
        kind=kind,
        message=f"{message}: {error}",
        fatal=fatal,
        retryable=error.retryable,
    )


class _StageFailed(Exception):
    """Aborts a run with a fatal error."""

    def __init__(self, error: SyncError) -> None:
        super().__init__(error.message)
        self.error = error


@dataclass
class SyncResult:
    """Result of a single playlist reconciliation."""

    playlist_id: int
    direction: SyncDirection
    remote_id: Optional[str] = None
    created: bool = False
    recreated: bool = False
    recreate_reason: Optional[SyncErrorKind] = None
    tracks_added: int = 0
    tracks_removed: int = 0
    metadata_updated: bool = False
    image_uploaded: bool = False
    baseline_committed: bool = False
    stage: SyncStage = SyncStage.IDLE
    stages: List[SyncStage] = dataclass_field(default_factory=list)
    errors: List[SyncError] = dataclass_field(default_factory=list)

    def enter(self, stage: SyncStage) -> None:
        """Move to a new stage."""
        self.stage = stage
        self.stages.append(stage)
        logger.debug("Playlist %s: %s", self.playlist_id, stage.value)

    def add_error(self, error: SyncError) -> None:
        """Record an error."""
        self.errors.append(error)
        if error.fatal:
            logger.error("Playlist %s: %s", self.playlist_id, error)
        else:
            logger.warning("Playlist %s: %s", self.playlist_id, error)

    @property
    def completed(self) -> bool:
        """Whether the run reached the final stage."""
        return self.stage == SyncStage.DONE

    @property
    def success(self) -> bool:
        """Whether the run completed without any recorded error."""
        return self.completed and not self.errors

    @property
    def fatal_error(self) -> Optional[SyncError]:
        """The error that aborted the run, if any."""
        return next((e for e in self.errors if e.fatal), None)

    def get_summary(self) -> dict[str, Any]:
        """Get summary of the reconciliation."""
        return {
            "success": self.success,
            "direction": self.direction.value,
            "stage": self.stage.value,
            "remote_id": self.remote_id,
            "created": self.created,
            "recreated": self.recreated,
            "recreate_reason": (
                self.recreate_reason.value if self.recreate_reason else None
            ),
            "tracks_added": self.tracks_added,
            "tracks_removed": self.tracks_removed,
            "metadata_updated": self.metadata_updated,
            "image_uploaded": self.image_uploaded,
            "baseline_committed": self.baseline_committed,
            "errors": [str(e) for e in self.errors],
        }


@dataclass
class DeleteResult:
    """Result of deleting a playlist locally and on Spotify."""

    playlist_id: int
    remote_id: Optional[str] = None
    tracks_removed: int = 0
    unfollowed: bool = False
    local_deleted: bool = False
    errors: List[SyncError] = dataclass_field(default_factory=list)

    def add_error(self, error: SyncError) -> None:
        """Record an error."""
        self.errors.append(error)
        logger.warning("Delete playlist %s: %s", self.playlist_id, error)

    def get_summary(self) -> dict[str, Any]:
        """Get summary of the delete operation."""
        return {
            "success": self.local_deleted and not self.errors,
            "remote_id": self.remote_id,
            "tracks_removed": self.tracks_removed,
            "unfollowed": self.unfollowed,
            "local_deleted": self.local_deleted,
            "errors": [str(e) for e in self.errors],
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncOrchestrator:
    """Reconciles one playlist at a time between the local copy and Spotify.

    A push forces local state onto Spotify:
    1. Resolve a valid token for the owner
    2. Fetch the remote snapshot and check that the owner still follows it
    3. Recreate the remote playlist if it was deleted or unfollowed
    4. Push changed metadata and a changed cover image
    5. Replace the remote track list with the local order
    6. Commit the new baseline

    A pull mirrors the remote state into the local copy. The orchestrator
    keeps no per-run state, so different playlists may reconcile concurrently.
    Runs for the same playlist must be serialized by the caller.
    """

    def __init__(
        self,
        db_service: DatabaseService,
        token_manager: TokenManager,
        gateway: SpotifyGateway,
        normalizer: ImageNormalizer,
        clock: Optional[Callable[[], datetime]] = None,
        default_description: str = DEFAULT_DESCRIPTION,
    ):
        """Initialize sync orchestrator.

        Args:
            db_service: Database service instance
            token_manager: Token lifecycle manager
            gateway: Spotify gateway
            normalizer: Cover image normalizer
            clock: Returns the current UTC time (injectable for tests)
            default_description: Description pushed for playlists without one
        """
        self.db_service = db_service
        self.token_manager = token_manager
        self.gateway = gateway
        self.normalizer = normalizer
        self.clock = clock or _utcnow
        self.default_description = default_description

    # =========================================================================
    # Public operations
    # =========================================================================

    def reconcile(
        self,
        playlist_id: int,
        direction: SyncDirection,
        cancel_event: Optional[threading.Event] = None,
    ) -> SyncResult:
        """Reconcile a playlist in the given direction.

        Args:
            playlist_id: Local playlist ID
            direction: PUSH (local wins) or PULL (remote wins)
            cancel_event: Checked between major steps; set it to stop the run

        Returns:
            SyncResult with partial-progress counts and recorded errors
        """
        direction = SyncDirection(direction)
        result = SyncResult(playlist_id=playlist_id, direction=direction)
        result.enter(SyncStage.IDLE)
        logger.info("Starting %s of playlist %s", direction.value, playlist_id)

        try:
            local = self.db_service.get_playlist_local(playlist_id)
            if local is None:
                raise _StageFailed(
                    SyncError(
                        SyncErrorKind.PLAYLIST_NOT_FOUND,
                        f"Playlist {playlist_id} does not exist",
                        fatal=True,
                    )
                )
            result.remote_id = local.remote_id

            if direction == SyncDirection.PUSH:
                self._push(local, result, cancel_event)
            else:
                self._pull(local, result, cancel_event)
        except _StageFailed as e:
            self._fail(result, e.error)
        except Exception as e:
            logger.exception("Unexpected error during %s", direction.value)
            self._fail(
                result,
                SyncError(SyncErrorKind.REMOTE_ERROR, f"Unexpected error: {e}", fatal=True),
            )

        self._log_sync_summary(result)
        return result

    def diff_status(self, playlist_id: int) -> PlaylistDiff:
        """Compute the current diff without changing anything.

        Raises:
            PlaylistNotFoundError: If the playlist does not exist
            NeedsReconnectError: If no valid Spotify token can be obtained
            SpotifyApiError: If fetching the remote playlist fails
        """
        local = self.db_service.get_playlist_local(playlist_id)
        if local is None:
            raise PlaylistNotFoundError(f"Playlist {playlist_id} does not exist")

        baseline = self.db_service.get_baseline(playlist_id)
        if not local.remote_id:
            return compute_diff(baseline, local, None, self.default_description)

        try:
            credential = self.token_manager.obtain_valid_token(local.owner_id)
        except (NotConnectedError, RefreshFailedError) as e:
            raise NeedsReconnectError(str(e)) from e

        try:
            snapshot = self._fetch_remote(credential, local.remote_id)
        except SpotifyApiError as e:
            if e.kind == FailureKind.UNAUTHORIZED:
                raise NeedsReconnectError(str(e)) from e
            raise

        return compute_diff(baseline, local, snapshot, self.default_description)

    def delete_playlist(self, playlist_id: int, delete_remote: bool = True) -> DeleteResult:
        """Delete a playlist locally and, optionally, clean up its Spotify copy.

        Remote cleanup is best-effort and never prevents the local deletion.
        """
        result = DeleteResult(playlist_id=playlist_id)
        local = self.db_service.get_playlist_local(playlist_id)
        if local is None:
            result.add_error(
                SyncError(
                    SyncErrorKind.PLAYLIST_NOT_FOUND,
                    f"Playlist {playlist_id} does not exist",
                    fatal=True,
                )
            )
            return result

        result.remote_id = local.remote_id
        if delete_remote and local.remote_id:
            try:
                self._cleanup_remote(local, local.remote_id, result)
            except Exception as e:
                logger.exception("Remote cleanup failed")
                result.add_error(
                    SyncError(SyncErrorKind.REMOTE_ERROR, f"Remote cleanup failed: {e}")
                )

        result.local_deleted = self.db_service.delete_playlist(playlist_id)
        logger.info("Deleted playlist %s: %s", playlist_id, result.get_summary())
        return result

    # =========================================================================
    # Shared steps
    # =========================================================================

    def _fail(self, result: SyncResult, error: SyncError) -> None:
        result.add_error(error)
        result.enter(SyncStage.FAILED)

    def _check_cancelled(self, cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise _StageFailed(
                SyncError(
                    SyncErrorKind.CANCELLED,
                    "Reconciliation cancelled",
                    fatal=True,
                    retryable=True,
                )
            )

    def _resolve_token(self, local: PlaylistLocal) -> Credential:
        try:
            return self.token_manager.obtain_valid_token(local.owner_id)
        except NotConnectedError as e:
            raise _StageFailed(
                SyncError(SyncErrorKind.NOT_CONNECTED, str(e), fatal=True)
            ) from e
        except RefreshFailedError as e:
            raise _StageFailed(
                SyncError(
                    SyncErrorKind.NEEDS_RECONNECT,
                    str(e),
                    fatal=True,
                    retryable=e.retryable,
                )
            ) from e

    def _fetch_remote(
        self, credential: Credential, remote_id: str
    ) -> Optional[RemoteSnapshot]:
        """Fetch the remote snapshot and record whether the owner follows it."""
        token = credential.access_token or ""
        snapshot = self.gateway.fetch_snapshot(token, remote_id)
        if snapshot is None or not credential.remote_account_id:
            return snapshot

        try:
            followed = self.gateway.is_followed_by(
                token, remote_id, credential.remote_account_id
            )
        except SpotifyApiError as e:
            logger.warning(
                "Could not check follow status of %s, assuming followed: %s",
                remote_id,
                e,
            )
            followed = True

        if not followed:
            logger.info("Spotify playlist %s is no longer followed", remote_id)
        return snapshot.model_copy(update={"in_library": followed})

    def _fetch_stage(
        self, credential: Credential, remote_id: Optional[str], result: SyncResult
    ) -> Optional[RemoteSnapshot]:
        result.enter(SyncStage.FETCHING_REMOTE)
        if not remote_id:
            return None
        try:
            return self._fetch_remote(credential, remote_id)
        except SpotifyApiError as e:
            raise _StageFailed(
                _sync_error(e, "Failed to fetch Spotify playlist", fatal=True)
            ) from e

    def _owner_account_id(self, credential: Credential) -> str:
        if credential.remote_account_id:
            return credential.remote_account_id
        profile = self.gateway.get_current_user(credential.access_token or "")
        return profile["id"]

    # =========================================================================
    # Push
    # =========================================================================

    def _push(
        self,
        local: PlaylistLocal,
        result: SyncResult,
        cancel_event: Optional[threading.Event],
    ) -> None:
        credential = self._resolve_token(local)
        token = credential.access_token or ""
        self._check_cancelled(cancel_event)

        baseline = self.db_service.get_baseline(local.id)
        snapshot = self._fetch_stage(credential, local.remote_id, result)
        diff = compute_diff(baseline, local, snapshot, self.default_description)
        self._check_cancelled(cancel_event)

        description = self._description_for(local)
        metadata_ok = True
        if snapshot is None or diff.requires_create:
            remote_id = self._recreate(local, credential, diff, result)
        else:
            result.enter(SyncStage.RECONCILING)
            remote_id = snapshot.remote_id
            if self._metadata_differs(local, snapshot):
                metadata_ok = self.gateway.update_metadata(
                    token, remote_id, local.name, description, local.is_public
                )
                result.metadata_updated = metadata_ok
                if not metadata_ok:
                    result.add_error(
                        SyncError(
                            SyncErrorKind.REMOTE_ERROR,
                            "Failed to update Spotify playlist details",
                            retryable=True,
                        )
                    )
        result.remote_id = remote_id
        self._check_cancelled(cancel_event)

        result.enter(SyncStage.UPLOADING)
        previous_image_ref = (
            baseline.synced_image_ref if baseline and not result.created else None
        )
        image_ref = previous_image_ref
        if local.image_ref and local.image_ref != previous_image_ref:
            if self._upload_image(token, remote_id, local.image_ref, result):
                image_ref = local.image_ref
        self._check_cancelled(cancel_event)

        external_ids = local.external_ids
        paged = self.gateway.replace_tracks(token, remote_id, external_ids)
        if result.created:
            result.tracks_added = len(external_ids)
        else:
            result.tracks_added = len(diff.only_local)
            result.tracks_removed = len(diff.only_remote)

        if not paged.ok:
            result.add_error(
                SyncError(
                    SyncErrorKind.PARTIAL_FAILURE,
                    f"{len(paged.failed_batches)} track batch(es) failed, "
                    f"{paged.failed} of {paged.total} tracks not written",
                    retryable=any(e.retryable for e in paged.errors),
                )
            )

        if not paged.ok:
            logger.warning(
                "Baseline for playlist %s not committed after partial sync", local.id
            )
            result.enter(SyncStage.FAILED)
            return
        self._check_cancelled(cancel_event)

        if not metadata_ok:
            # Without a baseline the next push compares the details again
            logger.warning(
                "Baseline for playlist %s not committed, details were not updated",
                local.id,
            )
            result.enter(SyncStage.DONE)
            return

        result.enter(SyncStage.COMMITTING_BASELINE)
        self.db_service.commit_baseline(
            local.id,
            SyncBaseline(
                remote_id=remote_id,
                synced_at=self.clock(),
                synced_name=local.name,
                synced_description=description,
                synced_track_external_ids=external_ids,
                synced_image_ref=image_ref,
            ),
        )
        result.baseline_committed = True
        result.enter(SyncStage.DONE)

    def _recreate(
        self,
        local: PlaylistLocal,
        credential: Credential,
        diff: PlaylistDiff,
        result: SyncResult,
    ) -> str:
        """Create the remote playlist, replacing a deleted or unfollowed one."""
        result.enter(SyncStage.RECREATING)
        token = credential.access_token or ""

        if local.remote_id:
            result.recreated = True
            result.recreate_reason = (
                SyncErrorKind.REMOTE_NOT_FOUND
                if diff.remote_state == RemoteState.MISSING
                else SyncErrorKind.REMOTE_ORPHANED
            )
            logger.warning(
                "Spotify playlist %s is %s, recreating",
                local.remote_id,
                diff.remote_state.value,
            )
            self.db_service.set_playlist_remote_id(local.id, None)

        try:
            remote_id = self.gateway.create_playlist(
                token,
                self._owner_account_id(credential),
                local.name,
                self._description_for(local),
                is_public=local.is_public,
                is_collaborative=local.is_collaborative,
            )
        except SpotifyApiError as e:
            raise _StageFailed(
                _sync_error(e, "Failed to create Spotify playlist", fatal=True)
            ) from e

        self.db_service.set_playlist_remote_id(local.id, remote_id)
        result.created = True
        result.metadata_updated = True
        return remote_id

    def _description_for(self, local: PlaylistLocal) -> str:
        """Description pushed to Spotify, falling back to the default one."""
        if normalize_description(local.description):
            return local.description or ""
        return self.default_description

    def _metadata_differs(self, local: PlaylistLocal, remote: RemoteSnapshot) -> bool:
        if local.name != remote.name:
            return True
        if normalize_description(self._description_for(local)) != (
            normalize_description(remote.description)
        ):
            return True
        return remote.is_public is not None and remote.is_public != local.is_public

    def _upload_image(
        self, token: str, remote_id: str, image_ref: str, result: SyncResult
    ) -> bool:
        """Normalize and upload the cover image. Failures are recorded, not raised."""
        try:
            image = self.normalizer.normalize(image_ref)
        except UnprocessableImageError as e:
            result.add_error(SyncError(SyncErrorKind.UNPROCESSABLE, str(e)))
            return False

        upload = self.gateway.upload_cover_image(token, remote_id, image)
        if upload.success:
            result.image_uploaded = True
            return True

        kind = {
            FailureKind.TOO_LARGE: SyncErrorKind.PAYLOAD_TOO_LARGE,
            FailureKind.FORBIDDEN: SyncErrorKind.REMOTE_FORBIDDEN,
            FailureKind.UNAUTHORIZED: SyncErrorKind.NEEDS_RECONNECT,
        }.get(upload.failure, SyncErrorKind.REMOTE_ERROR)  # type: ignore[arg-type]
        result.add_error(
            SyncError(
                kind,
                f"Cover image upload failed: {upload.reason or upload.status_code}",
                retryable=upload.failure == FailureKind.RETRYABLE,
            )
        )
        return False

    # =========================================================================
    # Pull
    # =========================================================================

    def _pull(
        self,
        local: PlaylistLocal,
        result: SyncResult,
        cancel_event: Optional[threading.Event],
    ) -> None:
        if not local.remote_id:
            raise _StageFailed(
                SyncError(
                    SyncErrorKind.REMOTE_NOT_FOUND,
                    "Playlist is not linked to a Spotify playlist",
                    fatal=True,
                )
            )

        credential = self._resolve_token(local)
        self._check_cancelled(cancel_event)

        snapshot = self._fetch_stage(credential, local.remote_id, result)
        state = remote_state_of(snapshot)
        if snapshot is None or state == RemoteState.MISSING:
            raise _StageFailed(
                SyncError(
                    SyncErrorKind.REMOTE_NOT_FOUND,
                    f"Spotify playlist {local.remote_id} no longer exists",
                    fatal=True,
                )
            )
        if state == RemoteState.ORPHANED:
            raise _StageFailed(
                SyncError(
                    SyncErrorKind.REMOTE_ORPHANED,
                    f"Spotify playlist {local.remote_id} is no longer followed",
                    fatal=True,
                )
            )
        self._check_cancelled(cancel_event)

        result.enter(SyncStage.RECONCILING)
        baseline = self.db_service.get_baseline(local.id)
        self._import_metadata(local, snapshot, result)
        self._check_cancelled(cancel_event)

        self._import_tracks(local, snapshot, result)
        self._check_cancelled(cancel_event)

        # The local syncable tracks now list the remote ones in remote order
        result.enter(SyncStage.COMMITTING_BASELINE)
        self.db_service.commit_baseline(
            local.id,
            SyncBaseline(
                remote_id=snapshot.remote_id,
                synced_at=self.clock(),
                synced_name=snapshot.name,
                synced_description=snapshot.description or "",
                synced_track_external_ids=snapshot.track_external_ids,
                synced_image_ref=baseline.synced_image_ref if baseline else None,
            ),
        )
        result.baseline_committed = True
        result.enter(SyncStage.DONE)

    def _import_metadata(
        self, local: PlaylistLocal, snapshot: RemoteSnapshot, result: SyncResult
    ) -> None:
        updates = {}
        if local.name != snapshot.name:
            updates["name"] = snapshot.name
        # A remote showing the default description matches an empty local one
        remote_description = normalize_description(snapshot.description)
        if remote_description not in (
            normalize_description(local.description),
            normalize_description(self._description_for(local)),
        ):
            updates["description"] = snapshot.description or ""

        if updates:
            self.db_service.update_playlist(local.id, updates)
            result.metadata_updated = True
            logger.info("Imported %s from Spotify", ", ".join(sorted(updates)))

    def _import_tracks(
        self, local: PlaylistLocal, snapshot: RemoteSnapshot, result: SyncResult
    ) -> None:
        """Make the local track list match the remote order, repeats included."""
        local_ids = {
            t.external_id: t.id for t in local.tracks if t.external_id and t.id
        }

        ordered: List[int] = []
        for remote_track in snapshot.tracks:
            track_id = local_ids.get(remote_track.external_id)
            if track_id is None:
                track = self.db_service.get_or_create_track(
                    {
                        "spotify_id": remote_track.external_id,
                        "title": remote_track.title,
                        "artist": remote_track.artist,
                        "album": remote_track.album,
                        "duration": remote_track.duration_seconds,
                        "image_url": remote_track.image_ref,
                    }
                )
                track_id = track.id
                local_ids[remote_track.external_id] = track_id
            ordered.append(track_id)

        local_counts = Counter(local.external_ids)
        remote_counts = Counter(snapshot.track_external_ids)
        result.tracks_added = sum((remote_counts - local_counts).values())
        result.tracks_removed = sum((local_counts - remote_counts).values())

        # Tracks Spotify cannot hold stay, after the remote-ordered ones
        unsynced = [t.id for t in local.tracks if not t.external_id and t.id]
        new_order = ordered + unsynced
        if new_order != [t.id for t in local.tracks]:
            self.db_service.set_playlist_tracks(local.id, new_order)
            logger.info(
                "Imported tracks: %d added, %d removed",
                result.tracks_added,
                result.tracks_removed,
            )

    # =========================================================================
    # Delete
    # =========================================================================

    def _cleanup_remote(
        self, local: PlaylistLocal, remote_id: str, result: DeleteResult
    ) -> None:
        try:
            credential = self.token_manager.obtain_valid_token(local.owner_id)
        except (NotConnectedError, RefreshFailedError) as e:
            result.add_error(SyncError(SyncErrorKind.NEEDS_RECONNECT, str(e)))
            return
        token = credential.access_token or ""

        try:
            snapshot = self.gateway.fetch_snapshot(token, remote_id)
            if snapshot is None:
                logger.info("Spotify playlist %s already gone", remote_id)
                return
            external_ids = list(dict.fromkeys(snapshot.track_external_ids))
        except SpotifyApiError as e:
            logger.warning("Could not fetch %s, using local tracks: %s", remote_id, e)
            external_ids = list(dict.fromkeys(local.external_ids))

        if external_ids:
            paged = self.gateway.remove_tracks(token, remote_id, external_ids)
            result.tracks_removed = paged.succeeded
            if not paged.ok:
                result.add_error(
                    SyncError(
                        SyncErrorKind.PARTIAL_FAILURE,
                        f"{paged.failed} of {paged.total} tracks not removed",
                        retryable=any(e.retryable for e in paged.errors),
                    )
                )

        try:
            self.gateway.unfollow(token, remote_id)
            result.unfollowed = True
        except SpotifyApiError as e:
            result.add_error(_sync_error(e, "Failed to unfollow Spotify playlist"))

    def _log_sync_summary(self, result: SyncResult) -> None:
        summary = result.get_summary()
        if result.completed:
            logger.info("Sync completed: %s", summary)
        else:
            logger.warning("Sync did not complete: %s", summary)
