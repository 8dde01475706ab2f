"""Typed gateway over the Spotify Web API playlist endpoints.

Every call takes the bearer access token explicitly. The gateway classifies
failures into ``FailureKind`` values but never retries; retry policy belongs
to the caller.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

import requests

from ...config import Config
from ...models import RemoteSnapshot, RemoteTrack
from ..errors import JamlistSyncError
from ..images.normalizer import CompliantImage

logger = logging.getLogger(__name__)

# Spotify accepts at most 100 items per track add/replace/remove call
PAGE_SIZE = 100


class FailureKind(str, Enum):
    """Classification of a failed Spotify call."""

    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    TOO_LARGE = "too_large"
    CLIENT_ERROR = "client_error"
    RETRYABLE = "retryable"


def classify_status(status_code: int) -> FailureKind:
    """Map an HTTP error status to a failure kind."""
    if status_code == 404:
        return FailureKind.NOT_FOUND
    if status_code == 401:
        return FailureKind.UNAUTHORIZED
    if status_code == 403:
        return FailureKind.FORBIDDEN
    if status_code == 413:
        return FailureKind.TOO_LARGE
    if status_code == 429 or status_code >= 500:
        return FailureKind.RETRYABLE
    return FailureKind.CLIENT_ERROR


class SpotifyApiError(JamlistSyncError):
    """Raised when a Spotify API call fails."""

    def __init__(
        self,
        kind: FailureKind,
        status_code: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> None:
        self.kind = kind
        self.status_code = status_code
        self.reason = reason
        detail = f" ({status_code})" if status_code is not None else ""
        super().__init__(f"Spotify API error {kind.value}{detail}: {reason or ''}")

    @property
    def retryable(self) -> bool:
        """Whether repeating the call later may succeed."""
        return self.kind == FailureKind.RETRYABLE


@dataclass
class TokenGrant:
    """Result of an OAuth refresh-token grant."""

    access_token: str
    expires_in: int
    refresh_token: Optional[str] = None
    scope: Optional[str] = None

    def expires_at(self, now: datetime) -> datetime:
        """Absolute expiry of the granted access token."""
        return now + timedelta(seconds=self.expires_in)


@dataclass
class PagedResult:
    """Outcome of a track operation split into page-sized calls."""

    total: int = 0
    succeeded: int = 0
    failed_batches: List[int] = field(default_factory=list)
    errors: List[SpotifyApiError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        """Whether every batch succeeded."""
        return not self.failed_batches

    @property
    def failed(self) -> int:
        """Number of items in failed batches."""
        return self.total - self.succeeded


@dataclass
class ImageUploadResult:
    """Outcome of a cover image upload."""

    success: bool
    failure: Optional[FailureKind] = None
    status_code: Optional[int] = None
    reason: Optional[str] = None


def _chunks(items: Sequence[str], size: int = PAGE_SIZE) -> List[List[str]]:
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def _track_uri(external_id: str) -> str:
    return f"spotify:track:{external_id}"


class SpotifyGateway:
    """Client for the Spotify Web API playlist surface."""

    def __init__(self, config: Config, session: Optional[requests.Session] = None):
        """Initialize gateway.

        Args:
            config: Application configuration
            session: Optional HTTP session (a new one is created if omitted)
        """
        self.config = config
        self.base_url = config.api_base_url
        self.timeout = config.http_timeout
        self.session = session or requests.Session()

    # =========================================================================
    # HTTP plumbing
    # =========================================================================

    def _request(
        self, method: str, path: str, token: str, **kwargs: Any
    ) -> requests.Response:
        """Perform an authenticated request and raise on failure.

        Args:
            method: HTTP method
            path: API path, or an absolute URL such as a paging cursor
            token: Bearer access token
            **kwargs: Passed to ``requests.Session.request``

        Returns:
            Successful response

        Raises:
            SpotifyApiError: On any non-2xx status, timeout or connection error
        """
        url = path if path.startswith("http") else f"{self.base_url}{path}"
        headers = {"Authorization": f"Bearer {token}"}
        headers.update(kwargs.pop("headers", {}))

        try:
            response = self.session.request(
                method, url, headers=headers, timeout=self.timeout, **kwargs
            )
        except requests.Timeout as e:
            raise SpotifyApiError(FailureKind.RETRYABLE, reason=f"timeout: {e}") from e
        except requests.RequestException as e:
            raise SpotifyApiError(
                FailureKind.RETRYABLE, reason=f"network error: {e}"
            ) from e

        if response.status_code >= 400:
            raise SpotifyApiError(
                classify_status(response.status_code),
                status_code=response.status_code,
                reason=self._error_reason(response),
            )
        return response

    @staticmethod
    def _error_reason(response: requests.Response) -> str:
        try:
            payload = response.json()
        except ValueError:
            return response.text[:200]
        error = payload.get("error") if isinstance(payload, dict) else None
        if isinstance(error, dict):
            return str(error.get("message", ""))
        if isinstance(error, str):
            return payload.get("error_description") or error
        return response.text[:200]

    # =========================================================================
    # Identity / OAuth
    # =========================================================================

    def get_current_user(self, token: str) -> Dict[str, Any]:
        """Fetch the profile of the token's owner (cheap identity probe)."""
        return self._request("GET", "/me", token).json()

    def refresh_access_token(self, refresh_token: str) -> TokenGrant:
        """Exchange a refresh token for a new access token.

        Raises:
            SpotifyApiError: If the token endpoint rejects the grant
        """
        try:
            response = self.session.post(
                self.config.token_url,
                data={"grant_type": "refresh_token", "refresh_token": refresh_token},
                auth=(self.config.spotify_client_id, self.config.spotify_client_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise SpotifyApiError(
                FailureKind.RETRYABLE, reason=f"token endpoint unreachable: {e}"
            ) from e

        if response.status_code >= 400:
            raise SpotifyApiError(
                classify_status(response.status_code),
                status_code=response.status_code,
                reason=self._error_reason(response),
            )

        data = response.json()
        return TokenGrant(
            access_token=data["access_token"],
            expires_in=int(data.get("expires_in", 3600)),
            refresh_token=data.get("refresh_token"),
            scope=data.get("scope"),
        )

    # =========================================================================
    # Playlists
    # =========================================================================

    def fetch_snapshot(self, token: str, remote_id: str) -> Optional[RemoteSnapshot]:
        """Fetch a playlist with all of its tracks.

        Args:
            token: Bearer access token
            remote_id: Spotify playlist ID

        Returns:
            RemoteSnapshot, or None if the playlist does not exist
        """
        try:
            data = self._request("GET", f"/playlists/{remote_id}", token).json()
        except SpotifyApiError as e:
            if e.kind == FailureKind.NOT_FOUND:
                logger.info("Spotify playlist %s not found", remote_id)
                return None
            raise

        page = data.get("tracks") or {}
        tracks = self._parse_items(page.get("items", []))
        next_url = page.get("next")
        while next_url:
            page = self._request("GET", next_url, token).json()
            tracks.extend(self._parse_items(page.get("items", [])))
            next_url = page.get("next")

        owner = data.get("owner") or {}
        logger.debug(
            "Fetched Spotify playlist %s with %d tracks", remote_id, len(tracks)
        )
        return RemoteSnapshot(
            remote_id=data.get("id", remote_id),
            name=data.get("name", ""),
            description=data.get("description"),
            tracks=tracks,
            is_public=data.get("public"),
            is_collaborative=data.get("collaborative"),
            owner_id=owner.get("id"),
        )

    @staticmethod
    def _parse_items(items: List[Dict[str, Any]]) -> List[RemoteTrack]:
        """Convert playlist items, skipping local files and removed tracks."""
        tracks = []
        for item in items:
            track = (item or {}).get("track")
            if not track or not track.get("id"):
                continue
            artists = [a.get("name") for a in track.get("artists") or [] if a]
            album = track.get("album") or {}
            images = album.get("images") or []
            duration_ms = track.get("duration_ms")
            tracks.append(
                RemoteTrack(
                    external_id=track["id"],
                    title=track.get("name") or "Unknown",
                    artist=", ".join(a for a in artists if a) or "Unknown",
                    album=album.get("name"),
                    duration_seconds=(
                        duration_ms // 1000 if duration_ms is not None else None
                    ),
                    image_ref=images[0].get("url") if images else None,
                )
            )
        return tracks

    def create_playlist(
        self,
        token: str,
        owner_account_id: str,
        name: str,
        description: Optional[str],
        is_public: bool = True,
        is_collaborative: bool = False,
    ) -> str:
        """Create a playlist owned by the given Spotify user.

        Returns:
            ID of the new Spotify playlist
        """
        payload = {
            "name": name,
            "description": description or self.config.default_description,
            "public": is_public,
            # Spotify only allows collaborative playlists that are not public
            "collaborative": is_collaborative and not is_public,
        }
        data = self._request(
            "POST", f"/users/{owner_account_id}/playlists", token, json=payload
        ).json()
        logger.info("Created Spotify playlist %s (%s)", data["id"], name)
        return data["id"]

    def update_metadata(
        self,
        token: str,
        remote_id: str,
        name: str,
        description: Optional[str],
        is_public: Optional[bool] = None,
    ) -> bool:
        """Update playlist details, best-effort.

        Returns:
            True if Spotify accepted the update
        """
        payload: Dict[str, Any] = {
            "name": name,
            "description": description or self.config.default_description,
        }
        if is_public is not None:
            payload["public"] = is_public
        try:
            self._request("PUT", f"/playlists/{remote_id}", token, json=payload)
        except SpotifyApiError as e:
            logger.warning("Failed to update Spotify playlist details: %s", e)
            return False
        return True

    def replace_tracks(
        self, token: str, remote_id: str, ordered_external_ids: Sequence[str]
    ) -> PagedResult:
        """Replace the playlist contents, preserving order across pages.

        The first page replaces the remote list, later pages are appended.
        An empty list clears the playlist.
        """
        uris = [_track_uri(i) for i in ordered_external_ids]
        result = PagedResult(total=len(uris))
        batches = _chunks(uris) or [[]]
        path = f"/playlists/{remote_id}/tracks"

        for index, batch in enumerate(batches):
            method = "PUT" if index == 0 else "POST"
            try:
                self._request(method, path, token, json={"uris": batch})
                result.succeeded += len(batch)
            except SpotifyApiError as e:
                logger.error(
                    "Track batch %d/%d failed for playlist %s: %s",
                    index + 1,
                    len(batches),
                    remote_id,
                    e,
                )
                result.failed_batches.append(index)
                result.errors.append(e)
        return result

    def remove_tracks(
        self, token: str, remote_id: str, external_ids: Sequence[str]
    ) -> PagedResult:
        """Remove tracks from a playlist in page-sized calls."""
        result = PagedResult(total=len(external_ids))
        path = f"/playlists/{remote_id}/tracks"

        for index, batch in enumerate(_chunks(external_ids)):
            body = {"tracks": [{"uri": _track_uri(i)} for i in batch]}
            try:
                self._request("DELETE", path, token, json=body)
                result.succeeded += len(batch)
            except SpotifyApiError as e:
                logger.error(
                    "Track removal batch %d failed for playlist %s: %s",
                    index + 1,
                    remote_id,
                    e,
                )
                result.failed_batches.append(index)
                result.errors.append(e)
        return result

    def is_followed_by(self, token: str, remote_id: str, account_id: str) -> bool:
        """Check whether a Spotify user still follows the playlist."""
        data = self._request(
            "GET",
            f"/playlists/{remote_id}/followers/contains",
            token,
            params={"ids": account_id},
        ).json()
        return bool(data and data[0])

    def unfollow(self, token: str, remote_id: str) -> None:
        """Unfollow the playlist, which is how Spotify deletes owned playlists."""
        self._request("DELETE", f"/playlists/{remote_id}/followers", token)
        logger.info("Unfollowed Spotify playlist %s", remote_id)

    def upload_cover_image(
        self, token: str, remote_id: str, image: CompliantImage
    ) -> ImageUploadResult:
        """Upload a normalized JPEG as the playlist cover.

        Returns:
            ImageUploadResult with a classified failure reason
        """
        if not isinstance(image, CompliantImage):
            raise TypeError("upload_cover_image requires a CompliantImage")

        if image.size_bytes > self.config.image_max_bytes:
            logger.error(
                "Image too large for Spotify: %d bytes (max %d)",
                image.size_bytes,
                self.config.image_max_bytes,
            )
            return ImageUploadResult(
                success=False,
                failure=FailureKind.TOO_LARGE,
                reason="image exceeds upload budget",
            )

        try:
            self._request(
                "PUT",
                f"/playlists/{remote_id}/images",
                token,
                data=image.to_base64(),
                headers={"Content-Type": "image/jpeg"},
            )
        except SpotifyApiError as e:
            reason = e.reason
            if e.kind == FailureKind.FORBIDDEN:
                reason = "missing ugc-image-upload scope"
            logger.warning("Cover image upload failed: %s", e)
            return ImageUploadResult(
                success=False,
                failure=e.kind,
                status_code=e.status_code,
                reason=reason,
            )

        logger.info("Uploaded cover image to Spotify playlist %s", remote_id)
        return ImageUploadResult(success=True, status_code=202)
