"""Spotify credential lifecycle: obtain, refresh and verify access tokens."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Optional

from ...database.service import DatabaseService
from ...models import Credential
from ..errors import JamlistSyncError
from .gateway import FailureKind, SpotifyApiError, SpotifyGateway

logger = logging.getLogger(__name__)


class ConnectionReason(str, Enum):
    """Why a Spotify connection is not usable."""

    NOT_CONNECTED = "not_connected"
    NO_REFRESH_TOKEN = "no_refresh_token"
    REFRESH_FAILED = "refresh_failed"
    TOKEN_INVALID = "token_invalid"
    INSUFFICIENT_PERMISSIONS = "insufficient_permissions"
    API_ERROR = "api_error"


class NotConnectedError(JamlistSyncError):
    """Raised when an account has no Spotify connection."""

    pass


class RefreshFailedError(JamlistSyncError):
    """Raised when an expired access token cannot be refreshed."""

    def __init__(
        self,
        message: str,
        reason: ConnectionReason = ConnectionReason.REFRESH_FAILED,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.reason = reason
        self.retryable = retryable


@dataclass
class ConnectionStatus:
    """Result of verifying an account's Spotify connection."""

    connected: bool
    verified: bool
    reason: Optional[ConnectionReason] = None
    message: str = ""
    remote_account_id: Optional[str] = None
    display_name: Optional[str] = None
    email: Optional[str] = None
    product: Optional[str] = None
    country: Optional[str] = None
    token_refreshed: bool = False


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenManager:
    """Hands out valid access tokens and keeps the stored credential current.

    Refreshes are single-flight per account: concurrent callers that find an
    expired token wait for the first refresh and then reuse its result.
    """

    def __init__(
        self,
        db_service: DatabaseService,
        gateway: SpotifyGateway,
        expiry_buffer: int = 60,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize token manager.

        Args:
            db_service: Database service holding the credentials
            gateway: Spotify gateway used for refresh and identity calls
            expiry_buffer: Seconds before expiry at which a token is refreshed
            clock: Returns the current UTC time (injectable for tests)
        """
        self.db_service = db_service
        self.gateway = gateway
        self.expiry_buffer = expiry_buffer
        self.clock = clock or _utcnow
        self._locks: Dict[int, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _lock_for(self, account_id: int) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(account_id, threading.Lock())

    def _load(self, account_id: int) -> Credential:
        credential = self.db_service.get_credential(account_id)
        if credential is None or not credential.is_connected:
            raise NotConnectedError(f"Account {account_id} is not connected to Spotify")
        return credential

    def obtain_valid_token(self, account_id: int) -> Credential:
        """Return a credential whose access token is valid for use now.

        Args:
            account_id: Local account ID

        Returns:
            Credential with an unexpired access token

        Raises:
            NotConnectedError: If the account has no stored access token
            RefreshFailedError: If the token expired and could not be refreshed
        """
        credential = self._load(account_id)
        if not credential.is_expired(self.clock(), self.expiry_buffer):
            return credential

        with self._lock_for(account_id):
            # Another caller may have refreshed while we waited
            credential = self._load(account_id)
            if not credential.is_expired(self.clock(), self.expiry_buffer):
                return credential
            logger.info("Spotify token for account %s expired, refreshing", account_id)
            return self._refresh(credential)

    def force_refresh(
        self, account_id: int, rejected_token: Optional[str] = None
    ) -> Credential:
        """Refresh even though the stored expiry says the token is still valid.

        Used when Spotify rejected a token before its recorded expiry. If the
        stored token already differs from ``rejected_token`` another caller
        has refreshed in the meantime and that token is returned instead.
        """
        with self._lock_for(account_id):
            credential = self._load(account_id)
            if rejected_token and credential.access_token != rejected_token:
                return credential
            return self._refresh(credential)

    def _refresh(self, credential: Credential) -> Credential:
        """Perform the refresh call. Caller must hold the account lock."""
        account_id = credential.account_id

        if not credential.refresh_token:
            self.db_service.clear_credential_tokens(account_id)
            raise RefreshFailedError(
                "Spotify session expired and no refresh token is stored",
                reason=ConnectionReason.NO_REFRESH_TOKEN,
            )

        try:
            grant = self.gateway.refresh_access_token(credential.refresh_token)
        except SpotifyApiError as e:
            logger.error("Failed to refresh Spotify token for account %s: %s", account_id, e)
            if not e.retryable:
                # Refresh token revoked or rejected; user must reconnect
                self.db_service.clear_credential_tokens(account_id)
            raise RefreshFailedError(
                f"Token refresh failed: {e}", retryable=e.retryable
            ) from e

        refreshed = self.db_service.save_credential_tokens(
            account_id,
            access_token=grant.access_token,
            expires_at=grant.expires_at(self.clock()),
            refresh_token=grant.refresh_token,
        )
        logger.info("Refreshed Spotify token for account %s", account_id)
        return refreshed

    def verify_connection(self, account_id: int) -> ConnectionStatus:
        """Check that the stored token is actually accepted by Spotify.

        A token can be revoked server-side before its recorded expiry, so
        this performs an identity probe instead of trusting the expiry.
        """
        credential = self.db_service.get_credential(account_id)
        if (
            credential is None
            or not credential.remote_account_id
            or not credential.is_connected
        ):
            return ConnectionStatus(
                connected=False,
                verified=False,
                reason=ConnectionReason.NOT_CONNECTED,
                message="Spotify account has not been connected",
            )

        refreshed = False
        if credential.is_expired(self.clock(), self.expiry_buffer):
            try:
                credential = self.obtain_valid_token(account_id)
            except (NotConnectedError, RefreshFailedError) as e:
                reason = getattr(e, "reason", ConnectionReason.NOT_CONNECTED)
                return ConnectionStatus(
                    connected=False,
                    verified=False,
                    reason=reason,
                    message="Spotify connection expired. Please reconnect your account.",
                    remote_account_id=credential.remote_account_id,
                )
            refreshed = True

        try:
            profile = self.gateway.get_current_user(credential.access_token or "")
        except SpotifyApiError as e:
            return self._status_for_probe_failure(credential, e, refreshed)

        return self._verified(credential, profile, refreshed)

    def _status_for_probe_failure(
        self, credential: Credential, error: SpotifyApiError, refreshed: bool
    ) -> ConnectionStatus:
        account_id = credential.account_id

        if error.kind == FailureKind.UNAUTHORIZED:
            if not refreshed and credential.refresh_token:
                try:
                    retried = self.force_refresh(account_id, credential.access_token)
                    profile = self.gateway.get_current_user(retried.access_token or "")
                    return self._verified(retried, profile, refreshed=True)
                except (NotConnectedError, RefreshFailedError, SpotifyApiError) as e:
                    logger.warning("Retry after token refresh failed: %s", e)

            self.db_service.clear_credential_tokens(account_id)
            return ConnectionStatus(
                connected=False,
                verified=False,
                reason=ConnectionReason.TOKEN_INVALID,
                message="Spotify access was revoked. Please reconnect your account.",
                remote_account_id=credential.remote_account_id,
            )

        if error.kind == FailureKind.FORBIDDEN:
            return ConnectionStatus(
                connected=True,
                verified=False,
                reason=ConnectionReason.INSUFFICIENT_PERMISSIONS,
                message="Spotify permissions may have changed. Please reconnect.",
                remote_account_id=credential.remote_account_id,
            )

        return ConnectionStatus(
            connected=True,
            verified=False,
            reason=ConnectionReason.API_ERROR,
            message="Could not verify Spotify connection. Please try again later.",
            remote_account_id=credential.remote_account_id,
        )

    @staticmethod
    def _verified(
        credential: Credential, profile: Dict, refreshed: bool
    ) -> ConnectionStatus:
        return ConnectionStatus(
            connected=True,
            verified=True,
            remote_account_id=credential.remote_account_id,
            display_name=profile.get("display_name"),
            email=profile.get("email"),
            product=profile.get("product"),
            country=profile.get("country"),
            token_refreshed=refreshed,
        )

    def disconnect(self, account_id: int) -> None:
        """Remove the Spotify connection of an account entirely."""
        self.db_service.disconnect_account(account_id)
