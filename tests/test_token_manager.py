"""Tests for the Spotify token lifecycle manager."""

import threading
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

import pytest

from jamlist_sync.core.spotify.gateway import (
    FailureKind,
    SpotifyApiError,
    SpotifyGateway,
    TokenGrant,
)
from jamlist_sync.core.spotify.token_manager import (
    ConnectionReason,
    NotConnectedError,
    RefreshFailedError,
    TokenManager,
)
from jamlist_sync.models import Credential

NOW = datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)


class InMemoryCredentialStore:
    """Credential storage with the same interface as DatabaseService."""

    def __init__(self, credential=None):
        self.credentials = {}
        self.lock = threading.Lock()
        if credential is not None:
            self.credentials[credential.account_id] = credential

    def get_credential(self, account_id):
        with self.lock:
            return self.credentials.get(account_id)

    def save_credential_tokens(
        self, account_id, access_token, expires_at, refresh_token=None
    ):
        with self.lock:
            current = self.credentials[account_id]
            updated = current.model_copy(
                update={
                    "access_token": access_token,
                    "expires_at": expires_at,
                    "refresh_token": refresh_token or current.refresh_token,
                }
            )
            self.credentials[account_id] = updated
            return updated

    def clear_credential_tokens(self, account_id):
        with self.lock:
            current = self.credentials[account_id]
            self.credentials[account_id] = current.model_copy(
                update={"access_token": None, "refresh_token": None, "expires_at": None}
            )

    def disconnect_account(self, account_id):
        with self.lock:
            self.credentials[account_id] = Credential(account_id=account_id)


def make_credential(expires_in=timedelta(hours=1), refresh_token="refresh-1"):
    return Credential(
        account_id=1,
        access_token="access-1",
        refresh_token=refresh_token,
        expires_at=NOW + expires_in,
        remote_account_id="spotify-user",
    )


@pytest.fixture
def gateway():
    """Create a mock gateway."""
    return Mock(spec=SpotifyGateway)


def make_manager(store, gateway):
    return TokenManager(store, gateway, expiry_buffer=60, clock=lambda: NOW)


class TestObtainValidToken:
    """Test obtaining tokens."""

    def test_valid_token_is_returned_without_refresh(self, gateway):
        """Test that an unexpired token is used as is."""
        store = InMemoryCredentialStore(make_credential())
        manager = make_manager(store, gateway)

        credential = manager.obtain_valid_token(1)

        assert credential.access_token == "access-1"
        gateway.refresh_access_token.assert_not_called()

    def test_token_inside_buffer_is_refreshed(self, gateway):
        """Test that tokens about to expire are refreshed early."""
        store = InMemoryCredentialStore(make_credential(expires_in=timedelta(seconds=30)))
        gateway.refresh_access_token.return_value = TokenGrant("access-2", 3600)
        manager = make_manager(store, gateway)

        credential = manager.obtain_valid_token(1)

        assert credential.access_token == "access-2"
        assert credential.expires_at == NOW + timedelta(hours=1)
        assert credential.refresh_token == "refresh-1"

    def test_rotated_refresh_token_is_persisted(self, gateway):
        """Test refresh token rotation."""
        store = InMemoryCredentialStore(make_credential(expires_in=-timedelta(minutes=5)))
        gateway.refresh_access_token.return_value = TokenGrant(
            "access-2", 3600, refresh_token="refresh-2"
        )
        manager = make_manager(store, gateway)

        manager.obtain_valid_token(1)

        assert store.get_credential(1).refresh_token == "refresh-2"

    def test_not_connected(self, gateway):
        """Test accounts without tokens."""
        manager = make_manager(InMemoryCredentialStore(), gateway)
        with pytest.raises(NotConnectedError):
            manager.obtain_valid_token(1)

    def test_expired_without_refresh_token_drops_tokens(self, gateway):
        """Test that a missing refresh token fails and clears tokens."""
        store = InMemoryCredentialStore(
            make_credential(expires_in=-timedelta(minutes=5), refresh_token=None)
        )
        manager = make_manager(store, gateway)

        with pytest.raises(RefreshFailedError) as exc_info:
            manager.obtain_valid_token(1)

        assert exc_info.value.reason == ConnectionReason.NO_REFRESH_TOKEN
        stored = store.get_credential(1)
        assert stored.access_token is None
        assert stored.remote_account_id == "spotify-user"

    def test_rejected_refresh_drops_tokens_but_keeps_account_id(self, gateway):
        """Test a revoked refresh token."""
        store = InMemoryCredentialStore(make_credential(expires_in=-timedelta(minutes=5)))
        gateway.refresh_access_token.side_effect = SpotifyApiError(
            FailureKind.CLIENT_ERROR, 400, "invalid_grant"
        )
        manager = make_manager(store, gateway)

        with pytest.raises(RefreshFailedError) as exc_info:
            manager.obtain_valid_token(1)

        assert not exc_info.value.retryable
        stored = store.get_credential(1)
        assert stored.access_token is None
        assert stored.refresh_token is None
        assert stored.remote_account_id == "spotify-user"

    def test_transient_refresh_failure_keeps_tokens(self, gateway):
        """Test that a network failure does not disconnect the account."""
        store = InMemoryCredentialStore(make_credential(expires_in=-timedelta(minutes=5)))
        gateway.refresh_access_token.side_effect = SpotifyApiError(
            FailureKind.RETRYABLE, reason="timeout"
        )
        manager = make_manager(store, gateway)

        with pytest.raises(RefreshFailedError) as exc_info:
            manager.obtain_valid_token(1)

        assert exc_info.value.retryable
        assert store.get_credential(1).refresh_token == "refresh-1"


class TestSingleFlight:
    """Test that concurrent refreshes collapse into one call."""

    def test_concurrent_callers_refresh_once(self, gateway):
        """Test single-flight refresh across threads."""
        store = InMemoryCredentialStore(make_credential(expires_in=-timedelta(minutes=5)))

        def slow_refresh(refresh_token):
            time.sleep(0.1)
            return TokenGrant("access-2", 3600, refresh_token="refresh-2")

        gateway.refresh_access_token.side_effect = slow_refresh
        manager = make_manager(store, gateway)

        barrier = threading.Barrier(5)
        tokens = []

        def worker():
            barrier.wait()
            tokens.append(manager.obtain_valid_token(1).access_token)

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert gateway.refresh_access_token.call_count == 1
        assert tokens == ["access-2"] * 5

    def test_force_refresh_skips_when_already_rotated(self, gateway):
        """Test that a rejected token already replaced is not refreshed again."""
        store = InMemoryCredentialStore(make_credential())
        manager = make_manager(store, gateway)

        credential = manager.force_refresh(1, rejected_token="some-older-token")

        assert credential.access_token == "access-1"
        gateway.refresh_access_token.assert_not_called()


class TestVerifyConnection:
    """Test connection verification."""

    def test_not_connected(self, gateway):
        """Test accounts that never connected."""
        manager = make_manager(InMemoryCredentialStore(), gateway)
        status = manager.verify_connection(1)

        assert not status.connected
        assert status.reason == ConnectionReason.NOT_CONNECTED

    def test_verified(self, gateway):
        """Test a valid token."""
        store = InMemoryCredentialStore(make_credential())
        gateway.get_current_user.return_value = {
            "display_name": "Tester",
            "product": "premium",
            "country": "DE",
        }
        status = make_manager(store, gateway).verify_connection(1)

        assert status.connected and status.verified
        assert status.display_name == "Tester"
        assert status.product == "premium"
        assert not status.token_refreshed

    def test_revoked_token_is_refreshed_once_and_reprobed(self, gateway):
        """Test recovery from a token revoked before its expiry."""
        store = InMemoryCredentialStore(make_credential())
        gateway.get_current_user.side_effect = [
            SpotifyApiError(FailureKind.UNAUTHORIZED, 401, "expired"),
            {"display_name": "Tester"},
        ]
        gateway.refresh_access_token.return_value = TokenGrant("access-2", 3600)

        status = make_manager(store, gateway).verify_connection(1)

        assert status.verified
        assert status.token_refreshed
        assert gateway.refresh_access_token.call_count == 1
        assert gateway.get_current_user.call_args[0][0] == "access-2"

    def test_token_invalid_after_failed_retry(self, gateway):
        """Test that a token rejected twice clears the connection."""
        store = InMemoryCredentialStore(make_credential())
        gateway.get_current_user.side_effect = SpotifyApiError(
            FailureKind.UNAUTHORIZED, 401, "revoked"
        )
        gateway.refresh_access_token.return_value = TokenGrant("access-2", 3600)

        status = make_manager(store, gateway).verify_connection(1)

        assert not status.connected
        assert status.reason == ConnectionReason.TOKEN_INVALID
        assert store.get_credential(1).access_token is None
        assert store.get_credential(1).remote_account_id == "spotify-user"

    def test_expired_refresh_failure(self, gateway):
        """Test the refresh_failed reason."""
        store = InMemoryCredentialStore(make_credential(expires_in=-timedelta(hours=1)))
        gateway.refresh_access_token.side_effect = SpotifyApiError(
            FailureKind.CLIENT_ERROR, 400, "invalid_grant"
        )

        status = make_manager(store, gateway).verify_connection(1)

        assert status.reason == ConnectionReason.REFRESH_FAILED
        gateway.get_current_user.assert_not_called()

    @pytest.mark.parametrize(
        "kind,reason,connected",
        [
            (FailureKind.FORBIDDEN, ConnectionReason.INSUFFICIENT_PERMISSIONS, True),
            (FailureKind.RETRYABLE, ConnectionReason.API_ERROR, True),
        ],
    )
    def test_other_probe_failures(self, gateway, kind, reason, connected):
        """Test failures that keep the connection."""
        store = InMemoryCredentialStore(make_credential())
        gateway.get_current_user.side_effect = SpotifyApiError(kind, 403, "nope")

        status = make_manager(store, gateway).verify_connection(1)

        assert status.connected is connected
        assert not status.verified
        assert status.reason == reason
        assert store.get_credential(1).access_token == "access-1"

    def test_disconnect(self, gateway):
        """Test administrative disconnect."""
        store = InMemoryCredentialStore(make_credential())
        manager = make_manager(store, gateway)

        manager.disconnect(1)

        assert store.get_credential(1).remote_account_id is None
        with pytest.raises(NotConnectedError):
            manager.obtain_valid_token(1)
