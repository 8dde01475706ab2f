"""Spotify integration: Web API gateway and token lifecycle."""

from .gateway import (
    FailureKind,
    ImageUploadResult,
    PagedResult,
    SpotifyApiError,
    SpotifyGateway,
    TokenGrant,
    classify_status,
)
from .token_manager import (
    ConnectionReason,
    ConnectionStatus,
    NotConnectedError,
    RefreshFailedError,
    TokenManager,
)

__all__ = [
    # Gateway
    "FailureKind",
    "ImageUploadResult",
    "PagedResult",
    "SpotifyApiError",
    "SpotifyGateway",
    "TokenGrant",
    "classify_status",
    # Token lifecycle
    "ConnectionReason",
    "ConnectionStatus",
    "NotConnectedError",
    "RefreshFailedError",
    "TokenManager",
]
