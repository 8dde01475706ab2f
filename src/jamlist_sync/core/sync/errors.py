"""Error taxonomy for reconciliation results."""

from dataclasses import dataclass
from enum import Enum

from ..errors import JamlistSyncError


class SyncErrorKind(str, Enum):
    """Kinds of errors a reconciliation can report."""

    NOT_CONNECTED = "not_connected"
    NEEDS_RECONNECT = "needs_reconnect"
    REMOTE_NOT_FOUND = "remote_not_found"
    REMOTE_ORPHANED = "remote_orphaned"
    REMOTE_FORBIDDEN = "remote_forbidden"
    REMOTE_ERROR = "remote_error"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    UNPROCESSABLE = "unprocessable"
    PARTIAL_FAILURE = "partial_failure"
    CANCELLED = "cancelled"
    PLAYLIST_NOT_FOUND = "playlist_not_found"


@dataclass(frozen=True)
class SyncError:
    """A single error recorded during a reconciliation."""

    kind: SyncErrorKind
    message: str
    fatal: bool = False
    retryable: bool = False

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


class NeedsReconnectError(JamlistSyncError):
    """Raised when the account's Spotify connection must be re-established."""

    pass


class PlaylistNotFoundError(JamlistSyncError):
    """Raised for unknown local playlist IDs."""

    pass
