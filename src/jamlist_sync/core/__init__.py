"""Core business logic for playlist synchronization.

This package contains the sync engine organized by concern:
- spotify: token lifecycle and Spotify Web API gateway
- images: cover image normalization
- sync: diff engine and reconciliation orchestrator
"""

from .errors import JamlistSyncError

__all__ = ["JamlistSyncError"]
