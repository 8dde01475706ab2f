"""Base exception shared by all sync engine components."""


class JamlistSyncError(Exception):
    """Base exception for playlist sync errors."""

    pass
