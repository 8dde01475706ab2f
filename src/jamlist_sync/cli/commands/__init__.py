"""CLI command modules."""

from .init import InitializationError, init_db, init_services
from .status import delete_command, status_command, verify_command
from .sync import pull_command, push_command

__all__ = [
    "InitializationError",
    "init_db",
    "init_services",
    "push_command",
    "pull_command",
    "status_command",
    "delete_command",
    "verify_command",
]
