"""Service construction for the command-line interface.

This module provides simple initialization functions that return service instances:
- init_db() -> DatabaseService
- init_services() -> (DatabaseService, TokenManager, SyncOrchestrator)
"""

import logging
from typing import Optional, Tuple

from ...config import Config
from ...core.images import ImageNormalizer
from ...core.spotify import SpotifyGateway, TokenManager
from ...core.sync import SyncOrchestrator
from ...database import DatabaseService

logger = logging.getLogger(__name__)


class InitializationError(Exception):
    """Raised when initialization fails."""

    pass


def init_db(config: Optional[Config] = None) -> DatabaseService:
    """Initialize or get DatabaseService instance.

    Args:
        config: Application configuration (creates new if not provided)

    Returns:
        DatabaseService instance

    Raises:
        InitializationError: If database cannot be initialized
    """
    if config is None:
        config = Config()

    try:
        db_service = DatabaseService(db_path=config.database_path)

        if not db_service.is_initialized():
            logger.info("Initializing database schema...")
            db_service.init_db()

        stats = db_service.get_statistics()
        logger.debug(
            "Database connected: %s playlists, %s tracks",
            stats["playlists"],
            stats["tracks"],
        )
        return db_service

    except Exception as e:
        logger.exception("Database initialization failed")
        raise InitializationError(f"Database initialization failed: {e}") from e


def init_services(
    config: Optional[Config] = None,
) -> Tuple[DatabaseService, TokenManager, SyncOrchestrator]:
    """Wire up the database, token manager and orchestrator.

    Raises:
        InitializationError: If the database cannot be opened
    """
    if config is None:
        config = Config()

    if not config.has_client_credentials:
        logger.warning(
            "SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET not set, token refresh will fail"
        )

    db_service = init_db(config)
    gateway = SpotifyGateway(config)
    token_manager = TokenManager(
        db_service, gateway, expiry_buffer=config.token_expiry_buffer
    )
    normalizer = ImageNormalizer(
        size=config.image_size,
        max_bytes=config.image_max_bytes,
        timeout=config.http_timeout,
    )
    orchestrator = SyncOrchestrator(
        db_service,
        token_manager,
        gateway,
        normalizer,
        default_description=config.default_description,
    )
    return db_service, token_manager, orchestrator
