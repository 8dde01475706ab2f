"""Configuration management for the playlist sync engine."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file from config directory or project root
config_env = Path(__file__).parent.parent.parent / "config" / ".env"
if config_env.exists():
    load_dotenv(config_env)
else:
    # Fallback to project root .env
    load_dotenv()

# Description of playlists that have none of their own
DEFAULT_DESCRIPTION = "Synced from JAMLIST.FM"


class Config:
    """Application configuration."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Spotify application credentials
        self.spotify_client_id = os.getenv("SPOTIFY_CLIENT_ID", "")
        self.spotify_client_secret = os.getenv("SPOTIFY_CLIENT_SECRET", "")

        # Spotify endpoints
        self.api_base_url = os.getenv(
            "JAMLIST_SYNC_API_BASE_URL", "https://api.spotify.com/v1"
        ).rstrip("/")
        self.token_url = os.getenv(
            "JAMLIST_SYNC_TOKEN_URL", "https://accounts.spotify.com/api/token"
        )

        # Network settings
        self.http_timeout = float(os.getenv("JAMLIST_SYNC_HTTP_TIMEOUT", "30"))

        # Refresh tokens this many seconds before their recorded expiry
        self.token_expiry_buffer = int(
            os.getenv("JAMLIST_SYNC_TOKEN_EXPIRY_BUFFER", "60")
        )

        # Cover image settings (Spotify accepts square JPEGs up to 256KB)
        self.image_size = int(os.getenv("JAMLIST_SYNC_IMAGE_SIZE", "640"))
        self.image_max_bytes = int(
            os.getenv("JAMLIST_SYNC_IMAGE_MAX_BYTES", str(256 * 1024))
        )

        # Description sent for playlists without one
        self.default_description = os.getenv(
            "JAMLIST_SYNC_DEFAULT_DESCRIPTION", DEFAULT_DESCRIPTION
        )

        # Database settings
        default_db_path = str(Path.home() / ".jamlist-sync" / "sync.db")
        self.database_path = Path(
            os.getenv("JAMLIST_SYNC_DATABASE_PATH", default_db_path)
        )

        # Ensure directories exist
        self._ensure_directories()

    def _ensure_directories(self) -> None:
        """Ensure required directories exist."""
        self.database_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def has_client_credentials(self) -> bool:
        """Whether Spotify client credentials are configured."""
        return bool(self.spotify_client_id and self.spotify_client_secret)


def get_config() -> Config:
    """Get application configuration."""
    return Config()
