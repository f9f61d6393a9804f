import logging
from typing import List
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, field_validator
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# Environment variable prefix
ENV_PREFIX = "DEPICTION_"

# Default polling interval: 5 minutes, in milliseconds
DEFAULT_POLL_INTERVAL = 5 * 60 * 1000


class PlatformSettings(BaseSettings):
    """Configuration settings loaded from environment variables and the .env file."""

    # Logging Settings
    log_level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    log_format: str = Field(default='%(asctime)s - %(name)s - %(levelname)s - %(message)s', description="Logging format string")
    log_to_file: bool = Field(default=False, description="Enable logging to file with rotation")
    log_file_path: str = Field(default="logs/depiction.log", description="Path to the log file (directory will be created)")
    log_max_bytes: int = Field(default=500_000, description="Maximum size of a log file before rotation")
    log_max_files: int = Field(default=10, description="Maximum number of log files to keep")

    # Platform Settings
    poll_interval: int = Field(default=DEFAULT_POLL_INTERVAL, description="Default client polling interval in milliseconds")
    depict_id_prefix: str = Field(default="id", description="Prefix of depict ID strings sent to the client")
    quirks_user_agent_patterns: List[str] = Field(
        default_factory=lambda: [r"MSIE [1-6]\."],
        description="Regular expressions; a matching client user agent is depicted in quirks mode"
    )

    # Server Settings
    host: str = Field(default="0.0.0.0", description="Address the Socket.IO server binds to")
    port: int = Field(default=8080, description="Port the Socket.IO server listens on")
    cors_allowed_origins: str = Field(default="*", description="Allowed CORS origins for the Socket.IO server")

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file='.env',        # Load from .env file
        env_file_encoding='utf-8',
        env_prefix=ENV_PREFIX,
        extra='ignore',         # Ignore extra fields found in env
        case_sensitive=False
    )

    @field_validator("poll_interval")
    @classmethod
    def _check_poll_interval(cls, value: int) -> int:
        if value < 0:
            raise ValueError("poll_interval cannot be negative")
        return value

    @field_validator("depict_id_prefix")
    @classmethod
    def _check_prefix(cls, value: str) -> str:
        if not value:
            raise ValueError("depict_id_prefix cannot be empty")
        return value


# Helper function to load settings
def load_settings() -> PlatformSettings:
    logger.info(f"Loading configuration from .env file and environment variables (prefix: '{ENV_PREFIX}')...")
    env_loaded = load_dotenv('.env', override=False)
    logger.debug(f".env file loaded: {env_loaded}")
    try:
        settings = PlatformSettings()
        logger.info("Configuration loaded successfully.")
        logger.debug(f"Poll interval: {settings.poll_interval} ms, depict ID prefix: '{settings.depict_id_prefix}'")
        return settings
    except Exception as e:
        logger.exception(f"Critical error loading configuration: {e}")
        raise ValueError(f"Failed to load configuration: {e}") from e
