"""TagAll configuration management."""

from pydantic_settings import BaseSettings
from pydantic import Field


class TagallSettings(BaseSettings):
    """Settings loaded from environment variables or .env file."""

    # Tag registry (JSON)
    data_file: str = Field(default="~/.tagall/bot_data.json", description="Tag registry file")

    # wacli bridge
    wacli_path: str = Field(default="wacli", description="wacli binary (name on PATH or full path)")
    wacli_store_dir: str = Field(default="~/.wacli", description="wacli store directory (wacli.db)")
    poll_interval: float = Field(default=2.0, description="Seconds between inbound message polls")

    # Roster / send calls; 0 disables the bound
    collaborator_timeout: float = Field(default=30.0, description="Timeout for WhatsApp calls (seconds)")

    # Logging
    log_file: str = Field(default="~/tagall.log", description="Log file path")
    debug: bool = Field(default=False, description="Debug logging")

    model_config = {"env_prefix": "TAGALL_", "env_file": ".env", "extra": "ignore"}


def load_settings() -> TagallSettings:
    """Load settings from environment."""
    settings = TagallSettings()

    import logging
    import os
    logger = logging.getLogger("tagall.config")
    data_dir = os.path.dirname(os.path.expanduser(settings.data_file))
    if data_dir:
        try:
            os.makedirs(data_dir, exist_ok=True)
        except OSError as e:
            logger.warning(f"Cannot create data directory {data_dir}: {e}. Tag changes will not be saved.")

    return settings
