"""
tapedeck configuration

Environment-based settings. Every field can be overridden with a
``TAPEDECK_``-prefixed variable (``TAPEDECK_DEBUG=1``,
``TAPEDECK_CHECKPOINT_INTERVAL=50``) or a ``.env`` file in the working
directory.
"""
import logging
from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Runs the O(n) sortedness check after every track mutation.
    debug: bool = False
    log_level: str = "INFO"

    # History
    checkpoint_interval: int = 0  # write <N>.snapshot every N versions; 0 = never
    coalesce_window_ms: int = 0  # merge repeated identical commands; 0 = off

    # Projects
    project_suffix: str = "tapedeck"

    model_config = SettingsConfigDict(
        env_prefix="TAPEDECK_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    @model_validator(mode="after")
    def _check_intervals(self) -> "Settings":
        """Clamp negative intervals to "disabled"."""
        if self.checkpoint_interval < 0:
            logging.getLogger(__name__).warning(
                "TAPEDECK_CHECKPOINT_INTERVAL=%d is negative, checkpoints disabled.",
                self.checkpoint_interval,
            )
            self.checkpoint_interval = 0
        if self.coalesce_window_ms < 0:
            self.coalesce_window_ms = 0
        return self


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience access
settings = get_settings()
