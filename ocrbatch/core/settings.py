"""
Centralized client settings using Pydantic.

All environment variables are read once at startup and validated.
Use this instead of scattered os.getenv() calls throughout the codebase.
"""

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings


class BackendSettings(BaseSettings):
    """OCR-to-PDF backend connection configuration."""

    OCR_BATCH_API_URL: str = "http://localhost:5000/api"
    OCR_BATCH_HTTP_TIMEOUT: float = 120.0
    OCR_BATCH_VERIFY_SSL: bool = True

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}

    @field_validator("OCR_BATCH_API_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class EngineSettings(BaseSettings):
    """Reconciliation engine configuration."""

    OCR_BATCH_POLL_INTERVAL_SECONDS: float = 2.0
    OCR_BATCH_DEFAULT_BATCH_SIZE: int = 5
    OCR_BATCH_STATE_DIR: str = "~/.ocrbatch"

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}

    @property
    def state_dir(self) -> Path:
        """Resolve the directory holding the persisted UI state."""
        return Path(self.OCR_BATCH_STATE_DIR).expanduser().resolve()


class AppSettings(BaseSettings):
    """General application settings."""

    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    model_config = {"case_sensitive": True, "env_file": ".env", "extra": "ignore"}


# Singleton instances - loaded once at module import
backend_settings = BackendSettings()
engine_settings = EngineSettings()
app_settings = AppSettings()
