"""Core application configuration and settings.

Handles environment variables, the record snapshot location and the
defaults used when a report request leaves a selector out.
"""
import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings


# Load environment variables
ROOT = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=ROOT / ".env", override=False)
load_dotenv(override=False)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Record snapshot (CSV directory read by the data-access layer)
    data_dir: str = Field(
        default_factory=lambda: (
            os.getenv("DATA_DIR")
            or os.getenv("SNAPSHOT_DIR")
            or str(ROOT / "sample_data")
        ),
        alias="DATA_DIR"
    )

    # Report defaults
    default_range_key: str = Field(default="month", alias="DEFAULT_RANGE_KEY")

    # Application Settings
    environment: str = Field(default="development", alias="ENVIRONMENT")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_json: Optional[bool] = Field(default=None, alias="LOG_JSON")

    # API Settings
    api_prefix: str = Field(default="/api/v1", alias="API_PREFIX")
    cors_origins: list[str] = Field(
        default_factory=lambda: [
            "http://localhost:3000",
            "http://127.0.0.1:3000"
        ],
        alias="CORS_ORIGINS"
    )

    class Config:
        case_sensitive = False
        env_file = ".env"
        populate_by_name = True
        extra = "ignore"

    @property
    def use_json_logs(self) -> bool:
        """JSON logs in production unless LOG_JSON says otherwise."""
        if self.log_json is not None:
            return self.log_json
        return self.environment == "production"

    def validate_required_settings(self):
        """Validate that required settings are present."""
        if not self.data_dir:
            raise ValueError(
                "DATA_DIR not set. Define DATA_DIR in .env pointing at the "
                "record snapshot directory."
            )
        if self.environment == "production" and not Path(self.data_dir).is_dir():
            raise ValueError(
                f"DATA_DIR '{self.data_dir}' does not exist or is not a directory."
            )


# Global settings instance
settings = Settings()


# Validate settings on module import (only in non-test environments)
if settings.environment != "test":
    try:
        settings.validate_required_settings()
    except ValueError as e:
        print(f"Configuration Error: {e}")
        # Don't raise in development to allow partial setup
        if settings.environment == "production":
            raise
