"""Configuration management for askuser."""

from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="ASKUSER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Workspace Configuration
    temp_root: Optional[Path] = Field(None, description="Parent directory for session workspaces")

    # Front-end Configuration
    interpreter: Optional[str] = Field(None, description="Python interpreter used to run the prompt script")
    terminal: Optional[str] = Field(None, description="Preferred launcher name, tried before the others")
    close_delay_seconds: int = Field(default=3, ge=0, description="Seconds the prompt window stays open after saving")

    # Logging Configuration
    log_level: str = Field(default="INFO", description="Log level")


def get_settings() -> Settings:
    """Get application settings.

    Returns:
        Settings instance loaded from the environment and an optional .env file
    """
    return Settings()
