from pathlib import Path
from typing import Optional
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv
import logging
import sys

# -------------------------------------------------------------------
# Load an optional .env file from the working directory
# -------------------------------------------------------------------

ENV_PATH = Path.cwd() / ".env"

if ENV_PATH.exists():
    load_dotenv(dotenv_path=ENV_PATH)


# -------------------------------------------------------------------
# Settings Schema
# -------------------------------------------------------------------

class Settings(BaseSettings):
    # ---------------------------------------------------------------
    # Core Metadata
    # ---------------------------------------------------------------

    project_name: str = Field(default="TreeForge")
    environment: str = Field(default="development")

    # ---------------------------------------------------------------
    # Scaffolding Target
    # ---------------------------------------------------------------

    base_path: Path = Field(default_factory=Path.cwd)
    layout_name: str = Field(default="react_dashboard")
    layout_path: Optional[Path] = Field(default=None)

    # ---------------------------------------------------------------
    # Logging
    # ---------------------------------------------------------------

    log_level: str = Field(default="INFO")
    log_format: str = Field(default="plain")
    log_file: Optional[Path] = Field(default=None)

    # ---------------------------------------------------------------
    # Runtime Metadata
    # ---------------------------------------------------------------

    python_version: str = Field(default_factory=lambda: sys.version)

    # ---------------------------------------------------------------
    # Validation
    # ---------------------------------------------------------------

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"environment must be one of {allowed}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        level = str(v).upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"unknown log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        allowed = {"plain", "json"}
        if v not in allowed:
            raise ValueError(f"log_format must be one of {allowed}")
        return v

    model_config = SettingsConfigDict(
        env_prefix="TREEFORGE_",
        case_sensitive=False,
        extra="ignore"
    )


# -------------------------------------------------------------------
# Singleton Instance
# -------------------------------------------------------------------

settings = Settings()


def get_settings() -> Settings:
    """Get the settings singleton instance."""
    return settings
