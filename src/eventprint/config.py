"""Configuration management for eventprint."""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from eventprint.models.printer import PrinterConfig

logger = logging.getLogger(__name__)


class AppConfig(BaseModel):
    """Application configuration loaded from config.yaml."""

    # Admin panel serving event photos
    admin_panel_url: str = "http://localhost:5000"
    admin_api_key: str = ""
    request_timeout_seconds: float = 30.0
    printer: PrinterConfig = Field(default_factory=PrinterConfig)
    temp_dir: Path = Path("./temp")
    # Image printed by the self-test; a built-in placeholder is used if missing
    sample_image: Path | None = None
    # Skip the OS print command entirely (for running without a printer)
    simulate: bool = False
    poll_interval_ms: int = Field(default=5000, gt=0)
    auto_start_polling: bool = False
    event_id: str | None = None


class Settings(BaseSettings):
    """Environment-based settings."""

    model_config = SettingsConfigDict(
        env_prefix="EVENTPRINT_",
        env_file=".env",
        extra="ignore",
    )

    config_file: Path = Path("config.yaml")
    host: str = "0.0.0.0"
    port: int = 3001
    debug: bool = False


def load_config(config_path: Path) -> AppConfig:
    """Load application configuration from YAML file."""
    if not config_path.exists():
        logger.info(f"No config file at {config_path}, using defaults")
        return AppConfig()

    with open(config_path) as f:
        data = yaml.safe_load(f) or {}

    # YAML returns None for empty keys
    if data.get("printer") is None:
        data.pop("printer", None)

    return AppConfig.model_validate(data)


def resolve_path(path: Path, config_path: Path) -> Path:
    """Resolve a configured path relative to the config file's directory."""
    if path.is_absolute():
        return path
    return config_path.parent / path


# Global settings instance
settings = Settings()
