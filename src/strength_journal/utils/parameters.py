"""
Configuration and parameter loading using Pydantic.

This module provides centralized configuration management for the entire application.
All parameters are loaded from YAML and validated using Pydantic models.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from strength_journal.utils.exceptions import ConfigurationError

DRIVE_APPDATA_SCOPE = "https://www.googleapis.com/auth/drive.appdata"


class StoreConfig(BaseModel):
    """Local store configuration."""

    path: str = "data/strength_journal.db"


class SyncConfig(BaseModel):
    """Merge and sync cycle configuration."""

    settings_policy: str = Field(
        "skip_if_present", pattern="^(skip_if_present|last_write_wins)$"
    )
    record_ties: bool = True
    tombstone_retention_days: int = Field(30, ge=0)
    timeout_seconds: float | None = Field(None, gt=0)


class FileProviderConfig(BaseModel):
    """File export/import configuration."""

    export_dir: str = "exports"
    file_prefix: str = "strength-journal"


class DriveConfig(BaseModel):
    """Google Drive app-data folder configuration."""

    credentials_path: str = "config/credentials.json"
    token_path: str = "config/token.json"
    scopes: list[str] = Field(default_factory=lambda: [DRIVE_APPDATA_SCOPE])
    snapshot_name: str = "strength-journal-snapshot.json"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: str | None = None
    console: bool = True


class AppConfig(BaseSettings):
    """Main application configuration."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    file: FileProviderConfig = Field(default_factory=FileProviderConfig)
    drive: DriveConfig = Field(default_factory=DriveConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(env_prefix="SJ_", case_sensitive=False)


class ParameterLoader:
    """
    Centralized parameter loader for the application.

    Loads and validates configuration from YAML files using Pydantic models.
    Provides type-safe access to all configuration parameters.
    """

    def __init__(self, config_path: str = "config/config.yaml") -> None:
        """
        Initialize parameter loader.

        Args:
            config_path: Path to the YAML configuration file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        self.config_path = Path(config_path)
        self.config: AppConfig
        self._load_config()

    def _load_config(self) -> None:
        """
        Load configuration from YAML file.

        Raises:
            ConfigurationError: If configuration file cannot be loaded or is invalid.
        """
        if not self.config_path.exists():
            raise ConfigurationError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, encoding="utf-8") as f:
                config_dict = yaml.safe_load(f) or {}

            self.config = AppConfig(**config_dict)

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Failed to parse YAML configuration: {e}") from e
        except Exception as e:
            raise ConfigurationError(f"Failed to load configuration: {e}") from e

    def get_store_config(self) -> StoreConfig:
        """Get local store configuration."""
        return self.config.store

    def get_sync_config(self) -> SyncConfig:
        """Get merge and sync cycle configuration."""
        return self.config.sync

    def get_file_config(self) -> FileProviderConfig:
        """Get file provider configuration."""
        return self.config.file

    def get_drive_config(self) -> DriveConfig:
        """Get Google Drive configuration."""
        return self.config.drive

    def get_logging_config(self) -> LoggingConfig:
        """Get logging configuration."""
        return self.config.logging

    def get_raw_config(self) -> dict[str, Any]:
        """
        Get raw configuration dictionary.

        Returns:
            Dictionary representation of the configuration.
        """
        return self.config.model_dump()
