"""Application Settings.

This module combines configuration from the configuration manager with
application defaults into a single lazily-loaded settings object.
"""

from typing import Optional

from headingcache.infrastructure.config_manager import (
    AppConfig,
    ConfigManager,
    DatabaseConfig,
    HeadingsConfig,
)

# Application metadata
APP_NAME = "Heading-Cache"
APP_VERSION = "1.0.0"


class Settings:
    """Application settings loaded from a configuration manager.

    Each section is resolved on first access so that importing this module
    never touches the environment.
    """

    def __init__(self, config_manager: Optional[ConfigManager] = None):
        self._config_manager = config_manager
        self._db_config: Optional[DatabaseConfig] = None
        self._app_config: Optional[AppConfig] = None
        self._headings_config: Optional[HeadingsConfig] = None
        self.app_name = APP_NAME
        self.app_version = APP_VERSION

    @property
    def config_manager(self) -> ConfigManager:
        if self._config_manager is None:
            self._config_manager = ConfigManager.from_environment()
        return self._config_manager

    @property
    def db_config(self) -> DatabaseConfig:
        if self._db_config is None:
            self._db_config = self.config_manager.get_database_config()
        return self._db_config

    @property
    def app_config(self) -> AppConfig:
        if self._app_config is None:
            self._app_config = self.config_manager.get_app_config()
        return self._app_config

    @property
    def headings(self) -> HeadingsConfig:
        if self._headings_config is None:
            self._headings_config = self.config_manager.get_headings_config()
        return self._headings_config

    @property
    def default_host(self) -> str:
        return self.app_config.default_host

    @property
    def hosts(self) -> list[str]:
        return self.app_config.hosts

    @property
    def log_level(self) -> str:
        return self.app_config.log_level

    def get_db_path(self) -> str:
        """Get database path for DuckDB.

        Returns:
            Database path or ':memory:' for in-memory database
        """
        if self.db_config.db_type == "duckdb":
            return self.db_config.db_path or ":memory:"
        raise ValueError(f"Database type '{self.db_config.db_type}' does not use db_path")


# Global settings instance
settings = Settings()
