"""Configuration Manager for the Heading Cache.

This module loads the store backend, origin hosts and heading set from
environment variables or a JSON file and validates them before use.

Security Impact:
    - Configuration is validated before use (fail fast)
    - Database paths are checked before any connection is opened
    - Values are never echoed into error messages beyond the offending key

Architecture:
    - Follows Hexagonal Architecture: Infrastructure layer isolated from domain
    - Type-safe configuration using Pydantic models
    - Fail-fast validation prevents runtime errors
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from headingcache.domain.models import HeadingDefinition

logger = logging.getLogger(__name__)

DEFAULT_HOST = "ethercis"

DEFAULT_HEADINGS = (
    "allergies",
    "contacts",
    "counts",
    "problems",
    "medications",
    "procedures",
    "vaccinations",
    "referrals",
    "laborders",
    "labresults",
    "personalnotes",
    "clinicalnotes",
    "mdtreports",
    "events",
    "top3Things",
)


class DatabaseConfig(BaseModel):
    """Document store backend configuration.

    Parameters:
        db_type: Store backend ('memory' or 'duckdb')
        db_path: Path to database file (DuckDB only; ':memory:' allowed)
    """

    db_type: str = Field(default="memory", description="Store backend (memory, duckdb)")
    db_path: Optional[str] = Field(None, description="Path to database file (for DuckDB)")

    @field_validator("db_type")
    @classmethod
    def validate_db_type(cls, v: str) -> str:
        """Validate store backend type."""
        supported_types = ["memory", "duckdb"]
        if v.lower() not in supported_types:
            raise ValueError(f"Unsupported database type: {v}. Supported: {supported_types}")
        return v.lower()

    @field_validator("db_path")
    @classmethod
    def validate_db_path(cls, v: Optional[str]) -> Optional[str]:
        """Validate database directory exists (if a path is provided)."""
        if v is None or v == ":memory:":
            return v

        db_path_obj = Path(v)
        if not db_path_obj.parent.exists():
            raise ValueError(f"Database directory does not exist: {db_path_obj.parent}")

        return str(db_path_obj)


class HeadingsConfig(BaseModel):
    """The configured heading set, with per-heading serving hints."""

    headings: Dict[str, HeadingDefinition] = Field(
        default_factory=lambda: {name: HeadingDefinition() for name in DEFAULT_HEADINGS}
    )

    def names(self) -> list[str]:
        return list(self.headings.keys())

    def get(self, heading: str) -> Optional[HeadingDefinition]:
        return self.headings.get(heading)

    def __contains__(self, heading: object) -> bool:
        return heading in self.headings


class AppConfig(BaseModel):
    """Origin hosts, logging and audit settings."""

    default_host: str = Field(default=DEFAULT_HOST, min_length=1)
    hosts: list[str] = Field(default_factory=lambda: [DEFAULT_HOST])
    log_level: str = Field(default="INFO")
    log_json: bool = Field(default=False)
    audit_max_events: int = Field(default=10000, ge=0, description="Audit buffer capacity; 0 disables buffering")

    @field_validator("hosts")
    @classmethod
    def validate_hosts(cls, v: list[str]) -> list[str]:
        hosts = [h.strip() for h in v if h and h.strip()]
        if not hosts:
            raise ValueError("At least one origin host must be configured")
        return hosts

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unsupported log level: {v}")
        return level


def _split_list(raw: Optional[str]) -> Optional[list[str]]:
    if raw is None:
        return None
    items = [item.strip() for item in raw.split(",") if item.strip()]
    return items or None


def _parse_bool(raw: Optional[str]) -> Optional[bool]:
    if raw is None:
        return None
    return raw.strip().lower() in ("1", "true", "yes", "on")


class ConfigManager:
    """Configuration manager for the store, the hosts and the heading set.

    Example Usage:
        ```python
        # Load from environment variables
        config = ConfigManager.from_environment()
        db_config = config.get_database_config()

        # Load from file
        config = ConfigManager.from_file("headingcache.json")
        headings = config.get_headings_config()
        ```
    """

    def __init__(self, config_data: Dict[str, Any]):
        """Initialize configuration manager.

        Parameters:
            config_data: Configuration dictionary with optional `database`,
                `app` and `headings` sections
        """
        self._config_data = config_data
        self._database_config: Optional[DatabaseConfig] = None
        self._app_config: Optional[AppConfig] = None
        self._headings_config: Optional[HeadingsConfig] = None

    @classmethod
    def from_environment(cls) -> 'ConfigManager':
        """Load configuration from environment variables.

        Environment Variables:
            - HC_DB_TYPE: Store backend (memory, duckdb)
            - HC_DB_PATH: Path to database file (for DuckDB)
            - HC_DEFAULT_HOST: Host used by discovery merges (default ethercis)
            - HC_HOSTS: Comma separated origin hosts for the session read path
            - HC_HEADINGS: Comma separated heading set
            - HC_LOG_LEVEL: Logging level
            - HC_LOG_JSON: Emit JSON log lines (true/false)
            - HC_AUDIT_MAX_EVENTS: Reconciliation audit buffer capacity

        A .env file in the working directory is loaded first if present.

        Returns:
            ConfigManager instance
        """
        env_path = Path.cwd() / ".env"
        if env_path.exists():
            load_dotenv(env_path)
            logger.debug(f"Loaded environment variables from {env_path}")

        app: Dict[str, Any] = {}
        default_host = os.getenv("HC_DEFAULT_HOST")
        if default_host:
            app["default_host"] = default_host
        hosts = _split_list(os.getenv("HC_HOSTS"))
        if hosts:
            app["hosts"] = hosts
        elif default_host:
            app["hosts"] = [default_host]
        if os.getenv("HC_LOG_LEVEL"):
            app["log_level"] = os.getenv("HC_LOG_LEVEL")
        log_json = _parse_bool(os.getenv("HC_LOG_JSON"))
        if log_json is not None:
            app["log_json"] = log_json
        if os.getenv("HC_AUDIT_MAX_EVENTS"):
            app["audit_max_events"] = os.getenv("HC_AUDIT_MAX_EVENTS")

        config_data: Dict[str, Any] = {
            "database": {
                "db_type": os.getenv("HC_DB_TYPE", "memory"),
                "db_path": os.getenv("HC_DB_PATH"),
            },
            "app": app,
        }

        headings = _split_list(os.getenv("HC_HEADINGS"))
        if headings:
            config_data["headings"] = {name: {} for name in headings}

        return cls(config_data)

    @classmethod
    def from_file(cls, config_path: str) -> 'ConfigManager':
        """Load configuration from a JSON file.

        The `headings` section may be a list of names or a mapping of name
        to `{summaryFields, synopsisField}`.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file: {str(e)}")

        if not isinstance(config_data, dict):
            raise ValueError("Configuration file must contain a JSON object")

        return cls(config_data)

    def get_database_config(self) -> DatabaseConfig:
        """Get the validated store backend configuration."""
        if self._database_config is None:
            db_config_data = self._config_data.get("database") or {}
            db_config_data = {k: v for k, v in db_config_data.items() if v is not None}
            self._database_config = DatabaseConfig(**db_config_data)
        return self._database_config

    def get_app_config(self) -> AppConfig:
        """Get hosts and logging settings."""
        if self._app_config is None:
            self._app_config = AppConfig(**(self._config_data.get("app") or {}))
        return self._app_config

    def get_headings_config(self) -> HeadingsConfig:
        """Get the heading set. Defaults to the standard clinical headings."""
        if self._headings_config is None:
            raw = self._config_data.get("headings")
            if raw is None:
                self._headings_config = HeadingsConfig()
            elif isinstance(raw, list):
                self._headings_config = HeadingsConfig(
                    headings={name: HeadingDefinition() for name in raw}
                )
            elif isinstance(raw, dict):
                self._headings_config = HeadingsConfig(
                    headings={
                        name: HeadingDefinition(**(definition or {}))
                        for name, definition in raw.items()
                    }
                )
            else:
                raise ValueError("headings must be a list or an object")
        return self._headings_config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation, e.g. "app.hosts")."""
        keys = key.split(".")
        value = self._config_data

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default

        return value if value is not None else default


# ============================================================================
# Convenience Functions
# ============================================================================

def get_database_config() -> DatabaseConfig:
    """Convenience function to get store configuration from environment.

    Defaults to the in-memory store if no config is provided.
    """
    config_manager = ConfigManager.from_environment()
    return config_manager.get_database_config()
