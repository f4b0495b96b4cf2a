"""Configuration management for datacache."""

import os
from typing import Optional

import toml
import yaml
from pydantic import BaseModel, Field, field_validator

from .errors import ConfigurationError
from .frequencies import get_frequency
from .inventory import AGE_UNITS


class CacheConfig(BaseModel):
    """Configuration for the cache location and refresh policy."""

    dir: str = Field(default="cache", description="Directory containing the cached data files")
    name: str = Field(default="Cache", min_length=1, description="Name of the cache")
    frequency: str = Field(
        default="daily",
        description="Staleness policy: always, hourly, daily, weekly, monthly, yearly, "
        "or an interval such as 30m, 6h, 2d",
    )
    wait: bool = Field(
        default=False,
        description="Wait for stale data to be refreshed instead of refreshing in the background",
    )
    background: bool = Field(
        default=True,
        description="Allow background refreshes where the platform supports them",
    )

    @field_validator("dir")
    @classmethod
    def expand_path(cls, v):
        """Expand user paths and environment variables."""
        return os.path.expanduser(os.path.expandvars(v))

    @field_validator("name")
    @classmethod
    def check_name(cls, v):
        """Cache names become file name prefixes."""
        if not v.strip() or os.sep in v or "/" in v:
            raise ValueError("cache name must be a non-empty file name prefix")
        return v

    @field_validator("frequency")
    @classmethod
    def check_frequency(cls, v):
        """Make sure the frequency resolves to a policy."""
        try:
            get_frequency(v)
        except ConfigurationError as e:
            raise ValueError(str(e))
        return v


class OutputConfig(BaseModel):
    """Configuration for console output."""

    quiet: bool = Field(default=False, description="Suppress informational messages")
    age_units: str = Field(default="mins", description="Units used to report snapshot ages")

    @field_validator("age_units")
    @classmethod
    def check_units(cls, v):
        if v not in AGE_UNITS:
            raise ValueError(f"age_units must be one of {', '.join(AGE_UNITS)}")
        return v


class Config(BaseModel):
    """Main configuration class."""

    cache: CacheConfig = Field(default_factory=CacheConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)


class ConfigManager:
    """Manages configuration loading and access."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file. If None, searches standard locations.
        """
        self.config_path = config_path or self._find_config_file()
        self._config: Optional[Config] = None

    def _find_config_file(self) -> str:
        """Find configuration file in standard locations."""
        search_paths = [
            "datacache.toml",
            os.path.expanduser("~/.config/datacache/config.toml"),
            "datacache.yaml",
            os.path.expanduser("~/.config/datacache/config.yaml"),
        ]

        for path in search_paths:
            if os.path.exists(path):
                return path

        # Return default path even if it doesn't exist
        return search_paths[0]

    @property
    def config(self) -> Config:
        """Get configuration, loading if necessary."""
        if self._config is None:
            self._config = self._load_config()
        return self._config

    def _load_config(self) -> Config:
        """Load configuration from a TOML or YAML file."""
        if not os.path.exists(self.config_path):
            return Config()

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                if self.config_path.endswith((".yaml", ".yml")):
                    config_data = yaml.safe_load(f) or {}
                else:
                    config_data = toml.load(f)
            return Config(**config_data)
        except (toml.TomlDecodeError, yaml.YAMLError, ValueError, TypeError) as e:
            raise ConfigurationError(f"Invalid configuration file {self.config_path}: {e}")

    def reload(self):
        """Reload configuration."""
        self._config = None


# Global configuration manager instance
config_manager = ConfigManager()
