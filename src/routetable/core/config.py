"""Configuration management module for the routing engine.

This module handles loading and validating configuration from multiple sources:
- Configuration files (YAML)
- Environment variables
"""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator


class RoutesConfig(BaseModel):
    """Where rule definitions are loaded from."""

    file: str | None = Field(default=None, description="Top-level rule file or module:attribute")
    base_dir: str | None = Field(
        default=None, description="Directory relative rule sources are resolved against"
    )


class MatchingConfig(BaseModel):
    """How request attributes are read for matching."""

    hostname_header: str = Field(default="Host", description="Header holding the hostname")
    ajax_header: str = Field(
        default="X-Requested-With", description="Header whose presence flags an AJAX request"
    )
    strip_port: bool = Field(default=False, description="Drop ':port' from the hostname")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format (json or text)")
    output: str = Field(default="stderr", description="Log output (stdout, stderr or file path)")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v_upper

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format is valid."""
        v_lower = v.lower()
        if v_lower not in ("json", "text"):
            raise ValueError(f"Invalid log format: {v}. Must be json or text")
        return v_lower


class MetricsConfig(BaseModel):
    """Metrics configuration."""

    enabled: bool = Field(default=True, description="Enable metrics collection")
    namespace: str = Field(default="routetable", description="Prefix for metric names")


class RouteTableConfig(BaseModel):
    """Main configuration."""

    environment: str = Field(default="development", description="Environment name")
    routes: RoutesConfig = Field(default_factory=RoutesConfig)
    matching: MatchingConfig = Field(default_factory=MatchingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)


class ConfigLoader:
    """Loads and validates configuration from multiple sources."""

    def __init__(self, config_path: str | None = None):
        """Initialize the configuration loader.

        Args:
            config_path: Path to configuration file. If None, uses environment variable
                        ROUTETABLE_CONFIG_PATH or defaults to config/routetable.yaml
        """
        self.config_path = self._resolve_config_path(config_path)

    def _resolve_config_path(self, config_path: str | None) -> Path:
        """Resolve configuration file path."""
        if config_path:
            return Path(config_path)

        env_path = os.getenv("ROUTETABLE_CONFIG_PATH")
        if env_path:
            return Path(env_path)

        # Try environment-specific config first
        env = os.getenv("ROUTETABLE_ENV", "development")
        env_specific = Path(f"config/routetable.{env}.yaml")
        if env_specific.exists():
            return env_specific

        return Path("config/routetable.yaml")

    def load(self) -> RouteTableConfig:
        """Load and validate configuration.

        Returns:
            Validated RouteTableConfig instance

        Raises:
            ValueError: If configuration is invalid
        """
        config_dict = self._load_from_file()
        config_dict = self._override_from_env(config_dict)

        try:
            config = RouteTableConfig(**config_dict)
        except Exception as e:
            raise ValueError(f"Configuration validation failed: {e}") from e

        return config

    def _load_from_file(self) -> dict[str, Any]:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            # Defaults apply when there is no file
            return {}

        with open(self.config_path) as f:
            config_dict = yaml.safe_load(f) or {}

        # Relative rule paths are relative to the config file
        routes = config_dict.get("routes")
        if isinstance(routes, dict) and not routes.get("base_dir"):
            routes["base_dir"] = str(self.config_path.parent)

        return config_dict

    def _override_from_env(self, config_dict: dict[str, Any]) -> dict[str, Any]:
        """Override configuration with environment variables.

        Environment variables follow the pattern: ROUTETABLE_<SECTION>_<KEY>
        For example: ROUTETABLE_ROUTES_FILE=config/routes.yaml
        """
        # Routes config
        if routes_file := os.getenv("ROUTETABLE_ROUTES_FILE"):
            config_dict.setdefault("routes", {})["file"] = routes_file
        if base_dir := os.getenv("ROUTETABLE_ROUTES_BASE_DIR"):
            config_dict.setdefault("routes", {})["base_dir"] = base_dir

        # Matching config
        if ajax_header := os.getenv("ROUTETABLE_MATCHING_AJAX_HEADER"):
            config_dict.setdefault("matching", {})["ajax_header"] = ajax_header

        # Logging config
        if log_level := os.getenv("ROUTETABLE_LOG_LEVEL"):
            config_dict.setdefault("logging", {})["level"] = log_level
        if log_format := os.getenv("ROUTETABLE_LOG_FORMAT"):
            config_dict.setdefault("logging", {})["format"] = log_format

        # Metrics config
        if metrics_enabled := os.getenv("ROUTETABLE_METRICS_ENABLED"):
            config_dict.setdefault("metrics", {})["enabled"] = metrics_enabled.lower() == "true"

        # Environment
        if env := os.getenv("ROUTETABLE_ENV"):
            config_dict["environment"] = env

        return config_dict


def load_config(config_path: str | None = None) -> RouteTableConfig:
    """Load configuration (convenience function).

    Args:
        config_path: Optional path to configuration file

    Returns:
        Validated RouteTableConfig instance
    """
    loader = ConfigLoader(config_path)
    return loader.load()
