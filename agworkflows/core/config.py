# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Antigravity Workflows Configuration System

Centralized configuration management supporting:
- Environment variables (AGW_*)
- Config files (~/.agw/config.yaml, ./.agw.yaml, --config)
- Programmatic defaults
- Pydantic validation
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from agworkflows.core.exceptions import ConfigError

logger = logging.getLogger("agw.config")

DEFAULT_BASE_URL = (
    "https://raw.githubusercontent.com/harikrishna8121999/antigravity-workflows/main"
)
DEFAULT_REGISTRY_PATH = "workflows/registry.json"


# ============================================================================
# Configuration Models
# ============================================================================


class RegistryConfig(BaseModel):
    """Remote registry location"""

    base_url: str = Field(
        default=DEFAULT_BASE_URL,
        description="Base URL that holds registry.json and workflow files",
    )
    registry_path: str = Field(
        default=DEFAULT_REGISTRY_PATH,
        description="Path of the registry index below base_url",
    )

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v):
        """Normalize base URL so paths can be appended with '/'"""
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("base_url must not be empty")
        return v

    @field_validator("registry_path")
    @classmethod
    def strip_leading_slash(cls, v):
        return v.strip().lstrip("/")


class InstallConfig(BaseModel):
    """Local install configuration"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    target_dir: Path = Field(
        default=Path(".agent") / "workflows",
        description="Install directory, relative paths resolve against cwd",
    )
    max_concurrency: int = Field(
        default=1, description="Parallel downloads (1 = sequential)", ge=1
    )

    @field_validator("target_dir", mode="before")
    @classmethod
    def ensure_path(cls, v):
        """Convert strings to Path objects"""
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class HttpConfig(BaseModel):
    """HTTP client configuration"""

    timeout: Optional[float] = Field(
        default=30.0, description="Request timeout in seconds (null = none)"
    )
    retries: int = Field(
        default=0, description="Extra registry fetch attempts", ge=0
    )
    retry_delay_ms: int = Field(
        default=1000, description="Delay before the first retry (ms)", ge=0
    )
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")

    @field_validator("timeout")
    @classmethod
    def positive_timeout(cls, v):
        if v is not None and v <= 0:
            raise ValueError("timeout must be positive")
        return v


class ObservabilityConfig(BaseModel):
    """Logging configuration"""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    log_level: str = Field(default="WARNING", description="Logging level")
    log_to_file: bool = Field(default=False, description="Write a rotating log file")
    log_dir: Path = Field(
        default_factory=lambda: Path.home() / ".agw" / "logs",
        description="Log files directory",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level"""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Invalid log level. Must be one of: {valid_levels}")
        return v_upper

    @field_validator("log_dir", mode="before")
    @classmethod
    def ensure_path(cls, v):
        if isinstance(v, str):
            return Path(v).expanduser()
        return v


class AGWConfig(BaseModel):
    """Complete antigravity-workflows configuration"""

    registry: RegistryConfig = Field(
        default_factory=RegistryConfig, description="Registry configuration"
    )
    install: InstallConfig = Field(
        default_factory=InstallConfig, description="Install configuration"
    )
    http: HttpConfig = Field(
        default_factory=HttpConfig, description="HTTP configuration"
    )
    observability: ObservabilityConfig = Field(
        default_factory=ObservabilityConfig,
        description="Observability configuration",
    )


# ============================================================================
# Configuration Loader
# ============================================================================

# (environment variable, section, key)
ENV_VARS = [
    ("AGW_BASE_URL", "registry", "base_url"),
    ("AGW_REGISTRY_PATH", "registry", "registry_path"),
    ("AGW_TARGET_DIR", "install", "target_dir"),
    ("AGW_MAX_CONCURRENCY", "install", "max_concurrency"),
    ("AGW_HTTP_TIMEOUT", "http", "timeout"),
    ("AGW_HTTP_RETRIES", "http", "retries"),
    ("AGW_VERIFY_SSL", "http", "verify_ssl"),
    ("AGW_LOG_LEVEL", "observability", "log_level"),
    ("AGW_LOG_TO_FILE", "observability", "log_to_file"),
    ("AGW_LOG_DIR", "observability", "log_dir"),
]


class ConfigLoader:
    """Load configuration from multiple sources"""

    @staticmethod
    def load_from_env() -> Dict[str, Any]:
        """Load configuration from environment variables"""
        config: Dict[str, Any] = {}

        # Pydantic coerces the raw strings during validation
        for env_name, section, key in ENV_VARS:
            value = os.getenv(env_name)
            if value:
                config.setdefault(section, {})[key] = value

        return config

    @staticmethod
    def load_from_file(file_path: Path) -> Dict[str, Any]:
        """Load configuration from a YAML (or JSON) file"""
        if not file_path.exists():
            return {}

        try:
            with open(file_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Failed to load config file {file_path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Config file {file_path} must contain a mapping")
            return {}
        return data

    @staticmethod
    def merge_configs(*configs: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge multiple configuration dictionaries"""
        result: Dict[str, Any] = {}
        for config in configs:
            for key, value in config.items():
                if (
                    key in result
                    and isinstance(result[key], dict)
                    and isinstance(value, dict)
                ):
                    result[key] = ConfigLoader.merge_configs(result[key], value)
                else:
                    result[key] = value
        return result


def load_config(
    config_file: Optional[Path] = None, env_override: bool = True
) -> AGWConfig:
    """
    Load configuration from all sources

    Args:
        config_file: Optional specific config file to load; must exist
        env_override: Whether environment variables override file config

    Returns:
        AGWConfig instance

    Raises:
        ConfigError: If config_file is given but does not exist
    """
    configs = []

    # 1. Load from default locations
    default_locations = [
        Path.home() / ".agw" / "config.yaml",
        Path.cwd() / ".agw.yaml",
    ]

    for location in default_locations:
        if location.exists():
            file_config = ConfigLoader.load_from_file(location)
            if file_config:
                configs.append(file_config)
                logger.debug(f"Loaded config from {location}")

    # 2. Load from specific file if provided
    if config_file:
        if not config_file.exists():
            raise ConfigError(
                f"Config file not found: {config_file}",
                details={"path": str(config_file)},
            )
        file_config = ConfigLoader.load_from_file(config_file)
        if file_config:
            configs.append(file_config)
            logger.debug(f"Loaded config from {config_file}")

    # 3. Load from environment variables
    if env_override:
        env_config = ConfigLoader.load_from_env()
        if env_config:
            configs.append(env_config)
            logger.debug("Loaded config from environment")

    # 4. Merge all configs
    merged = ConfigLoader.merge_configs(*configs) if configs else {}

    # 5. Create AGWConfig instance
    try:
        return AGWConfig(**merged)
    except (ValidationError, TypeError) as e:
        logger.error(f"Config validation failed: {e}")
        logger.warning("Using default configuration")
        return AGWConfig()

