"""Configuration manager for loading and validating .restprobe.yml"""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from restprobe.domain.config import (
    ApiConfig,
    AppConfig,
    AuthConfig,
    LogConfig,
    RetryConfig,
    TimeoutsConfig,
)

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = ".restprobe.yml"
DEFAULT_ENVIRONMENT = "development"


class ConfigurationError(Exception):
    """Configuration validation error."""

    pass


class ConfigManager:
    """Manages configuration from .restprobe.yml and environment variables

    Each instance is independent: tests build their own manager instead of
    sharing a process-wide one. Configuration priority:
    1. Default values (defined in Pydantic models)
    2. Top-level sections of .restprobe.yml
    3. The `environments.<name>` section for the active environment
    4. Environment variables (RESTPROBE_*)
    5. CLI arguments (handled by CLI layer)
    """

    DEFAULT_CONFIG = {
        "api": {
            "base_url": "http://localhost:8080",
            "api_version": "v1",
        },
        "timeouts": {
            "connect_ms": 10000,
            "read_ms": 30000,
        },
        "auth": {
            "enabled": False,
            "type": "bearer",
            "token": None,
        },
        "retry": {
            "max_attempts": 3,
            "delay_ms": 1000,
        },
        "logging": {
            "log_responses": False,
        },
    }

    # Environment variable -> (section, key, converter)
    ENV_OVERRIDES = {
        "RESTPROBE_BASE_URL": ("api", "base_url", str),
        "RESTPROBE_API_VERSION": ("api", "api_version", str),
        "RESTPROBE_AUTH_TOKEN": ("auth", "token", str),
        "RESTPROBE_RETRY_MAX_ATTEMPTS": ("retry", "max_attempts", int),
        "RESTPROBE_RETRY_DELAY_MS": ("retry", "delay_ms", int),
        "RESTPROBE_LOG_RESPONSES": ("logging", "log_responses", lambda v: v.lower() in ("1", "true", "yes")),
    }

    def __init__(
        self,
        config_path: Optional[Union[Path, str]] = None,
        environment: Optional[str] = None,
    ):
        """Initialize config manager

        Args:
            config_path: Path to .restprobe.yml (searches from current dir if None)
            environment: Environment profile name (default: RESTPROBE_ENV or "development")

        Raises:
            ConfigurationError: If configuration validation fails
        """
        if isinstance(config_path, str):
            config_path = Path(config_path)
        self.config_path = config_path or self._find_config_file()
        self.environment = environment or os.getenv("RESTPROBE_ENV") or DEFAULT_ENVIRONMENT
        try:
            self.config: AppConfig = self._load_config()
        except ValidationError as e:
            errors = []
            for error in e.errors():
                field = ".".join(str(x) for x in error["loc"])
                msg = error["msg"]
                errors.append(f"  - {field}: {msg}")
            raise ConfigurationError(
                "Configuration validation failed:\n" + "\n".join(errors)
            ) from e
        logger.info(f"Loaded configuration for environment: {self.environment}")

    def _find_config_file(self) -> Optional[Path]:
        """Find .restprobe.yml starting from current directory

        Returns:
            Path to config file or None if not found
        """
        current = Path.cwd()
        for parent in [current] + list(current.parents):
            config_file = parent / CONFIG_FILE_NAME
            if config_file.exists():
                logger.info(f"Found config file: {config_file}")
                return config_file
        logger.debug(f"No {CONFIG_FILE_NAME} found, using defaults")
        return None

    def _load_config(self) -> AppConfig:
        """Load configuration from file and validate with Pydantic

        Returns:
            Validated AppConfig instance

        Raises:
            ValidationError: If configuration is invalid
            ConfigurationError: If the file cannot be parsed or the environment is unknown
        """
        config_dict = copy.deepcopy(self.DEFAULT_CONFIG)

        if self.config_path and self.config_path.exists():
            try:
                with open(self.config_path, "r", encoding="utf-8") as f:
                    file_config = yaml.safe_load(f) or {}
            except (OSError, yaml.YAMLError) as e:
                raise ConfigurationError(f"Failed to load config from {self.config_path}: {e}") from e
            if not isinstance(file_config, dict):
                raise ConfigurationError(f"Config file {self.config_path} must contain a mapping")

            environments = file_config.pop("environments", None) or {}
            config_dict = self._merge_config(config_dict, file_config)

            if environments:
                if self.environment not in environments:
                    available = ", ".join(sorted(environments))
                    raise ConfigurationError(
                        f"Unknown environment: {self.environment}. Available environments: {available}"
                    )
                config_dict = self._merge_config(config_dict, environments[self.environment] or {})
            logger.info(f"Loaded configuration from {self.config_path}")

        config_dict = self._apply_env_overrides(config_dict)
        config_dict["environment"] = self.environment

        return AppConfig(**config_dict)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge configuration dictionaries

        Args:
            base: Base configuration
            override: Override configuration

        Returns:
            Merged configuration
        """
        result = base.copy()
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value
        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides

        Args:
            config: Configuration dictionary

        Returns:
            Configuration with env overrides applied

        Raises:
            ConfigurationError: If a numeric override is not a number
        """
        for env_name, (section, key, convert) in self.ENV_OVERRIDES.items():
            raw = os.getenv(env_name)
            if not raw:
                continue
            try:
                value = convert(raw)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_name}: {raw!r}") from e
            config.setdefault(section, {})[key] = value

        # Providing a token via the environment implies bearer auth
        if os.getenv("RESTPROBE_AUTH_TOKEN"):
            config["auth"]["enabled"] = True
        return config

    def get_api_config(self) -> ApiConfig:
        """Get API target configuration"""
        return self.config.api

    def get_timeouts_config(self) -> TimeoutsConfig:
        """Get transport timeouts configuration"""
        return self.config.timeouts

    def get_auth_config(self) -> AuthConfig:
        """Get authentication configuration"""
        return self.config.auth

    def get_retry_config(self) -> RetryConfig:
        """Get retry configuration

        Returns:
            Retry configuration model
        """
        return self.config.retry

    def get_log_config(self) -> LogConfig:
        """Get response logging configuration"""
        return self.config.logging

    def get_base_url(self) -> str:
        """Get API root URL including the version segment"""
        return self.config.api.root_url

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)

        Args:
            key: Configuration key (e.g., "retry.max_attempts" or "retry")
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split(".")
        value = self.config.model_dump()
        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default
        return value

    def get_int(self, key: str, default: int) -> int:
        """Get integer configuration value, falling back to default if missing or invalid"""
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid integer property: {key} = {value}, using default: {default}")
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        """Get boolean configuration value, falling back to default if missing"""
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, str):
            return value.lower() in ("1", "true", "yes")
        return bool(value)
