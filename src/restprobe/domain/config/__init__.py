"""Configuration models with Pydantic validation."""

from restprobe.domain.config.api import ApiConfig
from restprobe.domain.config.app import AppConfig
from restprobe.domain.config.auth import AuthConfig
from restprobe.domain.config.log import LogConfig
from restprobe.domain.config.retry import RetryConfig
from restprobe.domain.config.timeouts import TimeoutsConfig

__all__ = [
    "AppConfig",
    "ApiConfig",
    "AuthConfig",
    "LogConfig",
    "RetryConfig",
    "TimeoutsConfig",
]
