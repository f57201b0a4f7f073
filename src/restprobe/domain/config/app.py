"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from restprobe.domain.config.api import ApiConfig
from restprobe.domain.config.auth import AuthConfig
from restprobe.domain.config.log import LogConfig
from restprobe.domain.config.retry import RetryConfig
from restprobe.domain.config.timeouts import TimeoutsConfig


class AppConfig(BaseModel):
    """Main application configuration.

    This is the root configuration model that aggregates all configuration sections.
    Validation is performed at load time to fail fast on configuration errors.

    Attributes:
        environment: Name of the active environment profile
        api: API target configuration
        timeouts: Transport timeouts
        auth: Authentication configuration
        retry: Retry logic configuration
        logging: Response logging configuration
    """

    environment: str = "development"
    api: ApiConfig = Field(default_factory=ApiConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    auth: AuthConfig = Field(default_factory=AuthConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    model_config = ConfigDict(
        validate_assignment=True,  # Validate on attribute assignment
        extra="forbid",  # Reject unknown fields
        json_schema_extra={
            "example": {
                "environment": "staging",
                "api": {
                    "base_url": "https://reqres.in/api",
                    "api_version": None,
                },
                "timeouts": {
                    "connect_ms": 10000,
                    "read_ms": 30000,
                },
                "auth": {
                    "enabled": True,
                    "type": "bearer",
                    "token": None,
                },
                "retry": {
                    "max_attempts": 3,
                    "delay_ms": 1000,
                },
                "logging": {
                    "log_responses": True,
                },
            }
        },
    )
