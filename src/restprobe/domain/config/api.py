"""API target configuration model."""

from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ApiConfig(BaseModel):
    """Configuration for the API under test.

    Attributes:
        base_url: Scheme and host of the API (e.g. https://reqres.in/api)
        api_version: Version path segment appended to base_url (None = no segment)
    """

    base_url: str = "http://localhost:8080"
    api_version: Optional[str] = Field("v1", min_length=1)

    @field_validator("base_url")
    @classmethod
    def _check_base_url(cls, value: str) -> str:
        if not value.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return value.rstrip("/")

    @property
    def root_url(self) -> str:
        """Base URL including the version segment"""
        if self.api_version:
            return f"{self.base_url}/{self.api_version.strip('/')}"
        return self.base_url
