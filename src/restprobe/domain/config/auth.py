"""Authentication configuration model."""

from typing import Literal, Optional

from pydantic import BaseModel


class AuthConfig(BaseModel):
    """Configuration for request authentication.

    Attributes:
        enabled: Whether an Authorization header is sent
        type: Authentication scheme (only bearer is supported)
        token: Bearer token (usually provided via RESTPROBE_AUTH_TOKEN)
    """

    enabled: bool = False
    type: Literal["bearer"] = "bearer"
    token: Optional[str] = None
