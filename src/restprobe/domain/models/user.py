"""User model for API requests and responses"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class User(BaseModel):
    """User resource of the users API.

    Every field is optional so the same model serves full creates, partial
    PATCH payloads and parsed responses. Unknown response fields are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    id: Optional[int] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None
    status: Optional[str] = None
    role: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    last_login: Optional[datetime] = None
    is_active: Optional[bool] = None
    email_verified: Optional[bool] = None

    @classmethod
    def basic(cls, email: str, first_name: str, last_name: str) -> "User":
        """Create a regular active user"""
        return cls(
            email=email,
            first_name=first_name,
            last_name=last_name,
            username=email,
            is_active=True,
            email_verified=False,
            role="user",
            status="active",
        )

    @classmethod
    def admin(cls, email: str, first_name: str, last_name: str) -> "User":
        """Create an active admin user with a verified email"""
        return cls.basic(email, first_name, last_name).model_copy(
            update={"role": "admin", "email_verified": True}
        )

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize for a request body, omitting unset (None) fields"""
        return self.model_dump(mode="json", exclude_none=True)
