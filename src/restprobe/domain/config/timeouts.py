"""HTTP timeout configuration model."""

from pydantic import BaseModel, Field


class TimeoutsConfig(BaseModel):
    """Per-attempt transport timeouts in milliseconds.

    Attributes:
        connect_ms: Time allowed to establish a connection
        read_ms: Time allowed between bytes received from the server
    """

    connect_ms: int = Field(10000, gt=0)
    read_ms: int = Field(30000, gt=0)

    def as_requests_timeout(self) -> tuple[float, float]:
        """Timeout tuple in the (connect, read) seconds form requests expects"""
        return self.connect_ms / 1000.0, self.read_ms / 1000.0
