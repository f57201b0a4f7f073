"""Response logging configuration model."""

from pydantic import BaseModel


class LogConfig(BaseModel):
    """Configuration for request/response logging.

    Attributes:
        log_responses: Log status and timing of every response (body at DEBUG)
    """

    log_responses: bool = False
