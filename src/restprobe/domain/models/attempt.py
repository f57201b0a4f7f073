"""Attempt history and execution outcome models"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Union


@dataclass(frozen=True)
class RequestAttempt:
    """One invocation of a request action within a single execution"""

    index: int  # 1-based
    elapsed_ms: float
    status_code: Optional[int] = None  # Status of the returned response, if it has one
    error: Optional[BaseException] = None  # Set when the action raised

    def __post_init__(self):
        if self.index < 1:
            raise ValueError("Attempt index must be >= 1")
        if self.status_code is not None and self.error is not None:
            raise ValueError("Attempt cannot have both a status code and an error")

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass(frozen=True)
class ResponseOutcome:
    """Execution ended with a response (any status code)"""

    response: Any
    attempts: List[RequestAttempt] = field(default_factory=list)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


@dataclass(frozen=True)
class FailureOutcome:
    """Execution ended because every attempt raised a transport error"""

    error: BaseException
    attempts: List[RequestAttempt] = field(default_factory=list)

    @property
    def attempt_count(self) -> int:
        return len(self.attempts)


ExecutionOutcome = Union[ResponseOutcome, FailureOutcome]
