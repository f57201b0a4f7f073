"""Request retry policy built on tenacity.

Every request made by the API client runs through one of the executors in
this module. The sync and async variants share one set of retry decisions:

- the action raised: retried; once attempts run out the last error is
  raised wrapped in RetryExhaustedError
- the response has a retriable status (5xx, 408, 429): retried; once
  attempts run out the last response is returned as-is
- any other status: returned immediately
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    Retrying,
    retry_if_exception,
    retry_if_result,
    stop_after_attempt,
    wait_fixed,
)

from restprobe.domain.config.retry import RetryConfig
from restprobe.domain.models.attempt import (
    ExecutionOutcome,
    FailureOutcome,
    RequestAttempt,
    ResponseOutcome,
)

logger = logging.getLogger(__name__)

# Client errors that still signal a transient condition
RETRIABLE_CLIENT_STATUSES = frozenset({408, 429})


def is_retriable_status(status_code: Optional[int]) -> bool:
    """Check if a response status should be retried."""
    if status_code is None:
        return False
    return status_code >= 500 or status_code in RETRIABLE_CLIENT_STATUSES


def is_retriable_exception(
    exception: BaseException,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> bool:
    """Check if an exception raised by a request action should be retried."""
    return isinstance(exception, retry_on)


def _status_of(response: Any) -> Optional[int]:
    return getattr(response, "status_code", None)


class RetryError(Exception):
    """Base class for retry executor errors."""

    pass


class RetryExhaustedError(RetryError):
    """Raised when every attempt ended with a transport error.

    Attributes:
        attempts: Total number of attempts made
        last_error: Exception raised by the final attempt
        history: Per-attempt records, in order
    """

    def __init__(
        self,
        attempts: int,
        last_error: BaseException,
        history: Optional[List[RequestAttempt]] = None,
    ) -> None:
        self.attempts = attempts
        self.last_error = last_error
        self.history = list(history or [])
        super().__init__(f"Request failed after {attempts} attempts: {last_error}")


class RetryCancelledError(RetryError):
    """Raised when a cancel event is set during an inter-attempt delay."""

    def __init__(self, attempts: int) -> None:
        self.attempts = attempts
        super().__init__(f"Retry cancelled after {attempts} attempts")


@dataclass(frozen=True)
class RetryPolicy:
    """Immutable retry settings for one executor"""

    max_attempts: int = 3
    delay_ms: int = 1000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.delay_ms < 0:
            raise ValueError("delay_ms must be >= 0")

    @property
    def delay_seconds(self) -> float:
        return self.delay_ms / 1000.0

    @classmethod
    def from_config(cls, config: RetryConfig) -> "RetryPolicy":
        return cls(max_attempts=config.max_attempts, delay_ms=config.delay_ms)


def retry_policy_from_dict(config: Dict[str, Any]) -> RetryPolicy:
    """Parse retry policy from a flat dict, supporting legacy aliases.

    Out-of-range or unparsable values fall back to defaults or are clamped
    instead of raising, so loosely typed property files still load.
    """
    max_attempts = config.get("max_attempts")
    delay_ms = config.get("delay_ms")

    # Property-file style keys used by older suites
    if max_attempts is None:
        max_attempts = config.get("retry.count", config.get("count", 3))
    if delay_ms is None:
        delay_ms = config.get("retry.delay", config.get("delay", 1000))

    try:
        max_attempts_i = int(max_attempts)
    except (TypeError, ValueError):
        logger.warning(f"Invalid max_attempts value {max_attempts!r}, using default: 3")
        max_attempts_i = 3

    try:
        delay_ms_i = int(delay_ms)
    except (TypeError, ValueError):
        logger.warning(f"Invalid delay_ms value {delay_ms!r}, using default: 1000")
        delay_ms_i = 1000

    if max_attempts_i < 1:
        max_attempts_i = 1
    if delay_ms_i < 0:
        delay_ms_i = 0

    return RetryPolicy(max_attempts=max_attempts_i, delay_ms=delay_ms_i)


class _BaseExecutor:
    """Retry decisions shared by the sync and async executors"""

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    ):
        self.policy = policy or RetryPolicy()
        self.retry_on = tuple(retry_on)

    def _retry_condition(self):
        return retry_if_exception(
            lambda e: is_retriable_exception(e, self.retry_on)
        ) | retry_if_result(lambda r: is_retriable_status(_status_of(r)))

    def _log_before_sleep(self, retry_state: RetryCallState) -> None:
        outcome = retry_state.outcome
        if outcome is None:
            return
        attempt = retry_state.attempt_number
        total = self.policy.max_attempts
        delay = self.policy.delay_ms
        if outcome.failed:
            logger.warning(
                f"Request failed with exception on attempt {attempt}/{total}, "
                f"retrying in {delay}ms: {outcome.exception()}"
            )
        else:
            logger.warning(
                f"Request failed with status {_status_of(outcome.result())}, "
                f"attempt {attempt}/{total}, retrying in {delay}ms"
            )

    def _exhausted_handler(
        self, history: List[RequestAttempt]
    ) -> Callable[[RetryCallState], ExecutionOutcome]:
        def _on_exhausted(retry_state: RetryCallState) -> ExecutionOutcome:
            outcome = retry_state.outcome
            if outcome.failed:
                error = outcome.exception()
                logger.error(f"Request failed after {len(history)} attempts: {error}")
                return FailureOutcome(error=error, attempts=list(history))
            response = outcome.result()
            logger.warning(
                f"Status {_status_of(response)} persisted after {len(history)} attempts, "
                f"returning last response"
            )
            return ResponseOutcome(response=response, attempts=list(history))

        return _on_exhausted

    @staticmethod
    def _record(
        history: List[RequestAttempt],
        started: float,
        response: Any = None,
        error: Optional[BaseException] = None,
    ) -> None:
        elapsed_ms = (time.monotonic() - started) * 1000.0
        status = _status_of(response) if error is None else None
        history.append(
            RequestAttempt(
                index=len(history) + 1, elapsed_ms=elapsed_ms, status_code=status, error=error
            )
        )

    @staticmethod
    def _unwrap(outcome: ExecutionOutcome) -> Any:
        if isinstance(outcome, FailureOutcome):
            raise RetryExhaustedError(
                outcome.attempt_count, outcome.error, outcome.attempts
            ) from outcome.error
        return outcome.response


class RetryingRequestExecutor(_BaseExecutor):
    """Runs a request action with a bounded, fixed-delay retry policy.

    The executor keeps no per-call state on the instance, so one executor
    can be shared by tests running in parallel threads.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize executor

        Args:
            policy: Retry policy (defaults: 3 attempts, 1000ms delay)
            retry_on: Exception types treated as transport errors
            sleep: Blocking sleep used between attempts (seconds)
        """
        super().__init__(policy, retry_on)
        self._sleep = sleep

    def _sleeper(
        self, history: List[RequestAttempt], cancel_event: Optional[threading.Event]
    ) -> Callable[[float], None]:
        def _sleep(seconds: float) -> None:
            if cancel_event is None:
                self._sleep(seconds)
                return
            if cancel_event.wait(seconds):
                logger.warning(f"Retry cancelled after {len(history)} attempts")
                raise RetryCancelledError(len(history))

        return _sleep

    def run(
        self,
        action: Callable[[], Any],
        cancel_event: Optional[threading.Event] = None,
    ) -> ExecutionOutcome:
        """Execute action and return a tagged outcome

        Args:
            action: Zero-argument callable performing exactly one request
            cancel_event: Optional event; when set during a delay, no more attempts are made

        Returns:
            ResponseOutcome with the final response, or FailureOutcome if every attempt raised

        Raises:
            RetryCancelledError: If cancel_event was set during a delay
        """
        history: List[RequestAttempt] = []

        def _attempt() -> Any:
            started = time.monotonic()
            try:
                response = action()
            except BaseException as e:
                self._record(history, started, error=e)
                raise
            self._record(history, started, response=response)
            return response

        retrying = Retrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=wait_fixed(self.policy.delay_seconds),
            retry=self._retry_condition(),
            before_sleep=self._log_before_sleep,
            sleep=self._sleeper(history, cancel_event),
            retry_error_callback=self._exhausted_handler(history),
        )
        result = retrying(_attempt)
        if isinstance(result, (ResponseOutcome, FailureOutcome)):
            return result
        return ResponseOutcome(response=result, attempts=list(history))

    def execute(
        self,
        action: Callable[[], Any],
        cancel_event: Optional[threading.Event] = None,
    ) -> Any:
        """Execute action with retries

        Args:
            action: Zero-argument callable performing exactly one request
            cancel_event: Optional cancellation event checked during delays

        Returns:
            The first non-retriable response, or the last response once attempts run out

        Raises:
            RetryExhaustedError: If every attempt raised a transport error
            RetryCancelledError: If cancel_event was set during a delay
        """
        return self._unwrap(self.run(action, cancel_event=cancel_event))


class AsyncRetryingRequestExecutor(_BaseExecutor):
    """Async variant: the delay between attempts is an awaited sleep.

    Cancelling the task while it waits raises asyncio.CancelledError out of
    execute() and no further attempts are made.
    """

    def __init__(
        self,
        policy: Optional[RetryPolicy] = None,
        retry_on: Tuple[Type[BaseException], ...] = (Exception,),
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        super().__init__(policy, retry_on)
        self._sleep = sleep or asyncio.sleep

    async def run(self, action: Callable[[], Awaitable[Any]]) -> ExecutionOutcome:
        """Execute async action and return a tagged outcome"""
        history: List[RequestAttempt] = []

        async def _attempt() -> Any:
            started = time.monotonic()
            try:
                response = await action()
            except BaseException as e:
                self._record(history, started, error=e)
                raise
            self._record(history, started, response=response)
            return response

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.policy.max_attempts),
            wait=wait_fixed(self.policy.delay_seconds),
            retry=self._retry_condition(),
            before_sleep=self._log_before_sleep,
            sleep=self._sleep,
            retry_error_callback=self._exhausted_handler(history),
        )
        result = await retrying(_attempt)
        if isinstance(result, (ResponseOutcome, FailureOutcome)):
            return result
        return ResponseOutcome(response=result, attempts=list(history))

    async def execute(self, action: Callable[[], Awaitable[Any]]) -> Any:
        """Execute async action with retries

        Raises:
            RetryExhaustedError: If every attempt raised a transport error
            asyncio.CancelledError: If the task is cancelled
        """
        return self._unwrap(await self.run(action))
