"""
Schema Anomaly Auditor - Bounded Retry Helper
Runs an operation up to a fixed number of attempts using tenacity.
"""

from typing import Callable, Optional, Tuple, Type, TypeVar

from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_none,
)

T = TypeVar('T')


def with_retries(
    operation: Callable[[], T],
    max_attempts: int,
    wait=None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    before_attempt: Optional[Callable[[int], None]] = None,
    after_failure: Optional[Callable[[int, BaseException], None]] = None,
) -> T:
    """
    Call ``operation`` until it succeeds or ``max_attempts`` is used up.

    Only exceptions matching ``retry_on`` are retried; anything else (and
    BaseException subclasses such as KeyboardInterrupt) propagates at once.
    When the budget is exhausted the last exception is re-raised unchanged so
    callers can wrap it in their own error type.

    Args:
        operation: Zero-argument callable to run
        max_attempts: Total attempts allowed (>= 1)
        wait: tenacity wait strategy between attempts (default: no wait)
        retry_on: Exception types that trigger another attempt
        before_attempt: Called with the 1-based attempt number before each try
        after_failure: Called with (attempt number, exception) after a failed try

    Returns:
        Whatever ``operation`` returns on its first successful attempt
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def _after(retry_state: RetryCallState) -> None:
        if after_failure is not None and retry_state.outcome is not None and retry_state.outcome.failed:
            after_failure(retry_state.attempt_number, retry_state.outcome.exception())

    retryer = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait if wait is not None else wait_none(),
        retry=retry_if_exception_type(retry_on),
        after=_after,
        reraise=True,
    )

    for attempt in retryer:
        with attempt:
            if before_attempt is not None:
                before_attempt(attempt.retry_state.attempt_number)
            return operation()
