"""
Retry utilities for provider action submission.

Splits retry policy from retry mechanism:
- classify_error() decides whether a failed attempt is worth repeating
- retry_with_deadline() repeats an operation until success, a fatal
  error, the deadline, or cancellation
"""

import logging
import random
import threading
import time
from enum import Enum
from typing import Callable, TypeVar

from ..providers.base import ProviderError
from .errors import OperationCancelledError, RetryTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_RETRY_TIMEOUT_SECONDS = 300.0
DEFAULT_MIN_DELAY_SECONDS = 1.0
DEFAULT_MAX_DELAY_SECONDS = 10.0

# The provider rejects a second lifecycle event on a droplet with this pair
PENDING_EVENT_STATUS_CODE = 422
PENDING_EVENT_MESSAGE = "Droplet already has a pending event."


class RetryDecision(str, Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"
    SUCCESS = "success"


def is_pending_event_conflict(error: BaseException) -> bool:
    """
    Check if an error is the provider's "pending event" conflict.

    Args:
        error: Exception raised by a provider call

    Returns:
        True if the status is 422 and the message mentions the pending event
    """
    if not isinstance(error, ProviderError):
        return False
    if error.status_code != PENDING_EVENT_STATUS_CODE:
        return False
    return PENDING_EVENT_MESSAGE.lower() in (error.message or "").lower()


def classify_error(error: BaseException | None) -> RetryDecision:
    """
    Classify the outcome of one attempt.

    Only the pending-event conflict is retryable; every other error
    (auth, validation, permanent provider failure) is fatal.
    """
    if error is None:
        return RetryDecision.SUCCESS
    if is_pending_event_conflict(error):
        return RetryDecision.RETRYABLE
    return RetryDecision.FATAL


def backoff_delay(
    attempt: int,
    min_delay: float = DEFAULT_MIN_DELAY_SECONDS,
    max_delay: float = DEFAULT_MAX_DELAY_SECONDS
) -> float:
    """
    Exponential backoff with jitter, bounded to [min_delay, max_delay].

    Args:
        attempt: Zero-based attempt number that just failed
        min_delay: Base delay for the first retry
        max_delay: Upper bound for any single wait
    """
    base_wait = min(min_delay * (2 ** min(attempt, 30)), max_delay)
    jitter = random.uniform(0, 0.5 * base_wait)
    return max(min_delay, min(base_wait + jitter, max_delay))


def wait_or_cancel(
    seconds: float,
    cancel_event: threading.Event | None,
    description: str
) -> None:
    """
    Suspend for up to `seconds`, returning early if cancelled.

    Raises:
        OperationCancelledError: If cancel_event is set before or during the wait
    """
    if cancel_event is None:
        time.sleep(seconds)
        return
    if cancel_event.wait(seconds):
        raise OperationCancelledError(description)


def retry_with_deadline(
    operation: Callable[[], T],
    timeout_seconds: float = DEFAULT_RETRY_TIMEOUT_SECONDS,
    cancel_event: threading.Event | None = None,
    classify: Callable[[BaseException | None], RetryDecision] = classify_error,
    min_delay: float = DEFAULT_MIN_DELAY_SECONDS,
    max_delay: float = DEFAULT_MAX_DELAY_SECONDS,
    description: str = "operation"
) -> T:
    """
    Call `operation` until it succeeds, fails fatally, or the deadline passes.

    Args:
        operation: Zero-argument callable; raises on failure
        timeout_seconds: Total wall-clock budget measured from this call
        cancel_event: Set by the caller to abort a pending wait
        classify: Maps an exception to a RetryDecision
        min_delay: Minimum wait between attempts
        max_delay: Maximum wait between attempts
        description: Human-readable name used in logs and errors

    Returns:
        Whatever `operation` returns on its first successful call

    Raises:
        RetryTimeoutError: Deadline reached; wraps the last retryable error
        OperationCancelledError: cancel_event was set
        Exception: The first fatal error, unchanged
    """
    deadline = time.monotonic() + timeout_seconds
    last_error: BaseException | None = None
    calls = 0

    while True:
        if cancel_event is not None and cancel_event.is_set():
            raise OperationCancelledError(description)

        calls += 1
        try:
            logger.debug(f"{description}: attempt {calls}")
            return operation()
        except Exception as e:
            if classify(e) != RetryDecision.RETRYABLE:
                logger.error(f"{description}: non-retryable error: {e}")
                raise
            last_error = e

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            break

        wait_time = min(backoff_delay(calls - 1, min_delay, max_delay), remaining)
        logger.warning(
            f"{description}: retryable error (attempt {calls}): "
            f"{last_error}; waiting {wait_time:.2f}s before retry"
        )
        wait_or_cancel(wait_time, cancel_event, description)

        if time.monotonic() >= deadline:
            break

    logger.error(
        f"{description}: retry budget of {timeout_seconds:g}s exhausted "
        f"after {calls} attempts"
    )
    raise RetryTimeoutError(description, timeout_seconds, last_error) from last_error
