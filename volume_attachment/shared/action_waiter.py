"""
Wait for a submitted provider action to finish.

The provider runs attach/detach asynchronously and hands back an action ID.
wait_for_action() blocks the calling thread, polling the action status until
it is completed or errored, the timeout passes, or the caller cancels.
"""

import logging
import threading
import time

from ..providers.base import (
    ACTION_ERRORED,
    ActionInfo,
    ProviderError,
    StorageProvider,
)
from .errors import ActionFailedError, ActionTimeoutError
from .retry_utils import wait_or_cancel

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_SECONDS = 3.0
DEFAULT_ACTION_TIMEOUT_SECONDS = 3600.0
DEFAULT_MAX_POLL_FAILURES = 5


def wait_for_action(
    provider: StorageProvider,
    action: ActionInfo,
    cancel_event: threading.Event | None = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    timeout_seconds: float = DEFAULT_ACTION_TIMEOUT_SECONDS,
    max_poll_failures: int = DEFAULT_MAX_POLL_FAILURES
) -> ActionInfo:
    """
    Block until `action` reaches a terminal status.

    Poll failures (the status request itself failing) are tolerated up to
    `max_poll_failures` in a row; a successful poll resets the count.

    Args:
        provider: Provider used to fetch action status
        action: Action returned by the submit call
        cancel_event: Set by the caller to abort the wait
        poll_interval: Seconds between status requests
        timeout_seconds: Upper bound on the whole wait
        max_poll_failures: Consecutive poll failures before giving up

    Returns:
        The final ActionInfo with status 'completed'

    Raises:
        ActionFailedError: Action errored, or polling kept failing
        ActionTimeoutError: Action still in progress at the deadline
        OperationCancelledError: cancel_event was set
    """
    description = f"Waiting for action {action.action_id} ({action.kind})"
    deadline = time.monotonic() + timeout_seconds
    current = action
    consecutive_failures = 0

    while True:
        if current.is_terminal:
            if current.status == ACTION_ERRORED:
                reason = current.failure_reason or "provider reported status 'errored'"
                logger.error(f"Action {current.action_id} ({current.kind}) errored: {reason}")
                raise ActionFailedError(current, reason)
            logger.info(f"Action {current.action_id} ({current.kind}) completed")
            return current

        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise ActionTimeoutError(current, timeout_seconds)

        wait_or_cancel(min(poll_interval, remaining), cancel_event, description)

        try:
            current = provider.get_action(action.action_id)
            consecutive_failures = 0
            logger.debug(f"Action {action.action_id} status: {current.status}")
        except ProviderError as e:
            consecutive_failures += 1
            logger.warning(
                f"Failed to poll action {action.action_id} "
                f"({consecutive_failures}/{max_poll_failures}): {e}"
            )
            if consecutive_failures >= max_poll_failures:
                raise ActionFailedError(
                    current,
                    f"status polling failed {consecutive_failures} times in a row: {e}"
                ) from e
