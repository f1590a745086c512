"""
Error types raised by the attachment reconciliation engine.

Provider-level failures are ProviderError (see providers.base). The types
here describe what the engine did with them: gave up after a retry budget,
was cancelled, saw an action fail, or failed a whole reconciliation phase.
"""

from ..providers.base import ActionInfo


class RetryTimeoutError(Exception):
    """Retry budget exhausted while the operation kept failing retryably."""

    def __init__(self, description: str, timeout_seconds: float, last_error: BaseException | None):
        self.description = description
        self.timeout_seconds = timeout_seconds
        self.last_error = last_error
        super().__init__(
            f"{description} did not succeed within {timeout_seconds:g}s: {last_error}"
        )


class OperationCancelledError(Exception):
    """Caller cancelled while the engine was waiting."""

    def __init__(self, description: str):
        self.description = description
        super().__init__(f"{description} cancelled")


class ActionFailedError(Exception):
    """Provider action finished in an error state, or could not be polled."""

    def __init__(self, action: ActionInfo, reason: str):
        self.action = action
        self.reason = reason
        super().__init__(f"Action {action.action_id} ({action.kind}) failed: {reason}")


class ActionTimeoutError(Exception):
    """Provider action did not reach a terminal status in time."""

    def __init__(self, action: ActionInfo, timeout_seconds: float):
        self.action = action
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Action {action.action_id} ({action.kind}) still {action.status} "
            f"after {timeout_seconds:g}s"
        )


class AttachmentError(Exception):
    """
    A reconciliation phase failed for one (volume, node) pair.

    Carries enough context to log or display without another lookup.
    The underlying error is available as ``cause`` and ``__cause__``.
    """

    def __init__(self, volume_id: str, node_id: int, phase: str, cause: BaseException | None, message: str | None = None):
        self.volume_id = volume_id
        self.node_id = node_id
        self.phase = phase
        self.cause = cause
        detail = message or str(cause)
        super().__init__(
            f"Volume {volume_id} / node {node_id}: {phase} failed: {detail}"
        )
        self.__cause__ = cause


class AttachmentTimeoutError(AttachmentError):
    """A retry or poll budget was exhausted."""
    pass


class AttachmentCancelledError(AttachmentError):
    """The caller cancelled during a wait."""
    pass
