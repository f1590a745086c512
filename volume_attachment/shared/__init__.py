"""
Reconciliation engine for volume attachments
"""

# Retry policy and mechanism
from .retry_utils import (
    RetryDecision,
    classify_error,
    is_pending_event_conflict,
    retry_with_deadline,
)

# Action polling
from .action_waiter import wait_for_action

# Attachment reconciliation
from .attachment_reconciler import (
    AttachmentIntent,
    AttachmentOutcome,
    AttachmentPhase,
    AttachmentReconciler,
    AttachmentResult,
    AttachmentState,
    DriftReport,
    inspect_attachment,
)

# Errors
from .errors import (
    ActionFailedError,
    ActionTimeoutError,
    AttachmentCancelledError,
    AttachmentError,
    AttachmentTimeoutError,
    OperationCancelledError,
    RetryTimeoutError,
)

__all__ = [
    # Retry
    "RetryDecision",
    "classify_error",
    "is_pending_event_conflict",
    "retry_with_deadline",
    # Actions
    "wait_for_action",
    # Reconciliation
    "AttachmentIntent",
    "AttachmentOutcome",
    "AttachmentPhase",
    "AttachmentReconciler",
    "AttachmentResult",
    "AttachmentState",
    "DriftReport",
    "inspect_attachment",
    # Errors
    "ActionFailedError",
    "ActionTimeoutError",
    "AttachmentCancelledError",
    "AttachmentError",
    "AttachmentTimeoutError",
    "OperationCancelledError",
    "RetryTimeoutError",
]
