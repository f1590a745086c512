"""
Volume Attachment Reconciliation Module

Converges the attachment between one block storage volume and one compute
node to the state the caller wants, and checks whether an attachment the
caller believes exists is still there.

Single source of truth: the storage provider. Nothing is cached between
calls; every operation re-reads the volume.

Reconciliation Rules:
1. ensure_attached: volume already attached to the node (first entry of its
   attached list) → nothing to do. Attached to several nodes → refused as a
   multi-attach anomaly. Otherwise submit attach, retrying pending-event
   conflicts, then wait for the action.
2. ensure_detached: always submit detach-by-node (the provider treats a
   redundant detach as a no-op), then wait for the action.
3. detect_drift: read only.
   - Volume gone → gone_entirely
   - Not attached, attached elsewhere, or attached to several nodes → drift
"""

import logging
import threading
from dataclasses import dataclass, field
from enum import Enum

from ..config import ReconcilerConfig
from ..providers.base import ActionInfo, StorageProvider
from .action_waiter import wait_for_action
from .errors import (
    ActionTimeoutError,
    AttachmentCancelledError,
    AttachmentError,
    AttachmentTimeoutError,
    OperationCancelledError,
    RetryTimeoutError,
)
from .retry_utils import retry_with_deadline

logger = logging.getLogger(__name__)


class AttachmentPhase(str, Enum):
    INSPECT = "inspect"
    SUBMIT = "submit"
    POLL = "poll"


class AttachmentOutcome(str, Enum):
    ALREADY_SATISFIED = "already_satisfied"
    SATISFIED = "satisfied"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class AttachmentIntent:
    """The (volume, node) pair a caller wants attached or detached."""
    volume_id: str
    node_id: int

    def __post_init__(self):
        if not self.volume_id:
            raise ValueError("volume_id must be a non-empty string")
        if isinstance(self.node_id, bool) or not isinstance(self.node_id, int) or self.node_id <= 0:
            raise ValueError(f"node_id must be a positive integer, got {self.node_id!r}")


@dataclass(frozen=True)
class AttachmentState:
    """What the provider reported for a volume at inspection time."""
    volume_id: str
    found: bool
    attached_node_ids: tuple[int, ...] = ()

    @property
    def primary_node_id(self) -> int | None:
        return self.attached_node_ids[0] if self.attached_node_ids else None

    @property
    def is_multi_attached(self) -> bool:
        return len(self.attached_node_ids) > 1

    def is_attached_to(self, node_id: int) -> bool:
        return self.primary_node_id == node_id


@dataclass
class AttachmentResult:
    """Outcome of ensure_attached / ensure_detached."""
    volume_id: str
    node_id: int
    outcome: AttachmentOutcome
    action: ActionInfo | None = None
    error: AttachmentError | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (
            AttachmentOutcome.ALREADY_SATISFIED,
            AttachmentOutcome.SATISFIED,
        )

    def raise_for_error(self) -> None:
        """Raise the recorded AttachmentError, if any."""
        if self.error is not None:
            raise self.error


@dataclass
class DriftReport:
    """Read-only comparison of the expected attachment with provider state."""
    volume_id: str
    node_id: int
    drift_detected: bool
    gone_entirely: bool
    attached_node_ids: tuple[int, ...] = field(default_factory=tuple)

    @property
    def attachment_exists(self) -> bool:
        return not (self.drift_detected or self.gone_entirely)


def inspect_attachment(provider: StorageProvider, volume_id: str) -> AttachmentState:
    """
    Read the current attachment state of a volume.

    A missing volume is a valid state (found=False), not an error. Any other
    provider failure propagates; callers decide whether to retry reads.

    Args:
        provider: Storage provider
        volume_id: Volume to inspect

    Returns:
        AttachmentState snapshot

    Raises:
        ProviderError: If the read fails for a reason other than not-found
    """
    volume = provider.get_volume(volume_id)
    if volume is None:
        logger.debug(f"Volume {volume_id} not found")
        return AttachmentState(volume_id=volume_id, found=False)

    state = AttachmentState(
        volume_id=volume_id,
        found=True,
        attached_node_ids=tuple(volume.attached_node_ids),
    )
    logger.debug(f"Volume {volume_id} attached to {list(state.attached_node_ids)}")
    return state


class AttachmentReconciler:
    """
    Reconcile the attachment of one volume to one node.

    The provider and configuration are injected; the reconciler holds no other
    state, so one instance may serve many calls (callers targeting the same
    volume concurrently must serialize themselves).

    Example:
        reconciler = AttachmentReconciler(get_storage_provider())
        result = reconciler.ensure_attached('vol-1', 200)
        result.raise_for_error()
    """

    def __init__(self, provider: StorageProvider, config: ReconcilerConfig | None = None):
        self.provider = provider
        self.config = config or ReconcilerConfig()

    # === Public operations ===

    def ensure_attached(
        self,
        volume_id: str,
        node_id: int,
        cancel_event: threading.Event | None = None
    ) -> AttachmentResult:
        """
        Make sure the volume is attached to the node.

        Args:
            volume_id: Volume to attach
            node_id: Target node
            cancel_event: Set by the caller to abort waits

        Returns:
            AttachmentResult; outcome ALREADY_SATISFIED means no mutating call
            was made
        """
        intent = AttachmentIntent(volume_id, node_id)

        try:
            state = inspect_attachment(self.provider, intent.volume_id)
        except Exception as e:
            return self._failure(intent, AttachmentPhase.INSPECT, e)

        if not state.found:
            error = AttachmentError(
                intent.volume_id, intent.node_id, AttachmentPhase.INSPECT.value,
                None, message="volume not found",
            )
            logger.error(str(error))
            return AttachmentResult(
                intent.volume_id, intent.node_id, AttachmentOutcome.FAILED, error=error
            )

        if state.is_multi_attached:
            error = AttachmentError(
                intent.volume_id, intent.node_id, AttachmentPhase.INSPECT.value,
                None,
                message=(
                    f"multi-attach anomaly: attached to {list(state.attached_node_ids)}"
                ),
            )
            logger.warning(str(error))
            return AttachmentResult(
                intent.volume_id, intent.node_id, AttachmentOutcome.FAILED, error=error
            )

        if state.is_attached_to(intent.node_id):
            logger.info(
                f"Volume {intent.volume_id} already attached to node {intent.node_id}"
            )
            return AttachmentResult(
                intent.volume_id, intent.node_id, AttachmentOutcome.ALREADY_SATISFIED
            )

        logger.info(f"Attaching volume {intent.volume_id} to node {intent.node_id}")
        return self._submit_and_wait(
            intent,
            "attach",
            lambda: self.provider.attach_volume(intent.volume_id, intent.node_id),
            cancel_event,
        )

    def ensure_detached(
        self,
        volume_id: str,
        node_id: int,
        cancel_event: threading.Event | None = None
    ) -> AttachmentResult:
        """
        Detach the volume from the node.

        No pre-check: the provider is the only authority on whether the pair
        is really detached, and it accepts a redundant detach.

        Args:
            volume_id: Volume to detach
            node_id: Node to detach it from
            cancel_event: Set by the caller to abort waits

        Returns:
            AttachmentResult with outcome SATISFIED on success
        """
        intent = AttachmentIntent(volume_id, node_id)

        logger.info(f"Detaching volume {intent.volume_id} from node {intent.node_id}")
        return self._submit_and_wait(
            intent,
            "detach",
            lambda: self.provider.detach_volume(intent.volume_id, intent.node_id),
            cancel_event,
        )

    def detect_drift(self, volume_id: str, node_id: int) -> DriftReport:
        """
        Compare the expected attachment with what the provider reports.

        Never mutates provider state.

        Returns:
            DriftReport; gone_entirely when the volume no longer exists,
            drift_detected when it is detached, attached elsewhere, or
            attached to more than one node

        Raises:
            AttachmentError: If the volume could not be read
        """
        intent = AttachmentIntent(volume_id, node_id)

        try:
            state = inspect_attachment(self.provider, intent.volume_id)
        except Exception as e:
            raise AttachmentError(
                intent.volume_id, intent.node_id, AttachmentPhase.INSPECT.value, e
            ) from e

        if not state.found:
            logger.info(f"Volume {intent.volume_id} no longer exists")
            return DriftReport(
                intent.volume_id, intent.node_id,
                drift_detected=False, gone_entirely=True,
            )

        drift = not state.is_attached_to(intent.node_id)
        if state.is_multi_attached:
            logger.warning(
                f"Volume {intent.volume_id} is attached to multiple nodes "
                f"{list(state.attached_node_ids)}; reporting as drift"
            )
            drift = True
        elif drift:
            logger.info(
                f"Volume attachment {intent.volume_id} -> {intent.node_id} not found "
                f"(attached to {list(state.attached_node_ids)})"
            )

        return DriftReport(
            intent.volume_id, intent.node_id,
            drift_detected=drift, gone_entirely=False,
            attached_node_ids=state.attached_node_ids,
        )

    # === Internals ===

    def _submit_and_wait(self, intent: AttachmentIntent, kind: str, submit, cancel_event) -> AttachmentResult:
        description = f"{kind} volume {intent.volume_id} / node {intent.node_id}"

        try:
            action = retry_with_deadline(
                submit,
                timeout_seconds=self.config.retry_timeout_seconds,
                cancel_event=cancel_event,
                min_delay=self.config.retry_min_delay_seconds,
                max_delay=self.config.retry_max_delay_seconds,
                description=description,
            )
        except Exception as e:
            return self._failure(intent, AttachmentPhase.SUBMIT, e)

        logger.info(f"Volume {kind} action id: {action.action_id}")

        try:
            action = wait_for_action(
                self.provider,
                action,
                cancel_event=cancel_event,
                poll_interval=self.config.poll_interval_seconds,
                timeout_seconds=self.config.action_timeout_seconds,
                max_poll_failures=self.config.max_poll_failures,
            )
        except Exception as e:
            result = self._failure(intent, AttachmentPhase.POLL, e)
            result.action = action
            return result

        return AttachmentResult(
            intent.volume_id, intent.node_id, AttachmentOutcome.SATISFIED, action=action
        )

    def _failure(self, intent: AttachmentIntent, phase: AttachmentPhase, cause: Exception) -> AttachmentResult:
        if isinstance(cause, OperationCancelledError):
            error_class, outcome = AttachmentCancelledError, AttachmentOutcome.CANCELLED
        elif isinstance(cause, (RetryTimeoutError, ActionTimeoutError)):
            error_class, outcome = AttachmentTimeoutError, AttachmentOutcome.TIMED_OUT
        else:
            error_class, outcome = AttachmentError, AttachmentOutcome.FAILED

        error = error_class(intent.volume_id, intent.node_id, phase.value, cause)
        if outcome == AttachmentOutcome.CANCELLED:
            logger.info(str(error))
        else:
            logger.error(str(error))
        return AttachmentResult(intent.volume_id, intent.node_id, outcome, error=error)
