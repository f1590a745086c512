"""
Shared pytest fixtures for the volume attachment test suite

Provides:
- An in-memory storage provider that applies attach/detach on completion
- A fake clock that replaces time.monotonic / time.sleep
- Provider error factories
"""

import itertools
from typing import Any
from unittest.mock import patch

import pytest

from volume_attachment.config import ReconcilerConfig
from volume_attachment.providers.base import (
    ActionInfo,
    ProviderError,
    StorageProvider,
    VolumeInfo,
)


# ============================================================================
# Fake Clock
# ============================================================================

class FakeClock:
    """Monotonic clock that only moves when something sleeps."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds

    @property
    def elapsed(self) -> float:
        return sum(self.sleeps)


@pytest.fixture
def fake_clock():
    """Patch time.monotonic and time.sleep with a deterministic clock."""
    clock = FakeClock()
    with patch("time.monotonic", clock.monotonic), patch("time.sleep", clock.sleep):
        yield clock


# ============================================================================
# Fake Provider
# ============================================================================

class FakeStorageProvider(StorageProvider):
    """
    In-memory provider.

    Attach/detach create an in-progress action; the change to the volume's
    attached list is applied when a poll observes the action completing.
    """

    name = "fake"

    def __init__(self):
        self.volumes: dict[str, list[int]] = {}
        self.actions: dict[int, dict[str, Any]] = {}
        self.calls: list[tuple] = []
        self.attach_errors: list[Exception] = []
        self.detach_errors: list[Exception] = []
        self.get_volume_error: Exception | None = None
        self.get_action_errors: list[Exception] = []
        self.polls_until_done = 1
        self.final_status = "completed"
        self._ids = itertools.count(1000)

    @property
    def mutating_calls(self) -> list[tuple]:
        return [c for c in self.calls if c[0] in ("attach_volume", "detach_volume")]

    def get_volume(self, volume_id: str) -> VolumeInfo | None:
        self.calls.append(("get_volume", volume_id))
        if self.get_volume_error is not None:
            raise self.get_volume_error
        if volume_id not in self.volumes:
            return None
        return VolumeInfo(volume_id=volume_id, attached_node_ids=list(self.volumes[volume_id]))

    def _submit(self, kind: str, volume_id: str, node_id: int, apply) -> ActionInfo:
        action_id = next(self._ids)
        self.actions[action_id] = {
            "kind": kind,
            "volume_id": volume_id,
            "remaining": self.polls_until_done,
            "status": "in-progress",
            "apply": apply,
        }
        return ActionInfo(action_id=action_id, kind=kind, status="in-progress", resource_id=volume_id)

    def attach_volume(self, volume_id: str, node_id: int) -> ActionInfo:
        self.calls.append(("attach_volume", volume_id, node_id))
        if self.attach_errors:
            raise self.attach_errors.pop(0)

        def apply():
            self.volumes[volume_id] = [node_id]
        return self._submit("attach", volume_id, node_id, apply)

    def detach_volume(self, volume_id: str, node_id: int) -> ActionInfo:
        self.calls.append(("detach_volume", volume_id, node_id))
        if self.detach_errors:
            raise self.detach_errors.pop(0)

        def apply():
            attached = self.volumes.get(volume_id, [])
            if node_id in attached:
                attached.remove(node_id)
        return self._submit("detach", volume_id, node_id, apply)

    def get_action(self, action_id: int) -> ActionInfo:
        self.calls.append(("get_action", action_id))
        if self.get_action_errors:
            raise self.get_action_errors.pop(0)

        record = self.actions[action_id]
        if record["status"] == "in-progress":
            record["remaining"] -= 1
            if record["remaining"] <= 0:
                record["status"] = self.final_status
                if self.final_status == "completed":
                    record["apply"]()

        return ActionInfo(
            action_id=action_id,
            kind=record["kind"],
            status=record["status"],
            resource_id=record["volume_id"],
            failure_reason="provider failure" if record["status"] == "errored" else None,
        )


@pytest.fixture
def fake_provider():
    """In-memory storage provider."""
    return FakeStorageProvider()


@pytest.fixture
def fast_config():
    """Reconciler config with short, deterministic budgets."""
    return ReconcilerConfig(
        api_token="test-token",
        retry_timeout_seconds=300.0,
        retry_min_delay_seconds=1.0,
        retry_max_delay_seconds=10.0,
        poll_interval_seconds=3.0,
        action_timeout_seconds=60.0,
        max_poll_failures=3,
    )


# ============================================================================
# Provider Error Factories
# ============================================================================

@pytest.fixture
def pending_event_error():
    """Factory for the provider's 422 pending-event conflict."""
    def _create(operation: str = "attach_volume") -> ProviderError:
        return ProviderError(
            "Droplet already has a pending event.",
            provider="digitalocean",
            operation=operation,
            status_code=422,
            error_id="unprocessable_entity",
        )
    return _create


@pytest.fixture
def fatal_provider_error():
    """Factory for a non-retryable provider error."""
    def _create(
        message: str = "You do not have access for the attempted action.",
        status_code: int = 403,
        operation: str = "attach_volume",
    ) -> ProviderError:
        return ProviderError(
            message,
            provider="digitalocean",
            operation=operation,
            status_code=status_code,
            error_id="forbidden",
        )
    return _create
