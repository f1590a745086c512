"""
Abstract base classes for block storage attachment providers.

This module defines the interface the attachment reconciler needs from a cloud
platform. The reconciler only ever reads a volume, submits attach/detach
actions and polls those actions; everything else about the platform (auth,
base URL, HTTP session) lives inside the concrete provider and is injected
at construction.

Provider Categories:
- StorageProvider: Volume reads and attach/detach actions (DigitalOcean Volumes)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime


ACTION_COMPLETED = "completed"
ACTION_ERRORED = "errored"

TERMINAL_ACTION_STATUSES = (ACTION_COMPLETED, ACTION_ERRORED)


@dataclass
class VolumeInfo:
    """Standardized volume information across providers."""
    volume_id: str
    attached_node_ids: list[int] = field(default_factory=list)
    name: str | None = None
    region: str | None = None
    size_gb: int | None = None


@dataclass
class ActionInfo:
    """A submitted asynchronous provider action."""
    action_id: int
    kind: str  # 'attach', 'detach'
    status: str  # 'in-progress', 'completed', 'errored'
    resource_id: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    failure_reason: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_ACTION_STATUSES


class StorageProvider(ABC):
    """
    Abstract interface for volume attachment operations.

    Implementations:
    - DigitalOcean: Block Storage Volumes attached to Droplets

    Example usage:
        provider = get_storage_provider()
        action = provider.attach_volume('vol-1', 200)
        action = provider.get_action(action.action_id)
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name (digitalocean)."""
        pass

    @abstractmethod
    def get_volume(self, volume_id: str) -> VolumeInfo | None:
        """
        Get volume details by ID.

        Args:
            volume_id: Provider-specific volume identifier

        Returns:
            VolumeInfo if found, None if the provider reports it does not exist

        Raises:
            ProviderError: For any failure other than "not found"
        """
        pass

    @abstractmethod
    def attach_volume(self, volume_id: str, node_id: int) -> ActionInfo:
        """
        Submit an attach action for a volume.

        Args:
            volume_id: Volume to attach
            node_id: Target compute node

        Returns:
            ActionInfo for the submitted action

        Raises:
            ProviderError: If the provider rejects the request
        """
        pass

    @abstractmethod
    def detach_volume(self, volume_id: str, node_id: int) -> ActionInfo:
        """
        Submit a detach action for a volume from a specific node.

        Args:
            volume_id: Volume to detach
            node_id: Node the volume should be detached from

        Returns:
            ActionInfo for the submitted action

        Raises:
            ProviderError: If the provider rejects the request
        """
        pass

    @abstractmethod
    def get_action(self, action_id: int) -> ActionInfo:
        """
        Get the current status of a submitted action.

        Args:
            action_id: Action identifier returned by attach/detach

        Returns:
            ActionInfo with the latest status

        Raises:
            ProviderError: If the status cannot be fetched
        """
        pass


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(
        self,
        message: str,
        provider: str,
        operation: str,
        status_code: int | None = None,
        error_id: str | None = None,
        details: dict | None = None
    ):
        self.message = message
        self.provider = provider
        self.operation = operation
        self.status_code = status_code
        self.error_id = error_id
        self.details = details or {}
        prefix = f"[{provider}] {operation}"
        if status_code is not None:
            prefix = f"{prefix} ({status_code})"
        super().__init__(f"{prefix}: {message}")


class ProviderConnectionError(ProviderError):
    """Request never got a response from the provider."""
    pass


class AuthenticationError(ProviderError):
    """Authentication failed."""
    pass
