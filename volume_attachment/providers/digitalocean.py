"""
DigitalOcean Storage Provider Implementation

Talks to the DigitalOcean v2 REST API for block storage volumes and the
actions that attach/detach them to droplets.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

import requests

from .base import (
    ActionInfo,
    AuthenticationError,
    ProviderConnectionError,
    ProviderError,
    StorageProvider,
    VolumeInfo,
)

logger = logging.getLogger(__name__)

PROVIDER_NAME = "digitalocean"


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def parse_volume(data: Dict[str, Any]) -> VolumeInfo:
    """
    Parse a DigitalOcean volume object into VolumeInfo.

    Args:
        data: The "volume" object from the API response

    Returns:
        VolumeInfo with droplet_ids preserved in API order
    """
    region = data.get("region") or {}
    return VolumeInfo(
        volume_id=data["id"],
        attached_node_ids=[int(d) for d in data.get("droplet_ids") or []],
        name=data.get("name"),
        region=region.get("slug") if isinstance(region, dict) else region,
        size_gb=data.get("size_gigabytes"),
    )


def parse_action(data: Dict[str, Any]) -> ActionInfo:
    """
    Parse a DigitalOcean action object into ActionInfo.

    The API does not return a reason for errored actions, so one is
    synthesized from the action type and resource.
    """
    status = data.get("status", "")
    kind = data.get("type", "")
    resource_id = data.get("resource_id")
    failure_reason = None
    if status == "errored":
        failure_reason = f"{kind} action {data['id']} on resource {resource_id} errored"

    return ActionInfo(
        action_id=int(data["id"]),
        kind=kind,
        status=status,
        resource_id=str(resource_id) if resource_id is not None else None,
        started_at=_parse_timestamp(data.get("started_at")),
        completed_at=_parse_timestamp(data.get("completed_at")),
        failure_reason=failure_reason,
    )


class DigitalOceanProvider(StorageProvider):
    """DigitalOcean implementation of StorageProvider interface."""

    def __init__(
        self,
        token: str,
        api_url: str = "https://api.digitalocean.com",
        timeout: float = 30,
    ):
        if not token:
            raise ValueError("A DigitalOcean API token is required")
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    def _make_request(
        self,
        method: str,
        endpoint: str,
        operation: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> requests.Response:
        """
        Make an authenticated API request.

        Args:
            method: HTTP method (GET, POST)
            endpoint: API path (e.g., "/v2/volumes/abc")
            operation: Operation name used in error messages
            data: JSON request body

        Returns:
            The raw response; status handling is left to the caller

        Raises:
            ProviderConnectionError: If no response was received
        """
        headers = {
            "Authorization": f"Bearer {self.token}",
            "Content-Type": "application/json",
        }
        url = f"{self.api_url}{endpoint}"

        try:
            return requests.request(
                method=method,
                url=url,
                headers=headers,
                json=data,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise ProviderConnectionError(
                str(e), provider=PROVIDER_NAME, operation=operation
            ) from e

    def _raise_for_error(
        self,
        response: requests.Response,
        operation: str,
    ) -> None:
        """
        Translate a non-2xx response into a ProviderError subclass.

        A 404 stays a plain ProviderError: on a submit it may be the droplet
        that is missing, on a poll the action. get_volume handles its own 404.
        """
        if response.ok:
            return

        error_id = None
        message = response.text or response.reason or "Unknown error"
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            error_id = body.get("id")
            message = body.get("message", message)

        error_class = ProviderError
        if response.status_code == 401:
            error_class = AuthenticationError

        raise error_class(
            message,
            provider=PROVIDER_NAME,
            operation=operation,
            status_code=response.status_code,
            error_id=error_id,
            details={"request_id": response.headers.get("x-request-id")},
        )

    def _parse_body(
        self, response: requests.Response, key: str, operation: str
    ) -> Dict[str, Any]:
        """Return body[key] from a 2xx response, or raise ProviderError."""
        try:
            value = response.json()[key]
        except (ValueError, KeyError, TypeError) as e:
            raise self._malformed(response, key, operation, str(e)) from e
        if not isinstance(value, dict):
            raise self._malformed(response, key, operation, f"got {type(value).__name__}")
        return value

    def _malformed(
        self, response: requests.Response, key: str, operation: str, detail: str
    ) -> ProviderError:
        return ProviderError(
            f"Malformed response body, expected \"{key}\" object: {detail}",
            provider=PROVIDER_NAME,
            operation=operation,
            status_code=response.status_code,
            details={"request_id": response.headers.get("x-request-id")},
        )

    # === Block Storage (Volumes) ===

    def get_volume(self, volume_id: str) -> Optional[VolumeInfo]:
        """Get volume information; None when the volume does not exist."""
        response = self._make_request(
            "GET", f"/v2/volumes/{volume_id}", operation="get_volume"
        )
        if response.status_code == 404:
            logger.debug(f"Volume {volume_id} not found")
            return None

        self._raise_for_error(response, "get_volume")
        return parse_volume(self._parse_body(response, "volume", "get_volume"))

    def _submit_volume_action(
        self, volume_id: str, node_id: int, action_type: str
    ) -> ActionInfo:
        operation = f"{action_type}_volume"
        response = self._make_request(
            "POST",
            f"/v2/volumes/{volume_id}/actions",
            operation=operation,
            data={"type": action_type, "droplet_id": node_id},
        )
        self._raise_for_error(response, operation)
        return parse_action(self._parse_body(response, "action", operation))

    def attach_volume(self, volume_id: str, node_id: int) -> ActionInfo:
        """Submit a volume attach action for a droplet."""
        return self._submit_volume_action(volume_id, node_id, "attach")

    def detach_volume(self, volume_id: str, node_id: int) -> ActionInfo:
        """Submit a volume detach action for a specific droplet."""
        return self._submit_volume_action(volume_id, node_id, "detach")

    # === Actions ===

    def get_action(self, action_id: int) -> ActionInfo:
        """Get the latest status of an action."""
        response = self._make_request(
            "GET", f"/v2/actions/{action_id}", operation="get_action"
        )
        self._raise_for_error(response, "get_action")
        return parse_action(self._parse_body(response, "action", "get_action"))
