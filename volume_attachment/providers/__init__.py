"""
Storage Provider Factory

This module builds the storage provider the attachment reconciler talks to.
The provider is constructed from explicit configuration and handed to the
reconciler; no provider instance is cached at module level.

Usage:
    from volume_attachment.providers import get_storage_provider

    provider = get_storage_provider()
    volume = provider.get_volume('506f78a4-e098-11e5-ad9f-000f53306ae1')

Configuration:
    Set CLOUD_PROVIDER environment variable:
    - 'digitalocean' (default): DigitalOcean Block Storage

    Provider-specific configuration via environment variables:
    - DigitalOcean: DIGITALOCEAN_TOKEN, DIGITALOCEAN_API_URL
"""

import logging
from typing import Optional

from ..config import ReconcilerConfig
from .base import (
    ActionInfo,
    AuthenticationError,
    ProviderConnectionError,
    ProviderError,
    StorageProvider,
    VolumeInfo,
)

logger = logging.getLogger(__name__)


def get_storage_provider(
    provider_name: Optional[str] = None,
    config: Optional[ReconcilerConfig] = None,
    **kwargs
) -> StorageProvider:
    """
    Build a storage provider instance.

    Args:
        provider_name: Override the provider (defaults to config.provider_name)
        config: Reconciler configuration (defaults to ReconcilerConfig.from_env())
        **kwargs: Provider-specific overrides (token, api_url, timeout)

    Returns:
        StorageProvider instance (DigitalOceanProvider)

    Raises:
        ValueError: If provider name is not recognized or credentials are missing

    Example:
        # Use default provider from environment
        provider = get_storage_provider()

        # Explicit token for tests or scripts
        provider = get_storage_provider('digitalocean', token='dop_v1_...')
    """
    config = config or ReconcilerConfig.from_env()
    name = (provider_name or config.provider_name).lower()

    logger.info(f"Initializing storage provider: {name}")

    if name == "digitalocean":
        from .digitalocean import DigitalOceanProvider
        token = kwargs.get("token") or config.api_token
        if not token:
            raise ValueError(
                "DIGITALOCEAN_TOKEN environment variable must be set for "
                "DigitalOcean provider"
            )
        return DigitalOceanProvider(
            token=token,
            api_url=kwargs.get("api_url") or config.api_url,
            timeout=kwargs.get("timeout") or config.http_timeout_seconds,
        )

    raise ValueError(
        f"Unknown storage provider: {name}. "
        f"Valid options: digitalocean"
    )


__all__ = [
    # Factory functions
    "get_storage_provider",
    # Base classes
    "StorageProvider",
    # Data classes
    "VolumeInfo",
    "ActionInfo",
    # Exceptions
    "ProviderError",
    "ProviderConnectionError",
    "AuthenticationError",
]
