"""Environment-driven configuration for the attachment reconciler"""

import logging
import os
import sys
from dataclasses import dataclass

DEFAULT_PROVIDER = "digitalocean"
DEFAULT_API_URL = "https://api.digitalocean.com"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


@dataclass
class ReconcilerConfig:
    """
    Timing budgets and provider settings for one reconciler instance.

    Defaults mirror the provider's own limits: a five minute budget for
    getting a submission past pending-event conflicts, and up to an hour for
    the submitted action to finish.
    """
    provider_name: str = DEFAULT_PROVIDER
    api_token: str | None = None
    api_url: str = DEFAULT_API_URL
    retry_timeout_seconds: float = 300.0
    retry_min_delay_seconds: float = 1.0
    retry_max_delay_seconds: float = 10.0
    poll_interval_seconds: float = 3.0
    action_timeout_seconds: float = 3600.0
    max_poll_failures: int = 5
    http_timeout_seconds: float = 30.0
    log_level: str = "INFO"

    def __post_init__(self):
        if self.retry_timeout_seconds <= 0:
            raise ValueError("retry_timeout_seconds must be positive")
        if self.retry_min_delay_seconds <= 0:
            raise ValueError("retry_min_delay_seconds must be positive")
        if self.retry_max_delay_seconds < self.retry_min_delay_seconds:
            raise ValueError(
                "retry_max_delay_seconds must be >= retry_min_delay_seconds"
            )
        if self.poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be positive")
        if self.action_timeout_seconds <= 0:
            raise ValueError("action_timeout_seconds must be positive")
        if self.max_poll_failures < 1:
            raise ValueError("max_poll_failures must be at least 1")

    @classmethod
    def from_env(cls) -> "ReconcilerConfig":
        """
        Build configuration from environment variables.

        Token lookup order:
        1. DIGITALOCEAN_TOKEN
        2. DIGITALOCEAN_ACCESS_TOKEN

        Returns:
            ReconcilerConfig populated from the environment

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        token = (
            os.environ.get("DIGITALOCEAN_TOKEN")
            or os.environ.get("DIGITALOCEAN_ACCESS_TOKEN")
        )
        api_url = os.environ.get("DIGITALOCEAN_API_URL", DEFAULT_API_URL)

        return cls(
            provider_name=os.environ.get("CLOUD_PROVIDER", DEFAULT_PROVIDER).lower(),
            api_token=token,
            api_url=api_url.rstrip("/"),
            retry_timeout_seconds=_env_float("ATTACH_RETRY_TIMEOUT_SECONDS", 300.0),
            retry_min_delay_seconds=_env_float("ATTACH_RETRY_MIN_DELAY_SECONDS", 1.0),
            retry_max_delay_seconds=_env_float("ATTACH_RETRY_MAX_DELAY_SECONDS", 10.0),
            poll_interval_seconds=_env_float("ACTION_POLL_INTERVAL_SECONDS", 3.0),
            action_timeout_seconds=_env_float("ACTION_TIMEOUT_SECONDS", 3600.0),
            max_poll_failures=_env_int("ACTION_MAX_POLL_FAILURES", 5),
            http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", 30.0),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )


def setup_logging(level: str | int | None = None) -> None:
    """
    Send log records to stdout using the service log format.

    Without an explicit level, LOG_LEVEL is taken from ReconcilerConfig.from_env().
    """
    if level is None:
        level = ReconcilerConfig.from_env().log_level
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stdout
    )
