"""
Configuration module for the watch access pipeline.

Handles environment variables, backend endpoints and default settings for
descriptor resolution, the guest allowance and the unlock flow.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError

load_dotenv()

# Constants
DEFAULT_REQUEST_TIMEOUT = 10
DEFAULT_GUEST_FREE_LIMIT = 2
DEFAULT_MAX_RETRIES = 3
DEFAULT_COUNTER_PATH = ".watch_state/guest_counter.json"

# Error messages
ERROR_BASE_URL_EMPTY = "API base URL cannot be empty"
ERROR_TIMEOUT_INVALID = "Request timeout must be positive"
ERROR_LIMIT_INVALID = "Guest free-watch limit cannot be negative"
ERROR_RETRIES_INVALID = "Maximum retries cannot be negative"


@dataclass
class WatchConfig:
    """Configuration class for the watch access backend."""

    # API Configuration
    base_url: str
    api_token: Optional[str] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    # Endpoint templates
    descriptor_path: str = "/watch-descriptor/{identifier}"
    unlock_path: str = "/watch/{identifier}/unlock"
    balance_path: str = "/wallet/balance"

    # Guest allowance
    guest_free_limit: int = DEFAULT_GUEST_FREE_LIMIT
    guest_counter_path: str = DEFAULT_COUNTER_PATH

    # Retry configuration
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_base_delay: int = 2       # Initial retry delay in seconds (0 disables waiting)
    retry_max_delay: int = 30       # Maximum retry delay in seconds
    retry_jitter_percent: float = 0.2  # Jitter percentage (±20%)

    support_email: str = "support@example.com"

    @classmethod
    def from_environment(cls) -> "WatchConfig":
        """
        Create configuration from environment variables.

        Returns:
            WatchConfig: Configuration instance

        Raises:
            ConfigurationError: If required environment variables are missing or malformed
        """
        base_url = os.getenv("WATCH_API_BASE_URL")

        if not base_url:
            raise ConfigurationError(
                "Missing WATCH_API_BASE_URL in environment or .env file\n"
                "Set it with: export WATCH_API_BASE_URL=https://example.com/api\n"
                "Or create a .env file with: WATCH_API_BASE_URL=https://example.com/api"
            )

        try:
            config = cls(
                base_url=base_url.rstrip("/"),
                api_token=os.getenv("WATCH_API_TOKEN") or None,
                request_timeout=float(os.getenv("WATCH_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)),
                guest_free_limit=int(os.getenv("WATCH_GUEST_FREE_LIMIT", DEFAULT_GUEST_FREE_LIMIT)),
                guest_counter_path=os.getenv("WATCH_GUEST_COUNTER_PATH", DEFAULT_COUNTER_PATH),
                max_retries=int(os.getenv("WATCH_MAX_RETRIES", DEFAULT_MAX_RETRIES)),
                retry_base_delay=int(os.getenv("WATCH_RETRY_BASE_DELAY", 2)),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting in environment: {e}")

        config.validate()
        return config

    @property
    def is_authenticated(self) -> bool:
        """A configured API token means requests are made on behalf of a signed-in viewer."""
        return bool(self.api_token)

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If any configuration values are invalid
        """
        if not self.base_url:
            raise ConfigurationError(ERROR_BASE_URL_EMPTY)

        if self.request_timeout <= 0:
            raise ConfigurationError(ERROR_TIMEOUT_INVALID)

        if self.guest_free_limit < 0:
            raise ConfigurationError(ERROR_LIMIT_INVALID)

        if self.max_retries < 0:
            raise ConfigurationError(ERROR_RETRIES_INVALID)

    def endpoint(self, template: str, **params: str) -> str:
        """Build an absolute endpoint URL from one of the path templates."""
        return f"{self.base_url.rstrip('/')}{template.format(**params)}"
