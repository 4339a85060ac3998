"""
Retry ceiling and backoff helpers.

The classifier only says whether an error is retryable; how many times a
viewer is offered a retry, and how long to wait first, is decided here.
"""

import time
import random
import logging
from typing import Protocol

from .models import ClassifiedError


class RetryConfig(Protocol):
    """Protocol for config objects that support retry settings."""
    max_retries: int
    retry_base_delay: int
    retry_max_delay: int
    retry_jitter_percent: float


def calculate_retry_delay(
    retry_count: int,
    base_delay: int = 2,
    max_delay: int = 30,
    jitter_percent: float = 0.2
) -> float:
    """
    Calculate exponential backoff delay with jitter.

    Args:
        retry_count: Current retry attempt number (1-indexed)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay cap in seconds
        jitter_percent: Percentage of jitter to add (±)

    Returns:
        Calculated delay in seconds with jitter applied
    """
    # Exponential backoff with cap at attempt 4 (2^4 = 16x base)
    delay = min(
        base_delay * (2 ** min(retry_count - 1, 4)),
        max_delay
    )

    jitter = delay * jitter_percent * (random.random() - 0.5)
    return max(0.0, delay + jitter)


class RetryBudget:
    """Counts retries of one failing step against a ceiling."""

    def __init__(self, max_retries: int = 3):
        self.max_retries = max_retries
        self.retry_count = 0

    def can_retry(self, error: ClassifiedError) -> bool:
        return error.is_retryable and self.retry_count < self.max_retries

    def consume(self) -> int:
        self.retry_count += 1
        return self.retry_count

    def reset(self) -> None:
        self.retry_count = 0


def wait_before_retry(
    retry_count: int,
    config: RetryConfig,
    logger: logging.Logger
) -> None:
    """
    Sleep with exponential backoff before a retry.

    Args:
        retry_count: Current retry attempt number
        config: Configuration object with retry settings
        logger: Logger instance for output

    Raises:
        KeyboardInterrupt: If the user cancels during backoff (Ctrl+C)
    """
    if config.retry_base_delay <= 0:
        return

    actual_delay = calculate_retry_delay(
        retry_count,
        config.retry_base_delay,
        config.retry_max_delay,
        config.retry_jitter_percent
    )

    logger.info(f"Waiting {actual_delay:.1f}s before retry {retry_count}...")

    try:
        time.sleep(actual_delay)
    except KeyboardInterrupt:
        logger.warning("Retry cancelled by user")
        raise
