"""Backoff for transient GitHub API failures."""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Iterator, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""

    max_retries: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 30.0  # seconds
    exponential_base: float = 2.0
    jitter: bool = True


class RetryExhausted(Exception):
    """Every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: Optional[Exception] = None):
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts")


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Delay before retry number ``attempt`` (0-indexed), +/-25% with jitter."""
    delay = min(config.base_delay * config.exponential_base**attempt, config.max_delay)
    if config.jitter:
        delay *= random.uniform(0.75, 1.25)
    return max(0.0, delay)


def backoff_delays(config: RetryConfig) -> Iterator[float]:
    """One delay per allowed retry."""
    for attempt in range(config.max_retries):
        yield calculate_delay(attempt, config)


def retry_with_backoff(
    func: Callable[[], T],
    config: Optional[RetryConfig] = None,
    retryable_exceptions: tuple = (Exception,),
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Call ``func`` until it succeeds or the retries run out.

    Exceptions outside ``retryable_exceptions`` propagate immediately.

    Raises:
        RetryExhausted: Carrying the last retryable error
    """
    delays = backoff_delays(config or RetryConfig())
    attempts = 0
    while True:
        attempts += 1
        try:
            return func()
        except retryable_exceptions as e:
            delay = next(delays, None)
            if delay is None:
                raise RetryExhausted(attempts, e) from e
            logger.warning(f"Attempt {attempts} failed: {e}. Retrying in {delay:.1f}s...")
            sleep(delay)
