"""
Reconnect backoff for the relay client.

Delays grow exponentially from initial_delay up to max_delay, each one
randomized by ±jitter_factor so that clients dropped by the same server
restart do not all come back in the same instant.

    backoff = ReconnectBackoff(create_client_retry_config(max_attempts=10))
    while backoff.can_retry():
        delay = backoff.next_delay()   # ~3s, ~6s, ~12s, ~24s, ~30s, ...
        ...
    backoff.reset()                    # after a successful open
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Final

DEFAULT_INITIAL_DELAY: Final[float] = 3.0
DEFAULT_MAX_DELAY: Final[float] = 30.0
DEFAULT_BACKOFF_BASE: Final[float] = 2.0
DEFAULT_JITTER_FACTOR: Final[float] = 0.25

# Beyond this the delay is pinned at max_delay anyway
_MAX_EXPONENT: Final[int] = 64


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """
    Backoff parameters.

    Attributes:
        initial_delay: Delay before the first retry, in seconds.
        max_delay: Upper bound for any delay, before jitter.
        backoff_base: Growth factor per attempt.
        jitter_factor: Fraction of the delay added or removed at random.
        max_attempts: Consecutive failed attempts before giving up, None for never.
    """

    initial_delay: float = DEFAULT_INITIAL_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    backoff_base: float = DEFAULT_BACKOFF_BASE
    jitter_factor: float = DEFAULT_JITTER_FACTOR
    max_attempts: int | None = None

    def __post_init__(self) -> None:
        if self.initial_delay <= 0:
            raise ValueError("initial_delay must be positive")
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        if self.backoff_base < 1:
            raise ValueError("backoff_base must be >= 1")
        if not 0 <= self.jitter_factor <= 1:
            raise ValueError("jitter_factor must be between 0 and 1")
        if self.max_attempts is not None and self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")


def calculate_delay_with_jitter(attempt: int, config: RetryConfig | None = None) -> float:
    """
    Delay before retry number ``attempt`` (0-indexed).

        min(initial_delay * backoff_base ** attempt, max_delay) * (1 ± jitter_factor)

    Never negative.
    """
    config = config or RetryConfig()

    exponent = min(attempt, _MAX_EXPONENT)
    delay = min(config.initial_delay * config.backoff_base ** exponent, config.max_delay)

    jitter_range = delay * config.jitter_factor
    return max(0.0, delay + random.uniform(-jitter_range, jitter_range))


def should_retry(attempt: int, max_attempts: int | None) -> bool:
    """True while fewer than max_attempts attempts have been made."""
    return max_attempts is None or attempt < max_attempts


class ReconnectBackoff:
    """
    Attempt counter for one reconnecting client.

    Counts consecutive failures; a successful connection calls reset().
    """

    def __init__(self, config: RetryConfig | None = None) -> None:
        self.config = config or RetryConfig()
        self.attempts = 0

    def can_retry(self) -> bool:
        return should_retry(self.attempts, self.config.max_attempts)

    def next_delay(self) -> float:
        """Delay for the next attempt; counts that attempt."""
        delay = calculate_delay_with_jitter(self.attempts, self.config)
        self.attempts += 1
        return delay

    def reset(self) -> None:
        self.attempts = 0


def create_client_retry_config(
    max_delay: float = DEFAULT_MAX_DELAY,
    max_attempts: int | None = None,
) -> RetryConfig:
    """
    Retry config for relay client reconnects: 3s doubling up to max_delay.

    Args:
        max_delay: Maximum delay between attempts.
        max_attempts: Consecutive failures before giving up, None to retry forever.
    """
    return RetryConfig(
        initial_delay=DEFAULT_INITIAL_DELAY,
        max_delay=max_delay,
        max_attempts=max_attempts,
    )
