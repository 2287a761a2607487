"""
Resilience components.

Reconnect backoff with jitter for the relay client.
"""

from ws_relay.components.resilience.retry import (
    ReconnectBackoff,
    RetryConfig,
    calculate_delay_with_jitter,
    create_client_retry_config,
    should_retry,
)

__all__ = [
    "ReconnectBackoff",
    "RetryConfig",
    "calculate_delay_with_jitter",
    "create_client_retry_config",
    "should_retry",
]
