"""
Metrics and observability components.
"""

from ws_relay.components.metrics.collector import (
    MetricsCollector,
    BroadcastMetrics,
    ConnectionMetrics,
    MessageMetrics,
)

__all__ = [
    "MetricsCollector",
    "BroadcastMetrics",
    "ConnectionMetrics",
    "MessageMetrics",
]
