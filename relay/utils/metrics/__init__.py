"""
Prometheus metrics definitions and utilities.

Metrics live in subsystem modules and are re-exported here:

    from relay.utils.metrics import ws_connections_active

Code that emits metrics should go through the MetricsCollector facade:

    from relay.utils.metrics import MetricsCollector
    MetricsCollector.record_ws_message_received("envelope")
"""

from relay.utils.metrics._helpers import _get_or_create_gauge
from relay.utils.metrics.collector import MetricsCollector
from relay.utils.metrics.websocket import (
    ws_broadcast_duration_seconds,
    ws_broadcast_send_failures_total,
    ws_connections_active,
    ws_connections_total,
    ws_messages_dropped_total,
    ws_messages_received_total,
    ws_messages_relayed_total,
)

app_info = _get_or_create_gauge(
    "app_info",
    "Application information",
    ["version", "python_version", "environment"],
)

__all__ = [
    "MetricsCollector",
    "app_info",
    "ws_connections_active",
    "ws_connections_total",
    "ws_messages_received_total",
    "ws_messages_relayed_total",
    "ws_messages_dropped_total",
    "ws_broadcast_send_failures_total",
    "ws_broadcast_duration_seconds",
]
