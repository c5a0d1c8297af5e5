"""
Prometheus metrics for relay connections and message fan-out.
"""

from relay.utils.metrics._helpers import (
    _get_or_create_counter,
    _get_or_create_gauge,
    _get_or_create_histogram,
)

ws_connections_active = _get_or_create_gauge(
    "ws_connections_active",
    "Number of registered relay connections",
    ["mode"],
)

ws_connections_total = _get_or_create_counter(
    "ws_connections_total",
    "Total relay connection attempts",
    ["mode", "status"],  # accepted, rejected_subprotocol
)

ws_messages_received_total = _get_or_create_counter(
    "ws_messages_received_total",
    "Total inbound relay frames",
    ["mode"],
)

ws_messages_relayed_total = _get_or_create_counter(
    "ws_messages_relayed_total",
    "Total inbound frames fanned out to peers",
    ["mode"],
)

ws_messages_dropped_total = _get_or_create_counter(
    "ws_messages_dropped_total",
    "Total inbound frames dropped before fan-out",
    ["mode", "reason"],  # malformed, too_large, binary, empty_text, ignored_type
)

ws_broadcast_send_failures_total = _get_or_create_counter(
    "ws_broadcast_send_failures_total",
    "Peer writes that failed or timed out during fan-out",
    ["reason"],  # timeout, error
)

ws_broadcast_duration_seconds = _get_or_create_histogram(
    "ws_broadcast_duration_seconds",
    "Duration of one fan-out across all peers in seconds",
    ["mode"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 5.0),
)


__all__ = [
    "ws_connections_active",
    "ws_connections_total",
    "ws_messages_received_total",
    "ws_messages_relayed_total",
    "ws_messages_dropped_total",
    "ws_broadcast_send_failures_total",
    "ws_broadcast_duration_seconds",
]
