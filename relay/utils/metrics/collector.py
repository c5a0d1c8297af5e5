"""
Facade for centralized metrics emission.

Provides high-level methods for recording metrics without exposing
Prometheus implementation details to the rest of the codebase.
"""

from relay.utils.metrics.websocket import (
    ws_broadcast_duration_seconds,
    ws_broadcast_send_failures_total,
    ws_connections_active,
    ws_connections_total,
    ws_messages_dropped_total,
    ws_messages_received_total,
    ws_messages_relayed_total,
)


class MetricsCollector:
    """
    Centralized facade for relay Prometheus metrics.

    All methods are static for easy use without instantiation.
    """

    @staticmethod
    def record_ws_connection_accepted(mode: str) -> None:
        """Record a registered relay connection."""
        ws_connections_total.labels(mode=mode, status="accepted").inc()
        ws_connections_active.labels(mode=mode).inc()

    @staticmethod
    def record_ws_connection_rejected(mode: str, reason: str) -> None:
        """
        Record a refused handshake.

        Args:
            mode: Relay mode of the endpoint.
            reason: Short reason, e.g. 'subprotocol'.
        """
        ws_connections_total.labels(
            mode=mode, status=f"rejected_{reason}"
        ).inc()

    @staticmethod
    def record_ws_disconnection(mode: str) -> None:
        """Record a registered connection going away."""
        ws_connections_active.labels(mode=mode).dec()

    @staticmethod
    def record_ws_message_received(mode: str) -> None:
        ws_messages_received_total.labels(mode=mode).inc()

    @staticmethod
    def record_ws_message_relayed(mode: str, duration: float) -> None:
        """
        Record a completed fan-out.

        Args:
            mode: Relay mode of the endpoint.
            duration: Fan-out duration in seconds.
        """
        ws_messages_relayed_total.labels(mode=mode).inc()
        ws_broadcast_duration_seconds.labels(mode=mode).observe(duration)

    @staticmethod
    def record_ws_message_dropped(mode: str, reason: str) -> None:
        ws_messages_dropped_total.labels(mode=mode, reason=reason).inc()

    @staticmethod
    def record_broadcast_send_failure(reason: str) -> None:
        """
        Record a peer write that failed during fan-out.

        Args:
            reason: 'timeout' or 'error'
        """
        ws_broadcast_send_failures_total.labels(reason=reason).inc()
