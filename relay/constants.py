"""
Application-level constants for the relay protocol.

These values define wire-level behaviour and must not be changed via
environment variables. For configurable values (port, subprotocol,
timeouts, policies) see relay/settings.py.
"""

from enum import StrEnum


class RelayMode(StrEnum):
    """
    Fan-out behaviour of a relay endpoint.

    Attributes:
        ENVELOPE: JSON envelopes, identity announcement on connect,
            messages go to every peer except the sender.
        ECHO: opaque text frames, no identity announcement,
            messages go to every peer including the sender.
    """

    ENVELOPE = "envelope"
    ECHO = "echo"


class ClientIDStrategy(StrEnum):
    """Source of client identity tokens."""

    UUID = "uuid"
    SEQUENTIAL = "sequential"


class EmptyTextPolicy(StrEnum):
    """
    What to do with envelope messages whose text is empty.

    Attributes:
        RELAY: forward them like any other message.
        DROP: discard them before fan-out.
    """

    RELAY = "relay"
    DROP = "drop"


class EnvelopeType(StrEnum):
    """Discriminator values of the JSON envelope ``type`` field."""

    ID = "id"
    MESSAGE = "message"


# ============================================================================
# WebSocket Protocol Constants
# ============================================================================

# WebSocket close code for policy violations (RFC 6455 standard)
# Used when rejecting a handshake that does not offer the relay subprotocol
WS_POLICY_VIOLATION_CODE = 1008

# Close code sent to a peer dropped after a failed or timed-out broadcast write
WS_GOING_AWAY_CODE = 1001

# Timeout (seconds) when closing a dropped peer's WebSocket
# Ensures a stuck peer cannot hang the broadcasting connection
WS_CLOSE_TIMEOUT_SECONDS = 5

# Number of characters of the client id used as the logging correlation id
CORRELATION_ID_LENGTH = 8
