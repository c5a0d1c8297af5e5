"""
Custom exception classes for the relay.

Every exception raised by relay code on purpose derives from
``RelayError`` so callers can catch relay failures in one place.
"""


class RelayError(Exception):
    """Base class for relay errors."""

    pass


class EnvelopeDecodeError(RelayError):
    """
    Inbound frame could not be decoded.

    Raised for malformed JSON, JSON that is not an object, envelopes whose
    fields have the wrong types.
    The consumer drops the frame and keeps the connection open.
    """

    pass


class HandshakeRejectedError(RelayError):
    """
    WebSocket handshake refused.

    Raised when the client does not offer the configured subprotocol.
    """

    pass


class ConnectionClosedError(RelayError):
    """
    Write attempted on a connection that is no longer open.
    """

    pass
