"""
JSON chat envelope exchanged with browser clients.

One envelope is one JSON object in one UTF-8 text frame, discriminated
by ``type``:

    {"type": "id", "clientKey": "<id>", "date": 1700000000000}
    {"type": "message", "text": "hi", "clientKey": "<id>", "date": ..., "msgId": 3}

``id`` envelopes travel server to client only; ``message`` envelopes are
relayed to peers with ``clientKey`` blanked.
"""

import json
import time
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError

from relay.constants import EnvelopeType
from relay.exceptions import EnvelopeDecodeError


def now_ms() -> int:
    """Current time as integer epoch milliseconds."""
    return time.time_ns() // 1_000_000


class IdAnnouncement(BaseModel):  # type: ignore[misc]
    """Identity assigned to a client, sent once right after the handshake."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["id"] = "id"
    client_key: str = Field(alias="clientKey")
    date: int = Field(default_factory=now_ms)


class ChatMessage(BaseModel):  # type: ignore[misc]
    """
    Chat text sent by a client for fan-out to its peers.

    Fields the relay does not know about (``reqKey`` and the like) are kept
    and forwarded unchanged.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    type: Literal["message"] = "message"
    text: str = ""
    client_key: str = Field(default="", alias="clientKey")
    date: int | None = None
    msg_id: int | None = Field(default=None, alias="msgId")

    def for_rebroadcast(self) -> "ChatMessage":
        """
        Copy of the message as peers should see it.

        The sender's identity is blanked and a missing send time is stamped
        with the server clock.
        """
        return self.model_copy(
            update={
                "client_key": "",
                "date": self.date if self.date is not None else now_ms(),
            }
        )


Envelope = Annotated[IdAnnouncement | ChatMessage, Field(discriminator="type")]

envelope_adapter: TypeAdapter[IdAnnouncement | ChatMessage] = TypeAdapter(
    Envelope
)

_KNOWN_TYPES = tuple(t.value for t in EnvelopeType)


def decode_envelope(text: str) -> IdAnnouncement | ChatMessage | None:
    """
    Parse one inbound text frame.

    Args:
        text: Raw frame payload.

    Returns:
        The parsed envelope, or None when ``type`` is missing or unknown.

    Raises:
        EnvelopeDecodeError: If the frame is not a JSON object (including
            JSON nested beyond the parser's recursion limit) or a known
            envelope type has fields of the wrong type.
    """
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise EnvelopeDecodeError(f"Invalid JSON: {e.msg}") from e
    except RecursionError as e:
        raise EnvelopeDecodeError("JSON nested too deeply") from e

    if not isinstance(data, dict):
        raise EnvelopeDecodeError(
            f"Envelope must be a JSON object, got {type(data).__name__}"
        )

    if data.get("type") not in _KNOWN_TYPES:
        return None

    try:
        return envelope_adapter.validate_python(data)
    except ValidationError as e:
        raise EnvelopeDecodeError(
            f"Invalid {data['type']} envelope: {e.error_count()} error(s)"
        ) from e


def encode_envelope(envelope: IdAnnouncement | ChatMessage) -> str:
    """
    Serialize an envelope to its wire form.

    Declared fields left at None are omitted; extra fields are written as
    received, nulls included.

    Raises:
        ValueError: If the envelope holds something JSON cannot carry, such
            as a lone surrogate decoded from a ``\\ud800`` escape.
    """
    unset = {
        name
        for name in type(envelope).model_fields
        if getattr(envelope, name) is None
    }
    return envelope.model_dump_json(by_alias=True, exclude=unset)
