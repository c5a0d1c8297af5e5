from fastapi import APIRouter
from starlette.websockets import WebSocket

from relay.api.ws.websocket import RelayWebSocketEndpoint
from relay.constants import EmptyTextPolicy, RelayMode
from relay.exceptions import EnvelopeDecodeError
from relay.logging import logger
from relay.schemas.envelope import (
    ChatMessage,
    IdAnnouncement,
    decode_envelope,
    encode_envelope,
)
from relay.settings import app_settings

router = APIRouter()


@router.websocket_route("/chat")
class ChatRelay(RelayWebSocketEndpoint):
    """
    Envelope-mode relay.

    Announces the assigned client id right after the handshake and relays
    ``message`` envelopes to every peer except the sender, with the
    sender's ``clientKey`` blanked. The sender is identified by the id
    assigned at registration; the ``clientKey`` a client puts in its
    envelopes is never used to decide who is excluded.
    """

    mode = RelayMode.ENVELOPE

    async def on_connect(self, websocket: WebSocket) -> None:
        await super().on_connect(websocket)
        if self.connection is None:
            return

        announcement = IdAnnouncement(client_key=self.client_id)
        await self.connection.send_text(encode_envelope(announcement))

    async def relay(self, text: str) -> None:
        """
        Decode an envelope and fan it out.

        Malformed envelopes are logged and dropped, the connection stays
        open. Unknown ``type`` values and client-sent ``id`` envelopes are
        ignored.
        """
        try:
            envelope = decode_envelope(text)
        except EnvelopeDecodeError as e:
            logger.warning(f"Malformed envelope from {self.client_id}: {e}")
            self.drop("malformed", str(e))
            return

        if envelope is None or isinstance(envelope, IdAnnouncement):
            self.drop("ignored_type", "envelope type is not relayed")
            return

        await self.relay_message(envelope)

    async def relay_message(self, message: ChatMessage) -> None:
        if (
            not message.text
            and app_settings.EMPTY_TEXT_POLICY == EmptyTextPolicy.DROP
        ):
            self.drop("empty_text", "empty text")
            return

        if message.client_key and message.client_key != self.client_id:
            logger.debug(
                f"Client {self.client_id} sent foreign clientKey "
                f"{message.client_key!r}"
            )

        try:
            payload = encode_envelope(message.for_rebroadcast())
        except ValueError as e:
            # Lone surrogates, or extra fields too deeply nested to serialize
            logger.warning(f"Unencodable envelope from {self.client_id}: {e}")
            self.drop("malformed", str(e))
            return

        logger.debug(f"Received message: {message!r}")
        await self.fan_out(payload, include_sender=False)
