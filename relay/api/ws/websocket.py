import time
from typing import Any

from starlette import status
from starlette.endpoints import WebSocketEndpoint
from starlette.websockets import WebSocket, WebSocketDisconnect

from relay.constants import WS_POLICY_VIOLATION_CODE, RelayMode
from relay.exceptions import HandshakeRejectedError
from relay.logging import clear_log_context, logger, set_log_context
from relay.managers.connection import Connection
from relay.managers.connection_registry import ConnectionRegistry
from relay.middlewares.correlation_id import bind_correlation_id
from relay.settings import app_settings
from relay.utils.metrics import MetricsCollector


def negotiate_subprotocol(offered: list[str], required: str) -> str | None:
    """
    Pick the subprotocol to accept the handshake with.

    Args:
        offered: Subprotocols listed by the client, in preference order.
        required: Subprotocol the relay insists on; empty disables the check.

    Returns:
        The subprotocol to echo back, or None when none is required.

    Raises:
        HandshakeRejectedError: If ``required`` is set and not offered.
    """
    if not required:
        return None
    if required in offered:
        return required
    raise HandshakeRejectedError(
        f"Subprotocol {required!r} not offered (got {offered})"
    )


class RelayWebSocketEndpoint(WebSocketEndpoint):  # type: ignore[misc]
    """
    WebSocket endpoint driving one relay connection through its lifecycle.

    Connecting -> Open on ``on_connect`` (subprotocol check, accept,
    registration), Open -> Open on every ``on_receive``, Open -> Closed on
    ``on_disconnect`` which unregisters the client exactly once.
    Subclasses choose the fan-out behaviour by implementing ``relay``.
    """

    encoding = None  # decode() handles text and binary frames itself
    mode: RelayMode = RelayMode.ENVELOPE

    connection: Connection | None = None
    client_id: str | None = None

    @property
    def registry(self) -> ConnectionRegistry:
        """Registry shared by all endpoints of this relay mode."""
        return self.scope["app"].state.registries[self.mode]

    async def dispatch(self) -> None:
        """
        Manage the WebSocket connection lifecycle.

        1. Calls ``on_connect``; a refused handshake ends the session here.
        2. Reads frames one at a time, each fully relayed before the next is
           read, so frames of one sender reach every peer in order.
        3. Stops on a disconnect message or a transport error.
        4. Always calls ``on_disconnect`` with the resulting close code.
        """
        websocket = WebSocket(
            self.scope, receive=self.receive, send=self.send
        )

        close_code = status.WS_1000_NORMAL_CLOSURE

        try:
            await self.on_connect(websocket)
            if self.connection is None:
                return

            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.receive":
                    data = await self.decode(websocket, message)
                    await self.on_receive(websocket, data)
                elif message["type"] == "websocket.disconnect":
                    close_code = int(
                        message.get("code") or status.WS_1000_NORMAL_CLOSURE
                    )
                    break
        except WebSocketDisconnect as exc:
            close_code = exc.code
        except ConnectionError as exc:
            logger.warning(f"Transport error on client {self.client_id}: {exc}")
            close_code = status.WS_1006_ABNORMAL_CLOSURE
        except Exception as exc:
            close_code = status.WS_1011_INTERNAL_ERROR
            logger.error(
                f"Unexpected error on client {self.client_id}: {exc!r}",
                exc_info=True,
            )
            raise exc
        finally:
            await self.on_disconnect(websocket, close_code)

    async def decode(
        self, websocket: WebSocket, message: dict[str, Any]
    ) -> str | None:
        """
        Extract the payload of an inbound frame.

        Args:
            websocket: WebSocket connection instance
            message: Raw ASGI message

        Returns:
            The text payload, or None for binary frames.
        """
        return message.get("text")

    async def on_connect(self, websocket: WebSocket) -> None:
        """
        Accept and register the client.

        The handshake is refused with a policy-violation close when the
        client does not offer the configured subprotocol; in that case
        ``self.connection`` stays None.
        """
        try:
            subprotocol = negotiate_subprotocol(
                list(self.scope.get("subprotocols") or []),
                app_settings.WS_SUBPROTOCOL,
            )
        except HandshakeRejectedError as e:
            logger.info(f"[{self.mode}] handshake rejected: {e}")
            MetricsCollector.record_ws_connection_rejected(
                self.mode, "subprotocol"
            )
            await websocket.close(code=WS_POLICY_VIOLATION_CODE)
            return

        await websocket.accept(subprotocol=subprotocol)

        self.connection = Connection(websocket)
        self.client_id = await self.registry.register(self.connection)

        bind_correlation_id(self.client_id)
        set_log_context(client_id=self.client_id, mode=str(self.mode))

        logger.info(
            f"Connection accepted [{self.client_id}] from {websocket.client}"
        )

    async def on_receive(self, websocket: WebSocket, data: str | None) -> None:
        """
        Filter one inbound frame and hand it to ``relay``.

        Frames from a connection that was already dropped, binary frames
        and oversized frames are discarded.
        """
        MetricsCollector.record_ws_message_received(self.mode)

        if self.connection is None or not self.connection.alive:
            self.drop("closed", "frame from a closed connection")
            return

        if data is None:
            self.drop("binary", "binary frames are not relayed")
            return

        size = len(data.encode("utf-8"))
        if size > app_settings.MAX_MESSAGE_SIZE_BYTES:
            self.drop(
                "too_large",
                f"frame of {size} bytes exceeds "
                f"{app_settings.MAX_MESSAGE_SIZE_BYTES}",
            )
            return

        await self.relay(data)

    async def on_disconnect(self, websocket: WebSocket, close_code: int) -> None:
        """
        Release the registry entry of this client.

        Safe when the client never registered (refused handshake) and when
        a failed broadcast write already removed it.
        """
        if self.client_id is not None:
            await self.registry.unregister(self.client_id)
            logger.info(
                f"Peer {websocket.client} [{self.client_id}] disconnected. "
                f"Reason code: {close_code}."
            )

        clear_log_context()

    async def relay(self, text: str) -> None:
        """Fan one accepted text frame out to peers."""
        raise NotImplementedError()

    async def fan_out(self, payload: str, include_sender: bool) -> int:
        """
        Broadcast a payload through the registry and record the outcome.

        Args:
            payload: Text frame to deliver.
            include_sender: Whether the sending client receives it too.

        Returns:
            Number of peers the frame was written to.
        """
        start_time = time.perf_counter()
        if include_sender:
            delivered = await self.registry.broadcast_all(payload)
        else:
            delivered = await self.registry.broadcast_except(
                self.client_id, payload
            )
        MetricsCollector.record_ws_message_relayed(
            self.mode, time.perf_counter() - start_time
        )

        logger.debug(f"Relayed frame from {self.client_id} to {delivered} peers")
        return delivered

    def drop(self, reason: str, detail: str) -> None:
        """Log and count a discarded inbound frame."""
        MetricsCollector.record_ws_message_dropped(self.mode, reason)
        logger.debug(f"Dropped frame from {self.client_id}: {detail}")
