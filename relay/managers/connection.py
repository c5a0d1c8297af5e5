import asyncio

from starlette.websockets import WebSocket, WebSocketDisconnect

from relay.constants import WS_CLOSE_TIMEOUT_SECONDS
from relay.exceptions import ConnectionClosedError
from relay.logging import logger


class Connection:
    """
    Outbound sink for one accepted WebSocket session.

    Wraps the transport with a liveness flag and a write lock so that
    frames fanned out by different senders never interleave on the wire.
    Once closed, every write raises ``ConnectionClosedError``.
    """

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.client_id: str | None = None
        self._alive = True
        self._close_sent = False
        self._send_lock = asyncio.Lock()

    @property
    def alive(self) -> bool:
        return self._alive

    async def send_text(self, text: str) -> None:
        """
        Write one text frame to the peer.

        Args:
            text: Frame payload.

        Raises:
            ConnectionClosedError: If the connection was already closed.
        """
        if not self._alive:
            raise ConnectionClosedError(
                f"Connection {self.client_id} is closed"
            )

        async with self._send_lock:
            await self.websocket.send_text(text)

    def mark_closed(self) -> None:
        """Flip the liveness flag without touching the transport."""
        self._alive = False

    async def close(self, code: int, reason: str | None = None) -> None:
        """
        Close the transport from the server side.

        Sends at most one close frame. Errors from a transport that is
        already gone are logged and swallowed, the peer counts as closed
        either way.

        Args:
            code: WebSocket close code.
            reason: Optional close reason.
        """
        self.mark_closed()
        if self._close_sent:
            return

        self._close_sent = True
        try:
            await asyncio.wait_for(
                self.websocket.close(code=code, reason=reason),
                timeout=WS_CLOSE_TIMEOUT_SECONDS,
            )
        except (
            TimeoutError,
            WebSocketDisconnect,
            ConnectionError,
            RuntimeError,
        ) as e:
            # RuntimeError: close already sent or socket in invalid state
            logger.debug(f"Close of connection {self.client_id} failed: {e!r}")

    def __repr__(self) -> str:
        state = "open" if self._alive else "closed"
        return f"<Connection {self.client_id} {state}>"
