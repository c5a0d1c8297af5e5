import asyncio

from starlette.websockets import WebSocketDisconnect

from relay.constants import WS_GOING_AWAY_CODE, RelayMode
from relay.exceptions import ConnectionClosedError
from relay.logging import logger
from relay.managers.client_id import (
    ClientIDGenerator,
    UUIDClientIDGenerator,
    create_client_id_generator,
)
from relay.managers.connection import Connection
from relay.settings import Settings
from relay.utils.metrics import MetricsCollector


class ConnectionRegistry:
    """
    Registry of live relay connections keyed by client id.

    Assigns client identities and fans messages out to registered peers.
    Every read or write of the mapping happens under a single lock; the
    mapping itself is never handed out. Broadcasts snapshot the peers under
    the lock and write to the snapshot after releasing it, each write
    bounded by ``send_timeout``. A peer that fails or times out is
    unregistered and closed without affecting delivery to the others.
    """

    def __init__(
        self,
        name: str = RelayMode.ENVELOPE,
        id_generator: ClientIDGenerator | None = None,
        send_timeout: float = 5.0,
    ) -> None:
        """
        Args:
            name: Label used in logs and metrics, normally the relay mode.
            id_generator: Source of client ids, random UUIDs by default.
            send_timeout: Upper bound in seconds for one peer write.
        """
        self.name = name
        self.send_timeout = send_timeout
        self._id_generator = id_generator or UUIDClientIDGenerator()
        self._connections: dict[str, Connection] = {}
        self._lock = asyncio.Lock()

    async def register(self, connection: Connection) -> str:
        """
        Assign a fresh client id to a connection and store it.

        An id that collides with a registered client is discarded and a new
        one requested, so two open connections never share an id.

        Args:
            connection: The accepted connection.

        Returns:
            The client id assigned to the connection.
        """
        async with self._lock:
            client_id = self._id_generator.next_id()
            while client_id in self._connections:
                logger.warning(
                    f"Client id collision on {client_id}, generating another"
                )
                client_id = self._id_generator.next_id()

            connection.client_id = client_id
            self._connections[client_id] = connection
            total = len(self._connections)

        MetricsCollector.record_ws_connection_accepted(self.name)
        logger.debug(
            f"[{self.name}] registered client {client_id} ({total} connected)"
        )
        return client_id

    async def unregister(self, client_id: str) -> bool:
        """
        Remove a client from the registry.

        Unknown ids are ignored, which makes the call safe to repeat when a
        close races with a failed-send cleanup.

        Args:
            client_id: The id to remove.

        Returns:
            True if an entry was removed, False if the id was not registered.
        """
        async with self._lock:
            connection = self._connections.pop(client_id, None)
            total = len(self._connections)

        if connection is None:
            return False

        connection.mark_closed()
        MetricsCollector.record_ws_disconnection(self.name)
        logger.debug(
            f"[{self.name}] unregistered client {client_id} ({total} connected)"
        )
        return True

    async def broadcast_except(self, sender_id: str, payload: str) -> int:
        """
        Deliver a frame to every registered client except the sender.

        Args:
            sender_id: Client id excluded from delivery.
            payload: Text frame to send.

        Returns:
            Number of peers the frame was written to.
        """
        return await self._broadcast(payload, exclude=sender_id)

    async def broadcast_all(self, payload: str) -> int:
        """
        Deliver a frame to every registered client.

        Args:
            payload: Text frame to send.

        Returns:
            Number of peers the frame was written to.
        """
        return await self._broadcast(payload)

    def count(self) -> int:
        """Number of registered connections."""
        return len(self._connections)

    def is_registered(self, client_id: str) -> bool:
        return client_id in self._connections

    async def close_all(self, code: int = WS_GOING_AWAY_CODE) -> None:
        """
        Unregister and close every connection, used on shutdown.

        Closes run concurrently, so stuck peers cost one close timeout in
        total rather than one each.

        Args:
            code: Close code sent to each peer.
        """
        async with self._lock:
            connections = list(self._connections.values())
            self._connections.clear()

        for connection in connections:
            connection.mark_closed()
            MetricsCollector.record_ws_disconnection(self.name)

        await asyncio.gather(
            *[
                connection.close(code=code, reason="Server shutting down")
                for connection in connections
            ]
        )

        if connections:
            logger.info(
                f"[{self.name}] closed {len(connections)} connections"
            )

    async def _broadcast(
        self, payload: str, exclude: str | None = None
    ) -> int:
        async with self._lock:
            targets = [
                (client_id, connection)
                for client_id, connection in self._connections.items()
                if client_id != exclude
            ]

        if not targets:
            return 0

        results = await asyncio.gather(
            *[
                self._deliver(client_id, connection, payload)
                for client_id, connection in targets
            ]
        )
        return sum(results)

    async def _deliver(
        self, client_id: str, connection: Connection, payload: str
    ) -> bool:
        """
        Write one frame to one peer, dropping the peer on failure.

        Returns:
            True if the write completed.
        """
        try:
            await asyncio.wait_for(
                connection.send_text(payload), timeout=self.send_timeout
            )
            return True
        except TimeoutError:
            logger.warning(
                f"[{self.name}] send to client {client_id} timed out "
                f"after {self.send_timeout}s"
            )
            MetricsCollector.record_broadcast_send_failure("timeout")
        except (
            WebSocketDisconnect,
            ConnectionError,
            ConnectionClosedError,
            RuntimeError,
        ) as e:
            # WebSocketDisconnect: client disconnected
            # ConnectionError: network errors
            # RuntimeError: WebSocket in invalid state
            logger.warning(
                f"[{self.name}] failed to send to client {client_id}: {e!r}"
            )
            MetricsCollector.record_broadcast_send_failure("error")
        except Exception as e:
            logger.warning(
                f"[{self.name}] unexpected error sending to client "
                f"{client_id}: {e!r}"
            )
            MetricsCollector.record_broadcast_send_failure("error")

        await self.unregister(client_id)
        await connection.close(code=WS_GOING_AWAY_CODE)
        return False


def create_registries(
    settings: Settings,
) -> dict[RelayMode, ConnectionRegistry]:
    """
    Build one registry per relay mode.

    Envelope and echo clients never see each other's frames, so each mode
    gets its own registry and id generator.

    Args:
        settings: Application settings.

    Returns:
        Mapping of relay mode to registry.
    """
    return {
        mode: ConnectionRegistry(
            name=mode,
            id_generator=create_client_id_generator(
                settings.CLIENT_ID_STRATEGY
            ),
            send_timeout=settings.BROADCAST_SEND_TIMEOUT_SECONDS,
        )
        for mode in RelayMode
    }
