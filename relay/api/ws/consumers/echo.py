from fastapi import APIRouter

from relay.api.ws.websocket import RelayWebSocketEndpoint
from relay.constants import RelayMode

router = APIRouter()


@router.websocket_route("/echo")
class EchoRelay(RelayWebSocketEndpoint):
    """
    Echo-all relay.

    No identity announcement and no envelope: every text frame goes out
    verbatim to every registered client, the sender included.
    """

    mode = RelayMode.ECHO

    async def relay(self, text: str) -> None:
        await self.fan_out(text, include_sender=True)
