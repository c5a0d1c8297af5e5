"""
End-to-end relay tests over real WebSocket sessions.

Every test talks to a freshly built application through the Starlette
TestClient, so handshake, registry and fan-out run together.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from relay import application
from relay.constants import WS_POLICY_VIOLATION_CODE, ClientIDStrategy, RelayMode
from relay.settings import app_settings

SUBPROTOCOL = "sample-protocol"


def connect(client: TestClient, path: str = "/chat"):
    return client.websocket_connect(path, subprotocols=[SUBPROTOCOL])


def health(client: TestClient) -> dict[str, int]:
    return client.get("/health").json()["connections"]


class TestEnvelopeRelay:
    """Chat relay on ``/chat``."""

    def test_clients_receive_their_own_ids(self, client):
        with connect(client) as ws_a, connect(client) as ws_b:
            id_a = ws_a.receive_json()
            id_b = ws_b.receive_json()

            assert id_a["type"] == "id"
            assert id_b["type"] == "id"
            assert id_a["clientKey"] != id_b["clientKey"]
            assert isinstance(id_a["date"], int)

    def test_handshake_echoes_subprotocol(self, client):
        with connect(client) as ws:
            assert ws.accepted_subprotocol == SUBPROTOCOL

    def test_message_reaches_peer_with_blanked_client_key(self, client):
        with connect(client) as ws_a, connect(client) as ws_b:
            key_a = ws_a.receive_json()["clientKey"]
            ws_b.receive_json()

            ws_a.send_json(
                {
                    "type": "message",
                    "text": "hi",
                    "clientKey": key_a,
                    "date": 1700000000000,
                }
            )

            assert ws_b.receive_json() == {
                "type": "message",
                "text": "hi",
                "clientKey": "",
                "date": 1700000000000,
            }

    def test_sender_does_not_receive_own_message(self, client):
        """
        Test that the sender is excluded.

        B answers after receiving A's message; the first frame A sees
        afterwards must be B's answer, not its own message.
        """
        with connect(client) as ws_a, connect(client) as ws_b:
            ws_a.receive_json()
            ws_b.receive_json()

            ws_a.send_json({"type": "message", "text": "from a"})
            assert ws_b.receive_json()["text"] == "from a"

            ws_b.send_json({"type": "message", "text": "from b"})
            assert ws_a.receive_json()["text"] == "from b"

    def test_messages_arrive_in_send_order(self, client):
        with connect(client) as ws_a, connect(client) as ws_b:
            ws_a.receive_json()
            ws_b.receive_json()

            for i in range(10):
                ws_a.send_json({"type": "message", "text": str(i)})

            received = [ws_b.receive_json()["text"] for _ in range(10)]
            assert received == [str(i) for i in range(10)]

    def test_malformed_frames_keep_connection_open(self, client):
        with connect(client) as ws_a, connect(client) as ws_b:
            ws_a.receive_json()
            ws_b.receive_json()

            ws_a.send_text("{not json")
            ws_a.send_text('"just a string"')
            ws_a.send_json({"type": "message", "text": 42})
            ws_a.send_json({"type": "typing"})
            ws_a.send_text("[" * 30000)
            ws_a.send_text(r'{"type": "message", "text": "\ud800"}')
            ws_a.send_json({"type": "message", "text": "still here"})

            assert ws_b.receive_json()["text"] == "still here"

            # The sender is still connected and receiving
            ws_b.send_json({"type": "message", "text": "reply"})
            assert ws_a.receive_json()["text"] == "reply"

    def test_extra_fields_reach_peer(self, client):
        with connect(client) as ws_a, connect(client) as ws_b:
            key_a = ws_a.receive_json()["clientKey"]
            ws_b.receive_json()

            ws_a.send_json(
                {"type": "message", "text": "x", "clientKey": key_a, "reqKey": "r1"}
            )

            received = ws_b.receive_json()
            assert received["reqKey"] == "r1"
            assert received["clientKey"] == ""

    def test_disconnect_removes_client(self, client):
        with connect(client) as ws_a:
            ws_a.receive_json()

            with connect(client) as ws_b:
                ws_b.receive_json()
                assert health(client)["envelope"] == 2

            assert health(client)["envelope"] == 1

            # A keeps working with nobody left to receive
            ws_a.send_json({"type": "message", "text": "alone"})

        assert health(client)["envelope"] == 0

    def test_handshake_without_subprotocol_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/chat"):
                pass  # pragma: no cover

        assert exc_info.value.code == WS_POLICY_VIOLATION_CODE
        assert health(client)["envelope"] == 0

    def test_handshake_with_other_subprotocol_is_rejected(self, client):
        with pytest.raises(WebSocketDisconnect) as exc_info:
            with client.websocket_connect("/chat", subprotocols=["chat"]):
                pass  # pragma: no cover

        assert exc_info.value.code == WS_POLICY_VIOLATION_CODE

    def test_sequential_ids(self):
        with patch.object(
            app_settings, "CLIENT_ID_STRATEGY", ClientIDStrategy.SEQUENTIAL
        ):
            app = application()

        with TestClient(app) as client:
            with connect(client) as ws_a, connect(client) as ws_b:
                assert ws_a.receive_json()["clientKey"] == "0"
                assert ws_b.receive_json()["clientKey"] == "1"

            with connect(client) as ws_c:
                assert ws_c.receive_json()["clientKey"] == "2"


class TestEchoRelay:
    """Echo-all relay on ``/echo``."""

    def test_every_client_receives_every_frame(self, client):
        with (
            connect(client, "/echo") as ws_a,
            connect(client, "/echo") as ws_b,
            connect(client, "/echo") as ws_c,
        ):
            ws_a.send_text("ping")

            assert ws_a.receive_text() == "ping"
            assert ws_b.receive_text() == "ping"
            assert ws_c.receive_text() == "ping"

    def test_modes_do_not_share_clients(self, client):
        with connect(client, "/echo") as ws_echo, connect(client) as ws_chat:
            ws_chat.receive_json()

            ws_echo.send_text("echo only")
            assert ws_echo.receive_text() == "echo only"

            counts = health(client)
            assert counts == {"envelope": 1, "echo": 1}


class TestDefaultRoute:
    """``/`` serves the configured relay mode."""

    def test_default_route_is_envelope_mode(self, client):
        with connect(client, "/") as ws:
            assert ws.receive_json()["type"] == "id"

    def test_default_route_follows_relay_mode(self):
        with patch.object(app_settings, "RELAY_MODE", RelayMode.ECHO):
            app = application()

        with TestClient(app) as client:
            with connect(client, "/") as ws_a, connect(client, "/") as ws_b:
                ws_a.send_text("ping")

                assert ws_a.receive_text() == "ping"
                assert ws_b.receive_text() == "ping"
