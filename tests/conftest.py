"""
Pytest configuration and fixtures for testing.

This module provides shared fixtures for registries, endpoint scopes and
the FastAPI test client.
"""

import os
from types import SimpleNamespace

import pytest

# Keep test runs from writing an error log file next to the sources
os.environ.setdefault("LOG_FILE_PATH", os.devnull)
os.environ.setdefault("ENVIRONMENT", "test")

SUBPROTOCOL = "sample-protocol"


@pytest.fixture
def registries():
    """
    Provides a fresh registry per relay mode.

    Returns:
        dict: RelayMode -> ConnectionRegistry
    """
    from relay.managers.connection_registry import create_registries
    from relay.settings import Settings

    return create_registries(Settings())


@pytest.fixture
def ws_scope(registries):
    """
    Provides an ASGI websocket scope whose app carries the registries.

    Args:
        registries: Fixture providing per-mode registries

    Returns:
        dict: Scope usable to instantiate relay endpoints directly
    """
    app = SimpleNamespace(state=SimpleNamespace(registries=registries))
    return {
        "type": "websocket",
        "path": "/chat",
        "app": app,
        "subprotocols": [SUBPROTOCOL],
    }


@pytest.fixture
def client():
    """
    Provides a TestClient bound to a freshly built application.

    The client is entered as a context manager so that every WebSocket
    session shares one event loop and the lifespan handlers run.
    """
    from fastapi.testclient import TestClient

    from relay import application

    with TestClient(application()) as test_client:
        yield test_client
