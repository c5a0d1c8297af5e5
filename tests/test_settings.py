"""Tests for environment-driven settings."""

import pytest
from pydantic import ValidationError

from relay.constants import ClientIDStrategy, EmptyTextPolicy, RelayMode
from relay.settings import Settings


def test_defaults(monkeypatch):
    for name in (
        "PORT",
        "RELAY_MODE",
        "WS_SUBPROTOCOL",
        "CLIENT_ID_STRATEGY",
        "EMPTY_TEXT_POLICY",
    ):
        monkeypatch.delenv(name, raising=False)

    settings = Settings()

    assert settings.PORT == 3001
    assert settings.RELAY_MODE == RelayMode.ENVELOPE
    assert settings.WS_SUBPROTOCOL == "sample-protocol"
    assert settings.CLIENT_ID_STRATEGY == ClientIDStrategy.UUID
    assert settings.EMPTY_TEXT_POLICY == EmptyTextPolicy.RELAY


def test_values_from_environment(monkeypatch):
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("RELAY_MODE", "echo")
    monkeypatch.setenv("WS_SUBPROTOCOL", "")
    monkeypatch.setenv("CLIENT_ID_STRATEGY", "sequential")
    monkeypatch.setenv("EMPTY_TEXT_POLICY", "drop")

    settings = Settings()

    assert settings.PORT == 8080
    assert settings.RELAY_MODE == RelayMode.ECHO
    assert settings.WS_SUBPROTOCOL == ""
    assert settings.CLIENT_ID_STRATEGY == ClientIDStrategy.SEQUENTIAL
    assert settings.EMPTY_TEXT_POLICY == EmptyTextPolicy.DROP


@pytest.mark.parametrize("value", ["0", "-1.5"])
def test_send_timeout_must_be_positive(monkeypatch, value):
    monkeypatch.setenv("BROADCAST_SEND_TIMEOUT_SECONDS", value)

    with pytest.raises(ValidationError):
        Settings()


@pytest.mark.parametrize("value", ["0", "70000"])
def test_port_range(monkeypatch, value):
    monkeypatch.setenv("PORT", value)

    with pytest.raises(ValidationError):
        Settings()


def test_unknown_mode_rejected(monkeypatch):
    monkeypatch.setenv("RELAY_MODE", "broadcast")

    with pytest.raises(ValidationError):
        Settings()
