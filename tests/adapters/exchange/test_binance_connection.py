from __future__ import annotations

import asyncio

import pytest

from trailstop.adapters.exchange import binance_connection
from trailstop.adapters.exchange.binance_connection import BinanceConnection, BinanceConnectionConfig
from trailstop.adapters.exchange.events import (
    BinanceConnectionClosed,
    BinanceConnectionEstablished,
    BinanceConnectionFailed,
)


def _config() -> BinanceConnectionConfig:
    return BinanceConnectionConfig(api_key="key", api_secret="secret", testnet=True, recv_window=5000, timeout=10.0)


class _FakeClient:
    def __init__(self) -> None:
        self.timestamp_offset = -42
        self.closed = False

    async def close_connection(self) -> None:
        self.closed = True


class _FakeAsyncClient:
    created: list[tuple[str, str, bool]] = []
    error: Exception | None = None

    @classmethod
    async def create(cls, api_key: str, api_secret: str, *, testnet: bool = False):
        cls.created.append((api_key, api_secret, testnet))
        if cls.error is not None:
            raise cls.error
        return _FakeClient()


def test_connect_and_close_publish_events(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeAsyncClient.created = []
    _FakeAsyncClient.error = None
    monkeypatch.setattr(binance_connection, "AsyncClient", _FakeAsyncClient)
    events: list[object] = []
    connection = BinanceConnection(_config(), event_logger=events.append)

    async def _scenario():
        client = await connection.connect()
        assert connection.is_connected()
        assert connection.client is client
        await connection.close()
        return client

    client = asyncio.run(_scenario())

    assert _FakeAsyncClient.created == [("key", "secret", True)]
    assert client.closed
    assert not connection.is_connected()
    assert isinstance(events[0], BinanceConnectionEstablished)
    assert events[0].server_time_offset_ms == -42
    assert isinstance(events[1], BinanceConnectionClosed)
    assert events[1].reason == "disconnect"


def test_connect_failure_is_published_and_raised(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeAsyncClient.created = []
    _FakeAsyncClient.error = ConnectionError("no route to host")
    monkeypatch.setattr(binance_connection, "AsyncClient", _FakeAsyncClient)
    events: list[object] = []
    connection = BinanceConnection(_config(), event_logger=events.append)

    with pytest.raises(ConnectionError):
        asyncio.run(connection.connect())

    assert not connection.is_connected()
    assert isinstance(events[0], BinanceConnectionFailed)
    assert events[0].error_type == "ConnectionError"
    _FakeAsyncClient.error = None


def test_client_requires_connection() -> None:
    connection = BinanceConnection(_config())

    with pytest.raises(RuntimeError, match="not connected"):
        connection.client
    assert connection.status()["connected"] is False


def test_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BINANCE_API_KEY", "k")
    monkeypatch.setenv("BINANCE_API_SECRET", "s")
    monkeypatch.setenv("BINANCE_TESTNET", "0")
    monkeypatch.setenv("BINANCE_RECV_WINDOW", "6000")
    monkeypatch.delenv("BINANCE_TIMEOUT", raising=False)

    config = BinanceConnectionConfig.from_env()

    assert config == BinanceConnectionConfig(api_key="k", api_secret="s", testnet=False, recv_window=6000, timeout=10.0)


def test_config_from_env_requires_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("BINANCE_API_KEY", raising=False)
    monkeypatch.setenv("BINANCE_API_SECRET", "s")

    with pytest.raises(RuntimeError, match="BINANCE_API_KEY"):
        BinanceConnectionConfig.from_env()
