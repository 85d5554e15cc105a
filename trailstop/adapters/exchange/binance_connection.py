from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Optional

from trailstop.adapters.exchange._binance_client import AsyncClient
from trailstop.adapters.exchange.events import (
    BinanceConnectionClosed,
    BinanceConnectionEstablished,
    BinanceConnectionFailed,
)


@dataclass
class BinanceConnectionConfig:
    api_key: str
    api_secret: str
    testnet: bool
    recv_window: int
    timeout: float

    @classmethod
    def from_env(cls) -> "BinanceConnectionConfig":
        api_key = os.getenv("BINANCE_API_KEY", "")
        api_secret = os.getenv("BINANCE_API_SECRET", "")
        if not api_key or not api_secret:
            raise RuntimeError("BINANCE_API_KEY and BINANCE_API_SECRET must be set")
        return cls(
            api_key=api_key,
            api_secret=api_secret,
            testnet=os.getenv("BINANCE_TESTNET", "1") == "1",
            recv_window=int(os.getenv("BINANCE_RECV_WINDOW", "5000")),
            timeout=float(os.getenv("BINANCE_TIMEOUT", "10")),
        )


class BinanceConnection:
    def __init__(
        self,
        config: BinanceConnectionConfig,
        client: Optional[AsyncClient] = None,
        *,
        event_logger: Optional[Callable[[object], None]] = None,
    ) -> None:
        self._config = config
        self._client = client
        self._event_logger = event_logger

    @property
    def config(self) -> BinanceConnectionConfig:
        return self._config

    @property
    def client(self) -> AsyncClient:
        if self._client is None:
            raise RuntimeError("Binance is not connected")
        return self._client

    def is_connected(self) -> bool:
        return self._client is not None

    async def connect(self) -> AsyncClient:
        if self._client is not None:
            await self.close(reason="reconnect")
        try:
            client = await AsyncClient.create(
                self._config.api_key,
                self._config.api_secret,
                testnet=self._config.testnet,
            )
        except Exception as exc:
            self._log_event(
                BinanceConnectionFailed.now(
                    testnet=self._config.testnet,
                    error_type=type(exc).__name__,
                    message=str(exc),
                )
            )
            raise
        self._client = client
        offset = getattr(client, "timestamp_offset", None)
        self._log_event(
            BinanceConnectionEstablished.now(
                testnet=self._config.testnet,
                server_time_offset_ms=int(offset) if isinstance(offset, (int, float)) else None,
            )
        )
        return client

    async def close(self, *, reason: str = "disconnect") -> None:
        client = self._client
        if client is None:
            return
        self._client = None
        await client.close_connection()
        self._log_event(BinanceConnectionClosed.now(testnet=self._config.testnet, reason=reason))

    def status(self) -> dict[str, object]:
        return {
            "connected": self.is_connected(),
            "testnet": self._config.testnet,
            "recv_window": self._config.recv_window,
            "timeout": self._config.timeout,
        }

    def _log_event(self, event: object) -> None:
        if self._event_logger:
            self._event_logger(event)
