from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Optional

from loguru import logger

from trailstop.adapters.exchange._binance_client import BinanceSocketManager, parse_binance_millis
from trailstop.adapters.exchange.binance_connection import BinanceConnection
from trailstop.core.market_data.models import PriceTick
from trailstop.core.market_data.ports import TickFeedPort, TickHandler


@dataclass
class _StreamState:
    handler: TickHandler
    task: asyncio.Task


class BinanceTradeStream(TickFeedPort):
    def __init__(
        self,
        connection: BinanceConnection,
        *,
        socket_manager: Optional[BinanceSocketManager] = None,
        reconnect_delay: float = 5.0,
    ) -> None:
        self._connection = connection
        self._socket_manager = socket_manager
        self._reconnect_delay = reconnect_delay
        self._streams: dict[str, _StreamState] = {}
        self._lock = asyncio.Lock()

    def active_symbols(self) -> list[str]:
        return sorted(self._streams)

    async def subscribe(self, symbol: str, handler: TickHandler) -> None:
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValueError("symbol is required")
        async with self._lock:
            existing = self._streams.get(symbol)
            if existing and not existing.task.done():
                existing.handler = handler
                return
            task = asyncio.create_task(self._pump(symbol), name=f"trailstop-aggtrade-{symbol}")
            self._streams[symbol] = _StreamState(handler=handler, task=task)
        logger.info(f"[binance stream] subscribed to {symbol} aggregate trades")

    async def unsubscribe(self, symbol: str) -> None:
        symbol = symbol.strip().upper()
        if not symbol:
            return
        async with self._lock:
            state = self._streams.pop(symbol, None)
        if state is None:
            return
        state.task.cancel()
        await asyncio.gather(state.task, return_exceptions=True)
        logger.info(f"[binance stream] unsubscribed from {symbol}")

    async def close(self) -> None:
        async with self._lock:
            states = list(self._streams.values())
            self._streams.clear()
        for state in states:
            state.task.cancel()
        await asyncio.gather(*(state.task for state in states), return_exceptions=True)

    def _manager(self) -> BinanceSocketManager:
        if self._socket_manager is None:
            self._socket_manager = BinanceSocketManager(self._connection.client)
        return self._socket_manager

    async def _pump(self, symbol: str) -> None:
        while True:
            try:
                async with self._manager().aggtrade_socket(symbol) as socket:
                    while True:
                        message = await socket.recv()
                        self._deliver(symbol, message)
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.warning(
                    f"[binance stream] {symbol} socket error: {exc}; reconnecting in {self._reconnect_delay}s"
                )
            await asyncio.sleep(self._reconnect_delay)

    def _deliver(self, symbol: str, message: Any) -> None:
        if isinstance(message, dict) and message.get("e") == "error":
            raise RuntimeError(message.get("m") or "stream error")
        tick = parse_agg_trade(message)
        if tick is None:
            return
        state = self._streams.get(symbol)
        if state is None:
            return
        try:
            state.handler(tick)
        except Exception:
            logger.exception(f"[binance stream] tick handler failed for {symbol} price={tick.price}")


def parse_agg_trade(message: Any) -> Optional[PriceTick]:
    if not isinstance(message, dict):
        return None
    if "data" in message and isinstance(message["data"], dict):
        message = message["data"]
    if message.get("e") not in ("aggTrade", "trade"):
        return None
    symbol = message.get("s")
    if not symbol:
        return None
    try:
        price = float(message["p"])
    except (KeyError, TypeError, ValueError):
        return None
    if price != price or price <= 0:
        return None
    return PriceTick(
        symbol=str(symbol).upper(),
        price=price,
        timestamp=parse_binance_millis(message.get("T") or message.get("E")),
    )
