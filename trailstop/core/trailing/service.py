from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from trailstop.core.orders.models import OrderState
from trailstop.core.orders.ports import ExchangeError, ExchangeOrderPort
from trailstop.core.trailing.processor import OrderProcessor
from trailstop.core.trailing.registry import MonitorRegistry


class TrailingStopService:
    def __init__(self, order_port: ExchangeOrderPort, registry: MonitorRegistry) -> None:
        self._order_port = order_port
        self._registry = registry

    @property
    def registry(self) -> MonitorRegistry:
        return self._registry

    async def start(self) -> int:
        """Register every open stop order found on the exchange and return how many are monitored."""
        logger.info("[trailing service] getting currently open orders...")
        open_orders = await self._order_port.list_open_orders()
        stop_orders = [order for order in open_orders if order.is_stop_order]
        logger.info(
            f"[trailing service] found {len(open_orders)} open orders, {len(stop_orders)} STOP_LOSS/STOP_LOSS_LIMIT"
        )
        await self._register_all(stop_orders)
        return len(self._registry)

    async def watch_order(self, symbol: str, order_id: int) -> Optional[OrderProcessor]:
        symbol = symbol.strip().upper()
        if not symbol:
            raise ValueError("symbol is required")
        if order_id <= 0:
            raise ValueError("order_id must be greater than zero")
        order = await self._order_port.query_order(symbol, order_id)
        if not order.is_stop_order:
            logger.warning(f"[trailing service] {symbol} order_id={order_id} is {order.order_type}; not a stop order")
            return None
        return await self._registry.register(order)

    async def resync(self) -> int:
        """Register stop orders opened since the last scan; returns how many were added."""
        before = len(self._registry)
        open_orders = await self._order_port.list_open_orders()
        new_orders = [
            order for order in open_orders if order.is_stop_order and order.order_id not in self._registry
        ]
        if new_orders:
            logger.info(f"[trailing service] resync found {len(new_orders)} new stop orders")
            await self._register_all(new_orders)
        return len(self._registry) - before

    async def run_resync(self, interval: float) -> None:
        if interval <= 0:
            raise ValueError("interval must be greater than zero")
        while True:
            await asyncio.sleep(interval)
            try:
                await self.resync()
            except ExchangeError as exc:
                logger.warning(f"[trailing service] resync failed: {exc}")

    async def stop(self) -> None:
        logger.info(f"[trailing service] stopping {len(self._registry)} monitors")
        await self._registry.close()

    async def _register_all(self, orders: list[OrderState]) -> None:
        for order in orders:
            try:
                await self._registry.register(order)
            except Exception:
                logger.exception(f"[trailing service] failed to monitor {order.symbol} order_id={order.order_id}")
