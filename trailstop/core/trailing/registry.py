from __future__ import annotations

import asyncio
from typing import Optional

from loguru import logger

from trailstop.core.market_data.ports import TickFeedPort
from trailstop.core.orders.models import OrderState
from trailstop.core.orders.ports import EventBus, ExchangeOrderPort
from trailstop.core.trailing.config import TrailingStopConfig
from trailstop.core.trailing.dispatcher import TickDispatcher
from trailstop.core.trailing.events import MonitorStarted, SymbolSubscribed, SymbolUnsubscribed
from trailstop.core.trailing.processor import OrderProcessor


class MonitorRegistry:
    """
    Directory of monitored stop orders.

    Invariants, held under `_lock`:
    - a processor is in `_processors` iff it is in exactly one `_symbols` set;
    - a symbol is subscribed on the tick feed iff its set is non-empty.
    """

    def __init__(
        self,
        order_port: ExchangeOrderPort,
        tick_feed: TickFeedPort,
        *,
        config: TrailingStopConfig,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._order_port = order_port
        self._tick_feed = tick_feed
        self._config = config
        self._event_bus = event_bus
        self._processors: dict[int, OrderProcessor] = {}
        self._symbols: dict[str, set[OrderProcessor]] = {}
        self._lock = asyncio.Lock()
        self.dispatcher = TickDispatcher(self.processors_for)

    def __len__(self) -> int:
        return len(self._processors)

    def __contains__(self, order_id: object) -> bool:
        return order_id in self._processors

    def get(self, order_id: int) -> Optional[OrderProcessor]:
        return self._processors.get(order_id)

    def symbols(self) -> list[str]:
        return sorted(self._symbols)

    def processors_for(self, symbol: str) -> tuple[OrderProcessor, ...]:
        processors = self._symbols.get(symbol)
        if not processors:
            return ()
        return tuple(processors)

    async def register(self, order: OrderState) -> Optional[OrderProcessor]:
        if not order.is_stop_order:
            logger.debug(
                f"[monitor registry] ignoring {order.symbol} order_id={order.order_id} of type {order.order_type}"
            )
            return None

        async with self._lock:
            existing = self._processors.get(order.order_id) or self._tracking(order.order_id)
            if existing is not None:
                return existing

            processor = OrderProcessor(
                order,
                order_port=self._order_port,
                config=self._config,
                owner=self,
                event_bus=self._event_bus,
            )
            interested = self._symbols.get(order.symbol)
            first_interest = not interested
            if first_interest:
                await self._tick_feed.subscribe(order.symbol, self.dispatcher.on_tick)
                interested = set()
                self._symbols[order.symbol] = interested
            interested.add(processor)
            self._processors[order.order_id] = processor

        processor.start()
        logger.info(
            f"[monitor registry] monitoring {order.symbol} {order.order_type} order_id={order.order_id} "
            f"stop={order.stop_price} qty={order.remaining_qty}"
        )
        if first_interest:
            self._publish(SymbolSubscribed.now(order.symbol))
        self._publish(
            MonitorStarted.now(
                order_id=order.order_id,
                symbol=order.symbol,
                order_type=order.order_type,
                stop_price=order.stop_price,
                remaining_qty=order.remaining_qty,
            )
        )
        return processor

    async def deregister(self, order_id: int, processor: Optional[OrderProcessor] = None) -> bool:
        async with self._lock:
            current = self._processors.get(order_id)
            if current is None or (processor is not None and current is not processor):
                return False
            del self._processors[order_id]
            unsubscribed = await self._release(current)

        logger.info(f"[monitor registry] released {current.symbol} order_id={order_id}")
        if unsubscribed:
            self._publish(SymbolUnsubscribed.now(unsubscribed))
        await current.close()
        return True

    async def rekey(
        self,
        old_order_id: int,
        new_order_id: int,
        processor: Optional[OrderProcessor] = None,
    ) -> None:
        displaced: Optional[OrderProcessor] = None
        unsubscribed: Optional[str] = None
        async with self._lock:
            current = self._processors.get(old_order_id)
            if current is None or (processor is not None and current is not processor):
                logger.warning(
                    f"[monitor registry] cannot rekey order_id={old_order_id} -> {new_order_id}; not registered"
                )
                return
            existing = self._processors.get(new_order_id)
            if existing is not None and existing is not current:
                # registered by a resync before the replacing processor adopted it
                logger.warning(
                    f"[monitor registry] order_id={new_order_id} monitored twice; dropping the duplicate monitor"
                )
                displaced = existing
                unsubscribed = await self._release(existing)
            del self._processors[old_order_id]
            self._processors[new_order_id] = current
        logger.debug(f"[monitor registry] rekeyed {current.symbol} order_id={old_order_id} -> {new_order_id}")
        if unsubscribed:
            self._publish(SymbolUnsubscribed.now(unsubscribed))
        if displaced is not None:
            await displaced.close()

    async def close(self) -> None:
        async with self._lock:
            processors = list(self._processors.values())
            symbols = list(self._symbols)
            self._processors.clear()
            self._symbols.clear()
            for symbol in symbols:
                await self._unsubscribe(symbol)
        for symbol in symbols:
            self._publish(SymbolUnsubscribed.now(symbol))
        await asyncio.gather(*(processor.close() for processor in processors))

    def _tracking(self, order_id: int) -> Optional[OrderProcessor]:
        for processor in self._processors.values():
            if processor.order_id == order_id:
                return processor
        return None

    async def _release(self, processor: OrderProcessor) -> Optional[str]:
        symbol = processor.symbol
        interested = self._symbols.get(symbol)
        if interested is None:
            return None
        interested.discard(processor)
        if interested:
            return None
        self._symbols.pop(symbol, None)
        await self._unsubscribe(symbol)
        return symbol

    async def _unsubscribe(self, symbol: str) -> None:
        try:
            await self._tick_feed.unsubscribe(symbol)
        except Exception:
            logger.exception(f"[monitor registry] unsubscribe failed for {symbol}")

    def _publish(self, event: object) -> None:
        if self._event_bus:
            self._event_bus.publish(event)
