from __future__ import annotations

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional, Protocol

from loguru import logger

from trailstop.core.market_data.models import PriceTick
from trailstop.core.orders.models import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    OrderState,
    OrderStatus,
    StopOrderSpec,
)
from trailstop.core.orders.ports import EventBus, ExchangeError, ExchangeOrderPort
from trailstop.core.trailing.config import ReorderConfigError, TrailingStopConfig
from trailstop.core.trailing.events import (
    ExchangeCallFailed,
    MonitorStopped,
    OrderStatusChecked,
    ReorderRejected,
    ReorderTriggered,
    StopOrderReplaced,
    StopProtectionLost,
    StopProtectionRestored,
    UnexpectedOrderStatus,
)
from trailstop.core.trailing.policy import ReorderAction, ReorderDecision, evaluate_reorder


class ProcessorStatus(str, Enum):
    ACTIVE = "active"
    STOPPED = "stopped"


class ProcessorOwner(Protocol):
    async def deregister(self, order_id: int, processor: Optional[OrderProcessor] = None) -> bool:
        """Stop monitoring the order and release the processor."""
        raise NotImplementedError

    async def rekey(
        self,
        old_order_id: int,
        new_order_id: int,
        processor: Optional[OrderProcessor] = None,
    ) -> None:
        """Move a processor to the id of its replacement order."""
        raise NotImplementedError


@dataclass(frozen=True)
class ProtectionGap:
    cancelled_order_id: int
    qty: float
    intended_stop_price: float
    stage: str


class OrderProcessor:
    """
    Owns the lifecycle of one monitored stop order.

    Ticks arrive through `submit` into a bounded mailbox drained by a single
    worker task, so decisions and replacements for one order never overlap.
    The tracked order id changes on every replacement; the processor does not.
    """

    def __init__(
        self,
        order: OrderState,
        *,
        order_port: ExchangeOrderPort,
        config: TrailingStopConfig,
        owner: Optional[ProcessorOwner] = None,
        event_bus: Optional[EventBus] = None,
    ) -> None:
        self._order = order
        self._order_port = order_port
        self._config = config
        self._owner = owner
        self._event_bus = event_bus
        self._status = ProcessorStatus.ACTIVE
        self._lock = asyncio.Lock()
        self._mailbox: asyncio.Queue[PriceTick] = asyncio.Queue(maxsize=config.mailbox_size)
        self._worker: Optional[asyncio.Task] = None
        self._last_reorder_at: Optional[datetime] = None
        self._protection_gap: Optional[ProtectionGap] = None
        self._dropped_ticks = 0

    @property
    def order(self) -> OrderState:
        return self._order

    @property
    def order_id(self) -> int:
        return self._order.order_id

    @property
    def symbol(self) -> str:
        return self._order.symbol

    @property
    def status(self) -> ProcessorStatus:
        return self._status

    @property
    def is_active(self) -> bool:
        return self._status is ProcessorStatus.ACTIVE

    @property
    def protection_gap(self) -> Optional[ProtectionGap]:
        return self._protection_gap

    @property
    def dropped_ticks(self) -> int:
        return self._dropped_ticks

    def start(self) -> None:
        if self._worker is not None or not self.is_active:
            return
        self._worker = asyncio.create_task(self._run(), name=f"trailstop-processor-{self.order_id}")

    def submit(self, tick: PriceTick) -> bool:
        if not self.is_active:
            return False
        if self._mailbox.full():
            try:
                self._mailbox.get_nowait()
            except asyncio.QueueEmpty:
                pass
            else:
                self._dropped_ticks += 1
                logger.debug(f"[trailing processor] {self.symbol} order_id={self.order_id} mailbox full; dropped oldest tick")
        self._mailbox.put_nowait(tick)
        return True

    async def close(self) -> None:
        self_stopped = self._status is ProcessorStatus.STOPPED
        self._status = ProcessorStatus.STOPPED
        if not self_stopped:
            # let an in-flight replacement finish before tearing down the worker
            async with self._lock:
                pass
        worker = self._worker
        if worker is None or worker is asyncio.current_task() or worker.done():
            return
        worker.cancel()
        await asyncio.gather(worker, return_exceptions=True)

    async def handle_tick(self, tick: PriceTick) -> Optional[ReorderDecision]:
        async with self._lock:
            if not self.is_active:
                return None
            if self._protection_gap is not None:
                await self._restore_protection(tick)
                return None

            order = self._order
            try:
                decision = evaluate_reorder(order, tick, self._config, last_reorder_at=self._last_reorder_at)
            except ReorderConfigError as exc:
                logger.error(
                    f"[trailing processor] {order.symbol} order_id={order.order_id} reorder rejected "
                    f"at price={tick.price}: {exc}"
                )
                self._publish(
                    ReorderRejected.now(
                        order_id=order.order_id,
                        symbol=order.symbol,
                        trade_price=tick.price,
                        reason=str(exc),
                    )
                )
                return None

            logger.debug(
                f"[trailing processor] {order.symbol} order_id={order.order_id} price={tick.price} "
                f"stop={order.stop_price} -> {decision.action.value}"
            )
            if decision.action == ReorderAction.CHECK_ORDER:
                await self._check_order(tick)
            elif decision.action == ReorderAction.REORDER:
                await self._replace(tick, decision)
            return decision

    async def _run(self) -> None:
        while self.is_active:
            tick = await self._mailbox.get()
            try:
                await self.handle_tick(tick)
            except Exception:
                logger.exception(
                    f"[trailing processor] unhandled error for {self.symbol} order_id={self.order_id} "
                    f"at price={tick.price}"
                )

    async def _check_order(self, tick: PriceTick) -> None:
        order = self._order
        try:
            refreshed = await self._order_port.query_order(order.symbol, order.order_id)
        except ExchangeError as exc:
            self._report_exchange_failure(exc, order, tick)
            return

        self._order = refreshed
        self._publish(
            OrderStatusChecked.now(
                order_id=refreshed.order_id,
                symbol=refreshed.symbol,
                status=refreshed.status,
                trade_price=tick.price,
            )
        )
        if refreshed.status in OPEN_STATUSES:
            logger.info(
                f"[trailing processor] {refreshed.symbol} order_id={refreshed.order_id} still {refreshed.status} "
                f"at price={tick.price}"
            )
            return
        if refreshed.status in TERMINAL_STATUSES:
            await self._stop(refreshed.status, reason="status_check")
            return
        self._report_unexpected_status(refreshed, context="status_check")

    async def _replace(self, tick: PriceTick, decision: ReorderDecision) -> None:
        previous = self._order
        new_stop_price = decision.new_stop_price
        qty = previous.remaining_qty
        if new_stop_price is None:
            raise ValueError("reorder decision without new_stop_price")
        if qty <= 0:
            logger.warning(
                f"[trailing processor] {previous.symbol} order_id={previous.order_id} has no remaining qty; "
                "skipping reorder"
            )
            return

        logger.info(
            f"[trailing processor] {previous.symbol} price={tick.price} moving stop "
            f"{previous.stop_price} -> {new_stop_price} qty={qty} ({decision.reason})"
        )
        self._publish(
            ReorderTriggered.now(
                order_id=previous.order_id,
                symbol=previous.symbol,
                trade_price=tick.price,
                old_stop_price=previous.stop_price,
                new_stop_price=new_stop_price,
                qty=qty,
                reason=decision.reason,
            )
        )

        logger.info(f"[trailing processor] {previous.symbol} cancelling order {previous.order_id}")
        try:
            cancelled = await self._order_port.cancel_order(previous.symbol, previous.order_id)
        except ExchangeError as exc:
            self._report_exchange_failure(exc, previous, tick)
            return

        if not await self._confirm_cancel(previous, cancelled, tick, qty=qty, new_stop_price=new_stop_price):
            return

        logger.info(f"[trailing processor] {previous.symbol} creating stop at {new_stop_price} qty={qty}")
        spec = StopOrderSpec(symbol=previous.symbol, qty=qty, stop_price=new_stop_price)
        try:
            created = await self._order_port.create_order(spec)
        except ExchangeError as exc:
            self._open_protection_gap(previous, qty=qty, new_stop_price=new_stop_price, stage="create", exc=exc)
            return

        await self._adopt(previous, created, tick)

    async def _confirm_cancel(
        self,
        previous: OrderState,
        cancelled: OrderState,
        tick: PriceTick,
        *,
        qty: float,
        new_stop_price: float,
    ) -> bool:
        if cancelled.status == OrderStatus.CANCELED:
            return True
        try:
            confirmed = await self._order_port.query_order(previous.symbol, previous.order_id)
        except ExchangeError as exc:
            self._open_protection_gap(
                previous,
                qty=qty,
                new_stop_price=new_stop_price,
                stage="confirm_cancel",
                exc=exc,
            )
            return False
        if confirmed.status == OrderStatus.CANCELED:
            return True

        self._order = confirmed
        if confirmed.status in TERMINAL_STATUSES:
            await self._stop(confirmed.status, reason="cancel_confirmation")
        elif confirmed.status in OPEN_STATUSES:
            logger.error(
                f"[trailing processor] {previous.symbol} cancel of order {previous.order_id} not confirmed "
                f"(status {confirmed.status}); abandoning reorder at price={tick.price}"
            )
        else:
            self._report_unexpected_status(confirmed, context="cancel_confirmation")
        return False

    async def _restore_protection(self, tick: PriceTick) -> None:
        gap = self._protection_gap
        if gap is None:
            return
        if gap.stage == "confirm_cancel":
            gap = await self._reconfirm_cancel(gap, tick)
            if gap is None:
                return
        previous = self._order
        if tick.price <= previous.stop_price:
            logger.critical(
                f"[trailing processor] {previous.symbol} still UNPROTECTED: price={tick.price} is at or below "
                f"cancelled stop {previous.stop_price} for qty={gap.qty}; manual action required"
            )
            return

        stop_price = previous.stop_price
        try:
            decision = evaluate_reorder(previous, tick, self._config)
        except ReorderConfigError as exc:
            logger.error(f"[trailing processor] {previous.symbol} cannot trail while restoring protection: {exc}")
        else:
            if decision.action == ReorderAction.REORDER and decision.new_stop_price is not None:
                stop_price = decision.new_stop_price

        spec = StopOrderSpec(symbol=previous.symbol, qty=gap.qty, stop_price=stop_price)
        try:
            created = await self._order_port.create_order(spec)
        except ExchangeError as exc:
            logger.critical(
                f"[trailing processor] {previous.symbol} still UNPROTECTED after retrying create "
                f"stop={stop_price} qty={gap.qty}: {exc}"
            )
            self._publish(
                ExchangeCallFailed.now(
                    operation=exc.operation,
                    symbol=previous.symbol,
                    order_id=exc.order_id,
                    error_type=type(exc).__name__,
                    message=exc.message,
                    code=exc.code,
                )
            )
            return

        self._protection_gap = None
        logger.warning(
            f"[trailing processor] {previous.symbol} protection restored with order {created.order_id} "
            f"stop={created.stop_price} qty={created.remaining_qty}"
        )
        self._publish(
            StopProtectionRestored.now(
                symbol=previous.symbol,
                cancelled_order_id=gap.cancelled_order_id,
                new_order_id=created.order_id,
                stop_price=created.stop_price,
                qty=created.remaining_qty,
            )
        )
        await self._adopt(previous, created, tick)

    async def _reconfirm_cancel(self, gap: ProtectionGap, tick: PriceTick) -> Optional[ProtectionGap]:
        """
        Re-query an order whose cancel was never confirmed.
        Returns the gap to restore, or None when nothing may be created on this tick.
        """
        previous = self._order
        try:
            confirmed = await self._order_port.query_order(previous.symbol, gap.cancelled_order_id)
        except ExchangeError as exc:
            self._report_exchange_failure(exc, previous, tick)
            return None

        if confirmed.status == OrderStatus.CANCELED:
            gap = replace(gap, stage="create")
            self._protection_gap = gap
            logger.warning(
                f"[trailing processor] {previous.symbol} cancel of order {gap.cancelled_order_id} confirmed late; "
                "restoring protection"
            )
            return gap

        self._order = confirmed
        if confirmed.status in OPEN_STATUSES:
            self._protection_gap = None
            logger.warning(
                f"[trailing processor] {previous.symbol} order {confirmed.order_id} is still {confirmed.status}; "
                "cancel did not take effect, keeping it"
            )
        elif confirmed.status in TERMINAL_STATUSES:
            self._protection_gap = None
            await self._stop(confirmed.status, reason="cancel_confirmation")
        else:
            self._report_unexpected_status(confirmed, context="cancel_confirmation")
        return None

    async def _adopt(self, previous: OrderState, created: OrderState, tick: PriceTick) -> None:
        self._order = created
        self._last_reorder_at = tick.timestamp
        logger.info(
            f"[trailing processor] {created.symbol} replaced order {previous.order_id} -> {created.order_id} "
            f"stop {previous.stop_price} -> {created.stop_price} qty={created.remaining_qty}"
        )
        self._publish(
            StopOrderReplaced.now(
                symbol=created.symbol,
                old_order_id=previous.order_id,
                new_order_id=created.order_id,
                old_stop_price=previous.stop_price,
                new_stop_price=created.stop_price,
                qty=created.remaining_qty,
            )
        )
        if self._owner is not None and created.order_id != previous.order_id:
            await self._owner.rekey(previous.order_id, created.order_id, processor=self)

    async def _stop(self, status: str, *, reason: str) -> None:
        order = self._order
        self._status = ProcessorStatus.STOPPED
        logger.info(
            f"[trailing processor] {order.symbol} order_id={order.order_id} is {status}; stopping monitor ({reason})"
        )
        self._publish(MonitorStopped.now(order_id=order.order_id, symbol=order.symbol, status=status, reason=reason))
        if self._owner is not None:
            await self._owner.deregister(order.order_id, processor=self)

    def _open_protection_gap(
        self,
        previous: OrderState,
        *,
        qty: float,
        new_stop_price: float,
        stage: str,
        exc: ExchangeError,
    ) -> None:
        self._protection_gap = ProtectionGap(
            cancelled_order_id=previous.order_id,
            qty=qty,
            intended_stop_price=new_stop_price,
            stage=stage,
        )
        logger.critical(
            f"[trailing processor] {previous.symbol} order {previous.order_id} was cancelled but no replacement "
            f"stop exists (stage={stage}, intended stop={new_stop_price}); qty={qty} is UNPROTECTED: {exc}"
        )
        self._publish(
            StopProtectionLost.now(
                symbol=previous.symbol,
                cancelled_order_id=previous.order_id,
                qty=qty,
                intended_stop_price=new_stop_price,
                stage=stage,
                error_type=type(exc).__name__,
                message=str(exc),
            )
        )

    def _report_exchange_failure(self, exc: ExchangeError, order: OrderState, tick: PriceTick) -> None:
        logger.error(
            f"[trailing processor] {exc.operation} failed for {order.symbol} order_id={order.order_id} "
            f"stop={order.stop_price} price={tick.price}: {exc}"
        )
        self._publish(
            ExchangeCallFailed.now(
                operation=exc.operation,
                symbol=order.symbol,
                order_id=order.order_id,
                error_type=type(exc).__name__,
                message=exc.message,
                code=exc.code,
            )
        )

    def _report_unexpected_status(self, order: OrderState, *, context: str) -> None:
        logger.error(
            f"[trailing processor] {order.symbol} order_id={order.order_id} reported unexpected status "
            f"{order.status!r} during {context}; leaving monitor active"
        )
        self._publish(
            UnexpectedOrderStatus.now(
                order_id=order.order_id,
                symbol=order.symbol,
                status=order.status,
                context=context,
            )
        )

    def _publish(self, event: object) -> None:
        if self._event_bus:
            self._event_bus.publish(event)
