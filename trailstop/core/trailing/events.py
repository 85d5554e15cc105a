from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class MonitorStarted:
    order_id: int
    symbol: str
    order_type: str
    stop_price: float
    remaining_qty: float
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        order_id: int,
        symbol: str,
        order_type: str,
        stop_price: float,
        remaining_qty: float,
    ) -> "MonitorStarted":
        return cls(
            order_id=order_id,
            symbol=symbol,
            order_type=order_type,
            stop_price=stop_price,
            remaining_qty=remaining_qty,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class MonitorStopped:
    order_id: int
    symbol: str
    status: Optional[str]
    reason: str
    timestamp: datetime

    @classmethod
    def now(cls, *, order_id: int, symbol: str, status: Optional[str], reason: str) -> "MonitorStopped":
        return cls(order_id=order_id, symbol=symbol, status=status, reason=reason, timestamp=_now())


@dataclass(frozen=True)
class SymbolSubscribed:
    symbol: str
    timestamp: datetime

    @classmethod
    def now(cls, symbol: str) -> "SymbolSubscribed":
        return cls(symbol=symbol, timestamp=_now())


@dataclass(frozen=True)
class SymbolUnsubscribed:
    symbol: str
    timestamp: datetime

    @classmethod
    def now(cls, symbol: str) -> "SymbolUnsubscribed":
        return cls(symbol=symbol, timestamp=_now())


@dataclass(frozen=True)
class ReorderTriggered:
    order_id: int
    symbol: str
    trade_price: float
    old_stop_price: float
    new_stop_price: float
    qty: float
    reason: str
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        order_id: int,
        symbol: str,
        trade_price: float,
        old_stop_price: float,
        new_stop_price: float,
        qty: float,
        reason: str,
    ) -> "ReorderTriggered":
        return cls(
            order_id=order_id,
            symbol=symbol,
            trade_price=trade_price,
            old_stop_price=old_stop_price,
            new_stop_price=new_stop_price,
            qty=qty,
            reason=reason,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class StopOrderReplaced:
    symbol: str
    old_order_id: int
    new_order_id: int
    old_stop_price: float
    new_stop_price: float
    qty: float
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        symbol: str,
        old_order_id: int,
        new_order_id: int,
        old_stop_price: float,
        new_stop_price: float,
        qty: float,
    ) -> "StopOrderReplaced":
        return cls(
            symbol=symbol,
            old_order_id=old_order_id,
            new_order_id=new_order_id,
            old_stop_price=old_stop_price,
            new_stop_price=new_stop_price,
            qty=qty,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class OrderStatusChecked:
    order_id: int
    symbol: str
    status: str
    trade_price: float
    timestamp: datetime

    @classmethod
    def now(cls, *, order_id: int, symbol: str, status: str, trade_price: float) -> "OrderStatusChecked":
        return cls(order_id=order_id, symbol=symbol, status=status, trade_price=trade_price, timestamp=_now())


@dataclass(frozen=True)
class ExchangeCallFailed:
    operation: str
    symbol: str
    order_id: Optional[int]
    error_type: str
    message: str
    code: Optional[int]
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        operation: str,
        symbol: str,
        order_id: Optional[int],
        error_type: str,
        message: str,
        code: Optional[int] = None,
    ) -> "ExchangeCallFailed":
        return cls(
            operation=operation,
            symbol=symbol,
            order_id=order_id,
            error_type=error_type,
            message=message,
            code=code,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class UnexpectedOrderStatus:
    order_id: int
    symbol: str
    status: str
    context: str
    timestamp: datetime

    @classmethod
    def now(cls, *, order_id: int, symbol: str, status: str, context: str) -> "UnexpectedOrderStatus":
        return cls(order_id=order_id, symbol=symbol, status=status, context=context, timestamp=_now())


@dataclass(frozen=True)
class ReorderRejected:
    order_id: int
    symbol: str
    trade_price: float
    reason: str
    timestamp: datetime

    @classmethod
    def now(cls, *, order_id: int, symbol: str, trade_price: float, reason: str) -> "ReorderRejected":
        return cls(order_id=order_id, symbol=symbol, trade_price=trade_price, reason=reason, timestamp=_now())


@dataclass(frozen=True)
class StopProtectionLost:
    symbol: str
    cancelled_order_id: int
    qty: float
    intended_stop_price: float
    stage: str
    error_type: str
    message: str
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        symbol: str,
        cancelled_order_id: int,
        qty: float,
        intended_stop_price: float,
        stage: str,
        error_type: str,
        message: str,
    ) -> "StopProtectionLost":
        return cls(
            symbol=symbol,
            cancelled_order_id=cancelled_order_id,
            qty=qty,
            intended_stop_price=intended_stop_price,
            stage=stage,
            error_type=error_type,
            message=message,
            timestamp=_now(),
        )


@dataclass(frozen=True)
class StopProtectionRestored:
    symbol: str
    cancelled_order_id: int
    new_order_id: int
    stop_price: float
    qty: float
    timestamp: datetime

    @classmethod
    def now(
        cls,
        *,
        symbol: str,
        cancelled_order_id: int,
        new_order_id: int,
        stop_price: float,
        qty: float,
    ) -> "StopProtectionRestored":
        return cls(
            symbol=symbol,
            cancelled_order_id=cancelled_order_id,
            new_order_id=new_order_id,
            stop_price=stop_price,
            qty=qty,
            timestamp=_now(),
        )
