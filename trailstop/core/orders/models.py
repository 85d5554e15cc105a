from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional


class OrderSide(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


class OrderType(str, Enum):
    MARKET = "MARKET"
    LIMIT = "LIMIT"
    LIMIT_MAKER = "LIMIT_MAKER"
    STOP_LOSS = "STOP_LOSS"
    STOP_LOSS_LIMIT = "STOP_LOSS_LIMIT"
    TAKE_PROFIT = "TAKE_PROFIT"
    TAKE_PROFIT_LIMIT = "TAKE_PROFIT_LIMIT"


class OrderStatus(str, Enum):
    NEW = "NEW"
    PARTIALLY_FILLED = "PARTIALLY_FILLED"
    FILLED = "FILLED"
    CANCELED = "CANCELED"
    PENDING_CANCEL = "PENDING_CANCEL"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"


STOP_ORDER_TYPES = frozenset({OrderType.STOP_LOSS, OrderType.STOP_LOSS_LIMIT})
OPEN_STATUSES = frozenset({OrderStatus.NEW, OrderStatus.PARTIALLY_FILLED})
TERMINAL_STATUSES = frozenset(
    {
        OrderStatus.FILLED,
        OrderStatus.CANCELED,
        OrderStatus.PENDING_CANCEL,
        OrderStatus.REJECTED,
        OrderStatus.EXPIRED,
    }
)


@dataclass(frozen=True)
class OrderState:
    """Snapshot of one exchange order as last reported by the exchange.

    `status` keeps the raw exchange string so statuses outside `OrderStatus`
    survive the round trip and can be reported as unexpected.
    """

    order_id: int
    symbol: str
    order_type: str
    side: str
    stop_price: float
    orig_qty: float
    executed_qty: float
    status: str
    price: Optional[float] = None
    tif: Optional[str] = None
    client_order_id: Optional[str] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        if self.executed_qty > self.orig_qty:
            raise ValueError(
                f"executed_qty {self.executed_qty} exceeds orig_qty {self.orig_qty} for order {self.order_id}"
            )

    @property
    def remaining_qty(self) -> float:
        return self.orig_qty - self.executed_qty

    @property
    def is_stop_order(self) -> bool:
        return self.order_type in STOP_ORDER_TYPES


@dataclass(frozen=True)
class StopOrderSpec:
    symbol: str
    qty: float
    stop_price: float
    side: OrderSide = OrderSide.SELL
    order_type: OrderType = OrderType.STOP_LOSS
