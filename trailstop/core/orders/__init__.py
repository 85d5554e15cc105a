from trailstop.core.orders.models import (
    OPEN_STATUSES,
    STOP_ORDER_TYPES,
    TERMINAL_STATUSES,
    OrderSide,
    OrderState,
    OrderStatus,
    OrderType,
    StopOrderSpec,
)
from trailstop.core.orders.ports import EventBus, ExchangeError, ExchangeOrderPort

__all__ = [
    "OPEN_STATUSES",
    "STOP_ORDER_TYPES",
    "TERMINAL_STATUSES",
    "OrderSide",
    "OrderState",
    "OrderStatus",
    "OrderType",
    "StopOrderSpec",
    "EventBus",
    "ExchangeError",
    "ExchangeOrderPort",
]
