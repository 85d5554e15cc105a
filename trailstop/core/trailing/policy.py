from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from trailstop.core.market_data.models import PriceTick
from trailstop.core.orders.models import OrderState
from trailstop.core.trailing.config import ReorderConfigError, TrailingStopConfig


class ReorderAction(str, Enum):
    NOOP = "noop"
    CHECK_ORDER = "check_order"
    REORDER = "reorder"


@dataclass(frozen=True)
class ReorderDecision:
    action: ReorderAction
    new_stop_price: Optional[float] = None
    reason: str = ""

    @classmethod
    def noop(cls, reason: str = "") -> "ReorderDecision":
        return cls(action=ReorderAction.NOOP, reason=reason)

    @classmethod
    def check_order(cls) -> "ReorderDecision":
        return cls(action=ReorderAction.CHECK_ORDER, reason="price_at_or_below_stop")

    @classmethod
    def reorder(cls, new_stop_price: float, reason: str) -> "ReorderDecision":
        return cls(action=ReorderAction.REORDER, new_stop_price=new_stop_price, reason=reason)


def evaluate_reorder(
    order: OrderState,
    tick: PriceTick,
    config: TrailingStopConfig,
    *,
    last_reorder_at: Optional[datetime] = None,
) -> ReorderDecision:
    """
    Pure trailing-stop rule evaluation.
    - Trade price at or below the stop: the stop may be executing, check the order.
    - Trade price past either threshold: move the stop up under the market.
    - Otherwise keep waiting.
    """
    stop_price = order.stop_price
    price = tick.price

    if price <= stop_price:
        return ReorderDecision.check_order()

    trigger = threshold_trigger(stop_price, price, config)
    if trigger is None:
        return ReorderDecision.noop("below_thresholds")

    if _within_rearm_interval(tick.timestamp, last_reorder_at, config.min_reorder_interval_seconds):
        return ReorderDecision.noop("rearm_interval")

    return ReorderDecision.reorder(trailing_stop_price(price, config), trigger)


def threshold_trigger(stop_price: float, price: float, config: TrailingStopConfig) -> Optional[str]:
    if config.static_threshold > 0 and price > stop_price + config.static_threshold:
        return "static_threshold"
    if config.percentage_threshold > 0 and price > stop_price * (1 + config.percentage_threshold / 100):
        return "percentage_threshold"
    return None


def trailing_stop_price(price: float, config: TrailingStopConfig) -> float:
    new_stop_price = price * (1 - config.move_up_margin_percent / 100)
    if new_stop_price <= 0:
        raise ReorderConfigError(
            f"move_up_margin_percent={config.move_up_margin_percent} yields non-positive stop {new_stop_price} "
            f"for price {price}"
        )
    if new_stop_price >= price:
        raise ReorderConfigError(
            f"move_up_margin_percent={config.move_up_margin_percent} yields stop {new_stop_price} "
            f"not below price {price}"
        )
    return new_stop_price


def _within_rearm_interval(
    now: datetime,
    last_reorder_at: Optional[datetime],
    interval_seconds: float,
) -> bool:
    if last_reorder_at is None or interval_seconds <= 0:
        return False
    return (now - last_reorder_at).total_seconds() < interval_seconds
