from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from trailstop.core.market_data.models import PriceTick
from trailstop.core.orders.models import OrderState
from trailstop.core.trailing.config import ReorderConfigError, TrailingStopConfig
from trailstop.core.trailing.policy import ReorderAction, evaluate_reorder, threshold_trigger

_T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _order(*, stop_price: float = 100.0) -> OrderState:
    return OrderState(
        order_id=1001,
        symbol="BTCUSDT",
        order_type="STOP_LOSS",
        side="SELL",
        stop_price=stop_price,
        orig_qty=1.0,
        executed_qty=0.0,
        status="NEW",
    )


def _tick(price: float, *, seconds: float = 0.0) -> PriceTick:
    return PriceTick(symbol="BTCUSDT", price=price, timestamp=_T0 + timedelta(seconds=seconds))


def _config(**overrides) -> TrailingStopConfig:
    values = {
        "move_up_margin_percent": 1.0,
        "static_threshold": 2.0,
        "percentage_threshold": 0.0,
        "min_reorder_interval_seconds": 0.0,
    }
    values.update(overrides)
    return TrailingStopConfig(**values)


@pytest.mark.parametrize("price", [0.01, 50.0, 99.99, 100.0])
def test_price_at_or_below_stop_always_checks_order(price: float) -> None:
    for config in (_config(), _config(static_threshold=0.0, percentage_threshold=0.5), _config(static_threshold=0.0)):
        decision = evaluate_reorder(_order(), _tick(price), config)
        assert decision.action == ReorderAction.CHECK_ORDER
        assert decision.new_stop_price is None


@pytest.mark.parametrize("price", [100.01, 103.0, 250.0, 10_000.0])
def test_disabled_thresholds_never_reorder(price: float) -> None:
    config = _config(static_threshold=0.0, percentage_threshold=0.0)

    decision = evaluate_reorder(_order(), _tick(price), config)

    assert decision.action == ReorderAction.NOOP


@pytest.mark.parametrize("price", [102.01, 103.0, 150.0])
def test_static_threshold_reorders_below_market(price: float) -> None:
    decision = evaluate_reorder(_order(), _tick(price), _config())

    assert decision.action == ReorderAction.REORDER
    assert decision.new_stop_price == pytest.approx(price * 0.99)
    assert decision.new_stop_price < price
    assert decision.reason == "static_threshold"


def test_static_threshold_is_strict() -> None:
    assert evaluate_reorder(_order(), _tick(102.0), _config()).action == ReorderAction.NOOP
    assert evaluate_reorder(_order(), _tick(101.0), _config()).action == ReorderAction.NOOP


def test_percentage_threshold_fires_independently() -> None:
    config = _config(static_threshold=0.0, percentage_threshold=5.0)

    assert evaluate_reorder(_order(), _tick(104.9), config).action == ReorderAction.NOOP
    decision = evaluate_reorder(_order(), _tick(105.5), config)
    assert decision.action == ReorderAction.REORDER
    assert decision.reason == "percentage_threshold"
    assert decision.new_stop_price == pytest.approx(105.5 * 0.99)


def test_either_threshold_is_sufficient() -> None:
    config = _config(static_threshold=50.0, percentage_threshold=1.0)

    assert threshold_trigger(100.0, 101.5, config) == "percentage_threshold"
    assert threshold_trigger(100.0, 151.0, config) == "static_threshold"
    assert threshold_trigger(100.0, 100.5, config) is None


def test_scenario_btcusdt_reorder_price() -> None:
    decision = evaluate_reorder(_order(), _tick(103.0), _config())

    assert decision.action == ReorderAction.REORDER
    assert decision.new_stop_price == pytest.approx(101.97)


def test_non_positive_stop_is_a_configuration_error() -> None:
    config = _config(move_up_margin_percent=100.0)

    with pytest.raises(ReorderConfigError, match="non-positive stop"):
        evaluate_reorder(_order(), _tick(103.0), config)


def test_zero_margin_is_rejected_because_stop_must_stay_below_price() -> None:
    config = _config(move_up_margin_percent=0.0)

    with pytest.raises(ReorderConfigError, match="not below price"):
        evaluate_reorder(_order(), _tick(103.0), config)


def test_rearm_interval_suppresses_reorder_but_not_status_checks() -> None:
    config = _config(min_reorder_interval_seconds=10.0)
    last = _T0

    assert evaluate_reorder(_order(), _tick(103.0, seconds=5), config, last_reorder_at=last).reason == "rearm_interval"
    assert (
        evaluate_reorder(_order(), _tick(99.0, seconds=5), config, last_reorder_at=last).action
        == ReorderAction.CHECK_ORDER
    )
    assert (
        evaluate_reorder(_order(), _tick(103.0, seconds=10), config, last_reorder_at=last).action
        == ReorderAction.REORDER
    )
