from __future__ import annotations

import asyncio
from dataclasses import replace
from decimal import Decimal
from typing import Any, Awaitable, Optional, TypeVar

import aiohttp

from trailstop.adapters.exchange._binance_client import (
    AsyncClient,
    BinanceAPIException,
    BinanceRequestException,
    parse_binance_millis,
    round_step_size,
)
from trailstop.adapters.exchange.binance_connection import BinanceConnection
from trailstop.core.orders.models import OrderState, StopOrderSpec
from trailstop.core.orders.ports import ExchangeError, ExchangeOrderPort

_T = TypeVar("_T")


class BinanceOrderPort(ExchangeOrderPort):
    def __init__(self, connection: BinanceConnection) -> None:
        self._connection = connection
        self._symbol_filters: dict[str, tuple[float, float]] = {}

    @property
    def _client(self) -> AsyncClient:
        return self._connection.client

    async def list_open_orders(self, symbol: Optional[str] = None) -> list[OrderState]:
        params: dict[str, Any] = {"recvWindow": self._connection.config.recv_window}
        if symbol:
            params["symbol"] = symbol.strip().upper()
        payload = await self._call(
            "list_open_orders",
            self._client.get_open_orders(**params),
            symbol=symbol,
        )
        orders = [
            self._parse("list_open_orders", item, symbol=item.get("symbol"), order_id=item.get("orderId"))
            for item in payload or []
        ]
        orders.sort(key=lambda item: (item.symbol, item.order_id))
        return orders

    async def query_order(self, symbol: str, order_id: int) -> OrderState:
        payload = await self._call(
            "query_order",
            self._client.get_order(
                symbol=symbol,
                orderId=order_id,
                recvWindow=self._connection.config.recv_window,
            ),
            symbol=symbol,
            order_id=order_id,
        )
        return self._parse("query_order", payload, symbol=symbol, order_id=order_id)

    async def cancel_order(self, symbol: str, order_id: int) -> OrderState:
        payload = await self._call(
            "cancel_order",
            self._client.cancel_order(
                symbol=symbol,
                orderId=order_id,
                recvWindow=self._connection.config.recv_window,
            ),
            symbol=symbol,
            order_id=order_id,
        )
        return self._parse("cancel_order", payload, symbol=symbol, order_id=order_id)

    async def create_order(self, spec: StopOrderSpec) -> OrderState:
        tick_size, step_size = await self._filters_for(spec.symbol)
        qty = _round_down(spec.qty, step_size)
        stop_price = _round_down(spec.stop_price, tick_size)
        if qty <= 0:
            raise ExchangeError(
                f"qty {spec.qty} rounds to zero with step size {step_size}",
                operation="create_order",
                symbol=spec.symbol,
            )
        if stop_price <= 0:
            raise ExchangeError(
                f"stop price {spec.stop_price} rounds to zero with tick size {tick_size}",
                operation="create_order",
                symbol=spec.symbol,
            )

        params: dict[str, Any] = {
            "symbol": spec.symbol,
            "side": spec.side.value,
            "type": spec.order_type.value,
            "quantity": _format_number(qty),
            "stopPrice": _format_number(stop_price),
            "newOrderRespType": "RESULT",
            "recvWindow": self._connection.config.recv_window,
        }

        payload = await self._call(
            "create_order",
            self._client.create_order(**params),
            symbol=spec.symbol,
        )
        state = self._parse("create_order", payload, symbol=spec.symbol, order_id=None)
        if state.stop_price <= 0:
            # RESULT responses omit stopPrice on some endpoints
            state = replace(state, stop_price=stop_price)
        return state

    async def _filters_for(self, symbol: str) -> tuple[float, float]:
        cached = self._symbol_filters.get(symbol)
        if cached is not None:
            return cached
        info = await self._call("get_symbol_info", self._client.get_symbol_info(symbol), symbol=symbol)
        if not info:
            raise ExchangeError("unknown symbol", operation="get_symbol_info", symbol=symbol)
        filters = _parse_symbol_filters(info)
        self._symbol_filters[symbol] = filters
        return filters

    async def _call(
        self,
        operation: str,
        awaitable: Awaitable[_T],
        *,
        symbol: Optional[str] = None,
        order_id: Optional[int] = None,
    ) -> _T:
        timeout = self._connection.config.timeout
        try:
            return await asyncio.wait_for(awaitable, timeout=timeout)
        except BinanceAPIException as exc:
            raise ExchangeError(
                getattr(exc, "message", str(exc)),
                operation=operation,
                symbol=symbol,
                order_id=order_id,
                code=_maybe_int(getattr(exc, "code", None)),
            ) from exc
        except BinanceRequestException as exc:
            raise ExchangeError(
                getattr(exc, "message", str(exc)),
                operation=operation,
                symbol=symbol,
                order_id=order_id,
            ) from exc
        except asyncio.TimeoutError as exc:
            raise ExchangeError(
                f"timed out after {timeout}s",
                operation=operation,
                symbol=symbol,
                order_id=order_id,
            ) from exc
        except aiohttp.ClientError as exc:
            raise ExchangeError(str(exc), operation=operation, symbol=symbol, order_id=order_id) from exc

    @staticmethod
    def _parse(
        operation: str,
        payload: object,
        *,
        symbol: Optional[str],
        order_id: Optional[int],
    ) -> OrderState:
        try:
            return to_order_state(payload)
        except (KeyError, TypeError, ValueError) as exc:
            raise ExchangeError(
                f"malformed order payload: {exc}",
                operation=operation,
                symbol=symbol,
                order_id=order_id,
            ) from exc


def to_order_state(payload: object) -> OrderState:
    if not isinstance(payload, dict):
        raise TypeError(f"expected dict, got {type(payload).__name__}")
    return OrderState(
        order_id=int(payload["orderId"]),
        symbol=str(payload["symbol"]).upper(),
        order_type=str(payload["type"]).upper(),
        side=str(payload["side"]).upper(),
        stop_price=_maybe_float(payload.get("stopPrice")) or 0.0,
        orig_qty=float(payload["origQty"]),
        executed_qty=_maybe_float(payload.get("executedQty")) or 0.0,
        status=str(payload["status"]).upper(),
        price=_maybe_float(payload.get("price")),
        tif=payload.get("timeInForce"),
        client_order_id=payload.get("clientOrderId"),
        updated_at=parse_binance_millis(
            payload.get("updateTime") or payload.get("transactTime") or payload.get("time")
        ),
    )


def _parse_symbol_filters(info: dict[str, Any]) -> tuple[float, float]:
    tick_size = 0.0
    step_size = 0.0
    for item in info.get("filters", []):
        kind = item.get("filterType")
        if kind == "PRICE_FILTER":
            tick_size = _maybe_float(item.get("tickSize")) or 0.0
        elif kind == "LOT_SIZE":
            step_size = _maybe_float(item.get("stepSize")) or 0.0
    return tick_size, step_size


def _round_down(value: float, step: float) -> float:
    if step <= 0:
        return value
    return round_step_size(value, step)


def _format_number(value: float) -> str:
    return format(Decimal(str(value)).normalize(), "f")


def _maybe_float(value: object) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None


def _maybe_int(value: object) -> Optional[int]:
    try:
        return int(value) if value is not None else None  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
