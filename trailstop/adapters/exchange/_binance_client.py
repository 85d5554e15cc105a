from __future__ import annotations

from datetime import datetime, timezone

from binance import AsyncClient, BinanceSocketManager
from binance.exceptions import BinanceAPIException, BinanceRequestException
from binance.helpers import round_step_size


def parse_binance_millis(value: object) -> datetime:
    try:
        millis = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return datetime.now(timezone.utc)
    if millis <= 0:
        return datetime.now(timezone.utc)
    return datetime.fromtimestamp(millis / 1000, tz=timezone.utc)


__all__ = [
    "AsyncClient",
    "BinanceAPIException",
    "BinanceRequestException",
    "BinanceSocketManager",
    "parse_binance_millis",
    "round_step_size",
]
