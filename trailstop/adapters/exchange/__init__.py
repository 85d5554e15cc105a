"""Binance exchange adapters for trailstop."""

from trailstop.adapters.exchange.binance_connection import (
    BinanceConnection,
    BinanceConnectionConfig,
)
from trailstop.adapters.exchange.binance_order_port import BinanceOrderPort

__all__ = [
    "BinanceConnection",
    "BinanceConnectionConfig",
    "BinanceOrderPort",
]
