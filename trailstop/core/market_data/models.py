from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone


@dataclass(frozen=True)
class PriceTick:
    symbol: str
    price: float
    timestamp: datetime

    @classmethod
    def now(cls, symbol: str, price: float) -> "PriceTick":
        return cls(symbol=symbol, price=price, timestamp=datetime.now(timezone.utc))
