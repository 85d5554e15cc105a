from __future__ import annotations

from typing import Callable, Protocol

from trailstop.core.market_data.models import PriceTick

TickHandler = Callable[[PriceTick], None]


class TickFeedPort(Protocol):
    async def subscribe(self, symbol: str, handler: TickHandler) -> None:
        """Start delivering trade ticks for the symbol to the handler."""
        raise NotImplementedError

    async def unsubscribe(self, symbol: str) -> None:
        """Stop delivering trade ticks for the symbol."""
        raise NotImplementedError
