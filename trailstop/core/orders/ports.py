from __future__ import annotations

from typing import Awaitable, Callable, Optional, Protocol, TypeVar

from trailstop.core.orders.models import OrderState, StopOrderSpec

EventT = TypeVar("EventT")
EventHandler = Callable[[EventT], Awaitable[None] | None]


class ExchangeError(RuntimeError):
    """Raised by exchange ports when a REST call fails for any reason."""

    def __init__(
        self,
        message: str,
        *,
        operation: str,
        symbol: Optional[str] = None,
        order_id: Optional[int] = None,
        code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.operation = operation
        self.symbol = symbol
        self.order_id = order_id
        self.code = code

    def __str__(self) -> str:
        context = f"{self.operation} symbol={self.symbol} order_id={self.order_id}"
        if self.code is not None:
            context += f" code={self.code}"
        return f"{context}: {self.message}"


class ExchangeOrderPort(Protocol):
    async def list_open_orders(self, symbol: Optional[str] = None) -> list[OrderState]:
        """Return all currently open orders, optionally restricted to one symbol."""
        raise NotImplementedError

    async def query_order(self, symbol: str, order_id: int) -> OrderState:
        """Return the exchange's authoritative state for one order."""
        raise NotImplementedError

    async def cancel_order(self, symbol: str, order_id: int) -> OrderState:
        """Cancel an order and return the exchange's view of it after cancellation."""
        raise NotImplementedError

    async def create_order(self, spec: StopOrderSpec) -> OrderState:
        """Submit a new stop order and return its state, including the new order id."""
        raise NotImplementedError


class EventBus(Protocol):
    def publish(self, event: object) -> None:
        """Publish an event to subscribers."""
        raise NotImplementedError

    def subscribe(self, event_type: type[EventT], handler: EventHandler[EventT]) -> Callable[[], None]:
        """Subscribe a handler to events of a given type."""
        raise NotImplementedError
