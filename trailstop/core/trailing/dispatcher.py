from __future__ import annotations

from typing import Callable, Sequence

from loguru import logger

from trailstop.core.market_data.models import PriceTick
from trailstop.core.trailing.processor import OrderProcessor

ProcessorLookup = Callable[[str], Sequence[OrderProcessor]]


class TickDispatcher:
    """Fans each trade tick out to the mailboxes of every processor watching its symbol."""

    def __init__(self, lookup: ProcessorLookup) -> None:
        self._lookup = lookup
        self._delivered = 0
        self._discarded = 0

    @property
    def delivered(self) -> int:
        return self._delivered

    @property
    def discarded(self) -> int:
        return self._discarded

    def on_tick(self, tick: PriceTick) -> None:
        processors = self._lookup(tick.symbol)
        if not processors:
            self._discarded += 1
            return
        for processor in processors:
            try:
                accepted = processor.submit(tick)
            except Exception:
                logger.exception(
                    f"[tick dispatcher] failed to deliver {tick.symbol} tick price={tick.price} "
                    f"to order_id={processor.order_id}"
                )
                continue
            if accepted:
                self._delivered += 1
