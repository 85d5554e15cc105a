from __future__ import annotations

import asyncio
from dataclasses import dataclass

from trailstop.adapters.eventbus.in_process import InProcessEventBus


@dataclass(frozen=True)
class _Ping:
    value: int


@dataclass(frozen=True)
class _Pong:
    value: int


def test_publish_without_loop_runs_handlers_inline() -> None:
    bus = InProcessEventBus()
    seen: list[object] = []
    bus.subscribe(_Ping, seen.append)

    bus.publish(_Ping(1))
    bus.publish(_Pong(2))

    assert seen == [_Ping(1)]


def test_object_subscription_receives_everything() -> None:
    bus = InProcessEventBus()
    seen: list[object] = []
    bus.subscribe(object, seen.append)

    bus.publish(_Ping(1))
    bus.publish(_Pong(2))

    assert seen == [_Ping(1), _Pong(2)]


def test_unsubscribe_stops_delivery() -> None:
    bus = InProcessEventBus()
    seen: list[object] = []
    unsubscribe = bus.subscribe(_Ping, seen.append)

    unsubscribe()
    unsubscribe()
    bus.publish(_Ping(1))

    assert seen == []


def test_handler_errors_do_not_reach_publisher() -> None:
    bus = InProcessEventBus()
    seen: list[object] = []

    def _broken(event: object) -> None:
        raise RuntimeError("boom")

    bus.subscribe(_Ping, _broken)
    bus.subscribe(_Ping, seen.append)

    bus.publish(_Ping(1))

    assert seen == [_Ping(1)]


def test_publish_inside_loop_defers_and_drain_awaits_async_handlers() -> None:
    async def _scenario():
        bus = InProcessEventBus()
        seen: list[object] = []

        async def _handler(event: object) -> None:
            await asyncio.sleep(0)
            seen.append(event)

        bus.subscribe(_Ping, _handler)
        bus.publish(_Ping(7))
        assert seen == []

        await bus.drain()
        return seen

    assert asyncio.run(_scenario()) == [_Ping(7)]
