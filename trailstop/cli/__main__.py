import asyncio
import os
import sys

from dotenv import load_dotenv
from loguru import logger

from trailstop.adapters.eventbus.in_process import InProcessEventBus
from trailstop.adapters.exchange.binance_connection import (
    BinanceConnection,
    BinanceConnectionConfig,
)
from trailstop.adapters.exchange.binance_order_port import BinanceOrderPort
from trailstop.adapters.logging.jsonl_logger import JsonlEventLogger
from trailstop.adapters.market_data.binance_trade_stream import BinanceTradeStream
from trailstop.core.trailing.config import TrailingStopConfig
from trailstop.core.trailing.registry import MonitorRegistry
from trailstop.core.trailing.service import TrailingStopService


def configure_logging(level: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level)


async def _async_main() -> None:
    load_dotenv()
    configure_logging(os.getenv("LOG_LEVEL", "INFO"))

    trailing_config = TrailingStopConfig.from_env().validate()
    connection_config = BinanceConnectionConfig.from_env()
    resync_interval = float(os.getenv("TRAIL_RESYNC_INTERVAL_SECS", "60"))

    bus = InProcessEventBus()
    log_path = os.getenv("TRAILSTOP_EVENT_LOG_PATH", "trailstop/journal/events.jsonl")
    if log_path:
        bus.subscribe(object, JsonlEventLogger(log_path).handle)

    connection = BinanceConnection(connection_config, event_logger=bus.publish)
    await connection.connect()
    logger.info(f"connected to Binance (testnet={connection_config.testnet})")

    order_port = BinanceOrderPort(connection)
    trade_stream = BinanceTradeStream(connection)
    registry = MonitorRegistry(order_port, trade_stream, config=trailing_config, event_bus=bus)
    service = TrailingStopService(order_port, registry)

    resync_task = None
    try:
        monitored = await service.start()
        logger.info(f"monitoring {monitored} stop orders on {', '.join(registry.symbols()) or 'no symbols'}")
        if resync_interval > 0:
            resync_task = asyncio.create_task(service.run_resync(resync_interval))
            await resync_task
        else:
            await asyncio.Event().wait()
    finally:
        if resync_task:
            resync_task.cancel()
            await asyncio.gather(resync_task, return_exceptions=True)
        await service.stop()
        await trade_stream.close()
        await connection.close()
        await bus.drain()


def main() -> None:
    try:
        asyncio.run(_async_main())
    except KeyboardInterrupt:
        logger.info("interrupted; exiting")


if __name__ == "__main__":
    main()
