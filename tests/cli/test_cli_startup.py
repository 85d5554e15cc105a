from __future__ import annotations

import asyncio
import sys

import pytest
from loguru import logger

from trailstop.cli import __main__ as cli
from trailstop.core.trailing.config import ReorderConfigError


def test_configure_logging_filters_below_level(capsys: pytest.CaptureFixture[str]) -> None:
    cli.configure_logging("WARNING")
    try:
        logger.info("[test] quiet")
        logger.warning("[test] loud")
    finally:
        logger.remove()
        logger.add(sys.stderr)

    err = capsys.readouterr().err
    assert "[test] loud" in err
    assert "[test] quiet" not in err


def test_startup_fails_fast_without_credentials(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)
    monkeypatch.delenv("BINANCE_API_KEY", raising=False)
    monkeypatch.delenv("BINANCE_API_SECRET", raising=False)
    monkeypatch.setenv("TRAILSTOP_EVENT_LOG_PATH", "")

    with pytest.raises(RuntimeError, match="BINANCE_API_KEY"):
        asyncio.run(cli._async_main())


def test_startup_rejects_invalid_trailing_config(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(cli, "load_dotenv", lambda: None)
    monkeypatch.setenv("TRAIL_MOVE_UP_MARGIN_PCT", "0")

    with pytest.raises(ReorderConfigError):
        asyncio.run(cli._async_main())
