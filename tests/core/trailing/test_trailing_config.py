from __future__ import annotations

import pytest
from loguru import logger

from trailstop.core.trailing.config import ReorderConfigError, TrailingStopConfig


def test_defaults_are_valid() -> None:
    config = TrailingStopConfig().validate()

    assert config.move_up_margin_percent == 1.0
    assert config.static_threshold == 0.0
    assert config.percentage_threshold == 2.0
    assert config.mailbox_size == 64


@pytest.mark.parametrize(
    "overrides, message",
    [
        ({"move_up_margin_percent": 0.0}, "move_up_margin_percent"),
        ({"move_up_margin_percent": 100.0}, "move_up_margin_percent"),
        ({"move_up_margin_percent": -1.0}, "move_up_margin_percent"),
        ({"static_threshold": -1.0}, "static_threshold"),
        ({"percentage_threshold": -0.5}, "percentage_threshold"),
        ({"min_reorder_interval_seconds": -1.0}, "min_reorder_interval_seconds"),
        ({"mailbox_size": 0}, "mailbox_size"),
    ],
)
def test_validate_rejects_bad_values(overrides: dict, message: str) -> None:
    with pytest.raises(ReorderConfigError, match=message):
        TrailingStopConfig(**overrides).validate()


def test_validate_allows_both_thresholds_disabled_with_warning() -> None:
    messages: list[str] = []
    sink_id = logger.add(messages.append, level="WARNING", format="{message}")
    try:
        config = TrailingStopConfig(static_threshold=0.0, percentage_threshold=0.0).validate()
    finally:
        logger.remove(sink_id)

    assert config.static_threshold == 0.0 and config.percentage_threshold == 0.0
    assert any("both thresholds are disabled" in message for message in messages)


def test_from_env_reads_trailing_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("TRAIL_MOVE_UP_MARGIN_PCT", "0.5")
    monkeypatch.setenv("TRAIL_STATIC_THRESHOLD", "25")
    monkeypatch.setenv("TRAIL_PCT_THRESHOLD", "0")
    monkeypatch.setenv("TRAIL_MIN_REORDER_INTERVAL_SECS", "2.5")
    monkeypatch.setenv("TRAIL_MAILBOX_SIZE", "8")

    config = TrailingStopConfig.from_env().validate()

    assert config == TrailingStopConfig(
        move_up_margin_percent=0.5,
        static_threshold=25.0,
        percentage_threshold=0.0,
        min_reorder_interval_seconds=2.5,
        mailbox_size=8,
    )
