from __future__ import annotations

import os
from dataclasses import dataclass

from loguru import logger


class ReorderConfigError(ValueError):
    """Raised when trailing configuration cannot produce a valid stop price."""


@dataclass(frozen=True)
class TrailingStopConfig:
    move_up_margin_percent: float = 1.0
    static_threshold: float = 0.0
    percentage_threshold: float = 2.0
    min_reorder_interval_seconds: float = 5.0
    mailbox_size: int = 64

    @classmethod
    def from_env(cls) -> "TrailingStopConfig":
        return cls(
            move_up_margin_percent=float(os.getenv("TRAIL_MOVE_UP_MARGIN_PCT", "1.0")),
            static_threshold=float(os.getenv("TRAIL_STATIC_THRESHOLD", "0")),
            percentage_threshold=float(os.getenv("TRAIL_PCT_THRESHOLD", "2.0")),
            min_reorder_interval_seconds=float(os.getenv("TRAIL_MIN_REORDER_INTERVAL_SECS", "5")),
            mailbox_size=int(os.getenv("TRAIL_MAILBOX_SIZE", "64")),
        )

    def validate(self) -> "TrailingStopConfig":
        if not 0 < self.move_up_margin_percent < 100:
            raise ReorderConfigError("move_up_margin_percent must be in (0, 100)")
        if self.static_threshold < 0:
            raise ReorderConfigError("static_threshold must be zero or greater")
        if self.percentage_threshold < 0:
            raise ReorderConfigError("percentage_threshold must be zero or greater")
        if self.static_threshold == 0 and self.percentage_threshold == 0:
            logger.warning("[trailing config] both thresholds are disabled; stops will never be moved")
        if self.min_reorder_interval_seconds < 0:
            raise ReorderConfigError("min_reorder_interval_seconds must be zero or greater")
        if self.mailbox_size < 1:
            raise ReorderConfigError("mailbox_size must be at least 1")
        return self
