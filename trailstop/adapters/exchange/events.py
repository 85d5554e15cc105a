from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class BinanceConnectionEstablished:
    testnet: bool
    server_time_offset_ms: Optional[int]
    timestamp: datetime

    @classmethod
    def now(cls, *, testnet: bool, server_time_offset_ms: Optional[int]) -> "BinanceConnectionEstablished":
        return cls(testnet=testnet, server_time_offset_ms=server_time_offset_ms, timestamp=_now())


@dataclass(frozen=True)
class BinanceConnectionFailed:
    testnet: bool
    error_type: str
    message: str
    timestamp: datetime

    @classmethod
    def now(cls, *, testnet: bool, error_type: str, message: str) -> "BinanceConnectionFailed":
        return cls(testnet=testnet, error_type=error_type, message=message, timestamp=_now())


@dataclass(frozen=True)
class BinanceConnectionClosed:
    testnet: bool
    reason: str
    timestamp: datetime

    @classmethod
    def now(cls, *, testnet: bool, reason: str) -> "BinanceConnectionClosed":
        return cls(testnet=testnet, reason=reason, timestamp=_now())
