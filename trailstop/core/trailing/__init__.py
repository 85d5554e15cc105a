from trailstop.core.trailing.config import ReorderConfigError, TrailingStopConfig
from trailstop.core.trailing.dispatcher import TickDispatcher
from trailstop.core.trailing.policy import ReorderAction, ReorderDecision, evaluate_reorder
from trailstop.core.trailing.processor import OrderProcessor, ProcessorOwner, ProcessorStatus, ProtectionGap
from trailstop.core.trailing.registry import MonitorRegistry
from trailstop.core.trailing.service import TrailingStopService

__all__ = [
    "ReorderConfigError",
    "TrailingStopConfig",
    "TickDispatcher",
    "ReorderAction",
    "ReorderDecision",
    "evaluate_reorder",
    "OrderProcessor",
    "ProcessorOwner",
    "ProcessorStatus",
    "ProtectionGap",
    "MonitorRegistry",
    "TrailingStopService",
]
