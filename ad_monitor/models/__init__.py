"""Ad monitor data models."""

from ad_monitor.models.actions import ActionResult, MuteInfo
from ad_monitor.models.events import EventTag, RequestRecord
from ad_monitor.models.reconciler import MonitorConfig, ReconcileResult, Transition
from ad_monitor.models.state import EntityPhase, EntityState, GlobalConfig

__all__ = [
    "ActionResult",
    "EntityPhase",
    "EntityState",
    "EventTag",
    "GlobalConfig",
    "MonitorConfig",
    "MuteInfo",
    "ReconcileResult",
    "RequestRecord",
    "Transition",
]
