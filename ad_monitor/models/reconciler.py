"""Reconciler configuration and per-batch outcomes."""

from enum import Enum
from typing import List

from pydantic import BaseModel, Field

from ad_monitor.models.state import EntityPhase


class MonitorConfig(BaseModel):
    """Configuration for the Reconciler, ingestor and API."""

    ad_state_timeout_seconds: int = Field(ge=1, default=60)
    action_timeout_seconds: float = Field(gt=0, default=5.0)
    origin_patterns: List[str] = ["*://gql.twitch.tv/*"]
    heartbeat_enabled: bool = False
    heartbeat_interval_seconds: int = Field(ge=1, default=15)


class Transition(str, Enum):
    NOT_READY = "not_ready"
    AD_STARTED = "ad_started"
    AD_COMPLETED = "ad_completed"
    TIMEOUT_RECOVERY = "timeout_recovery"   # playingAds outlived the timeout
    CORRUPT_RECOVERY = "corrupt_recovery"   # playingAds without a start time
    NONE = "none"


class ReconcileResult(BaseModel):
    """What the Reconciler decided for one batch of tags."""

    entity_id: str
    transition: Transition
    phase: EntityPhase
    muted: bool
    hidden: bool
    playing_ads: bool
    actions_failed: List[str] = []
