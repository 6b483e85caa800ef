"""Entity State — what the monitor believes about one tracked tab."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class EntityPhase(str, Enum):
    NORMAL = "normal"
    AD_PLAYING = "ad_playing"


class EntityState(BaseModel):
    """
    Snapshot of a single entity's stored state.

    `muted` and `hidden` are attribution flags: they are true only while the
    monitor itself holds the condition applied.
    """

    entity_id: str
    muted: bool = False
    hidden: bool = False
    playing_ads: bool = False
    ad_start_time: Optional[int] = None     # Seconds since the epoch

    @property
    def phase(self) -> EntityPhase:
        return EntityPhase.AD_PLAYING if self.playing_ads else EntityPhase.NORMAL


class GlobalConfig(BaseModel):
    """Process-wide persisted settings."""

    debug_mode: bool = False
