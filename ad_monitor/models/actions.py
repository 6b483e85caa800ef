"""Action results and the externally observable mute state."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class MuteInfo(BaseModel):
    """Real audio state of an entity, as reported by its host."""

    muted: bool = False
    reason: Optional[str] = None            # e.g., "user", "capture", "extension"


class ActionResult(BaseModel):
    """Outcome of one side-effect call against an entity."""

    action_type: str                        # "mute" | "unmute" | "hide_player" | ...
    entity_id: str
    success: bool
    error: Optional[str] = None
    duration: float = 0.0
    completed_at: datetime
