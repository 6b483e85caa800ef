"""Event tags and inbound request records."""

from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EventTag(str, Enum):
    NON_AD = "non-ad"
    AD_STARTED = "ad-started"
    AD_COMPLETED = "ad-completed"
    AD_RENDERED = "ad-rendered"         # Non-video ad signal, never drives mute/hide
    INVALID = "invalid"


def normalize_entity_id(value: Any) -> Optional[str]:
    """
    Entity ids travel as ints (browser tab ids) or strings; store them as
    strings. Browsers report -1 for requests that do not belong to a tab.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value) if value >= 0 else None
    if isinstance(value, str):
        value = value.strip()
        return value if value and value != "-1" else None
    return None


class RequestRecord(BaseModel):
    """An intercepted outgoing request, as delivered by the network filter."""

    model_config = ConfigDict(populate_by_name=True)

    method: str
    entity_id: Optional[str] = Field(default=None, alias="tabId")
    url: Optional[str] = None
    request_body: Optional[Dict[str, Any]] = Field(default=None, alias="requestBody")

    @field_validator("entity_id", mode="before")
    @classmethod
    def _normalize_entity_id(cls, value):
        return normalize_entity_id(value)
