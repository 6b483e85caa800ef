"""
Event Classifier — turns an intercepted request body into event tags.

Behavioral Contract:
- Pure: no state, no I/O, never raises.
- One tag per record, in payload order.
- A body that is not UTF-8 JSON, not an array, or an empty array yields
  exactly one tag: [EventTag.INVALID].
"""

import json
import logging
from typing import Any, List, Union

from ad_monitor.models.events import EventTag

logger = logging.getLogger(__name__)

# Substring of the GraphQL operation name carried by ad-lifecycle records.
AD_OPERATION_MARKER = "RecordAdEvent"

_EVENT_TAGS = {
    "video_ad_impression": EventTag.AD_STARTED,
    "video_ad_quartile_complete": EventTag.AD_STARTED,
    "video_ad_pod_complete": EventTag.AD_COMPLETED,
    "ad_impression": EventTag.AD_RENDERED,
}


def classify(raw: Union[bytes, str, None]) -> List[EventTag]:
    """Classify a raw request body into an ordered list of event tags."""
    if not raw:
        return [EventTag.INVALID]

    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        payload = json.loads(text)
    except (UnicodeDecodeError, ValueError) as e:
        logger.debug("Body is not valid UTF-8 JSON: %s", e)
        return [EventTag.INVALID]

    if not isinstance(payload, list) or not payload:
        logger.debug("Body is not a non-empty array of event records")
        return [EventTag.INVALID]

    return [classify_record(record) for record in payload]


def classify_record(record: Any) -> EventTag:
    """Classify a single decoded event record."""
    if not isinstance(record, dict):
        return EventTag.NON_AD

    operation_name = record.get("operationName")
    if not isinstance(operation_name, str) or AD_OPERATION_MARKER not in operation_name:
        return EventTag.NON_AD

    variables = record.get("variables")
    event_input = variables.get("input") if isinstance(variables, dict) else None
    event_name = event_input.get("eventName") if isinstance(event_input, dict) else None

    if not isinstance(event_name, str):
        return EventTag.INVALID
    return _EVENT_TAGS.get(event_name, EventTag.INVALID)
