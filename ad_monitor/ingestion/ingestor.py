"""
Request Ingestor — boundary between the network filter and the Reconciler.

Drops anything that is not a POST from a known entity to a monitored
origin, pulls the raw bytes of the first body chunk, classifies them and
hands the tags to the Reconciler.
"""

import logging
from fnmatch import fnmatchcase
from typing import Any, Iterable, Optional, Union

from pydantic import ValidationError

from ad_monitor.classifier.events import classify
from ad_monitor.models.events import RequestRecord
from ad_monitor.models.reconciler import ReconcileResult
from ad_monitor.reconciler.loop import Reconciler

logger = logging.getLogger(__name__)


def matches_origin(url: Optional[str], patterns: Iterable[str]) -> bool:
    """True if the URL matches any pattern. Requests without a URL pass."""
    if not url:
        return True
    patterns = list(patterns)
    if not patterns:
        return True
    return any(fnmatchcase(url, p) for p in patterns)


def extract_payload(request_body: Optional[dict]) -> Optional[bytes]:
    """
    Raw bytes of the first body chunk, or None if there are none.

    A chunk's `bytes` may be bytes, a UTF-8 string, or a list of byte values.
    """
    if not isinstance(request_body, dict):
        return None
    raw = request_body.get("raw")
    if not isinstance(raw, list) or not raw or not isinstance(raw[0], dict):
        return None

    chunk = raw[0].get("bytes")
    if isinstance(chunk, (bytes, bytearray)):
        data = bytes(chunk)
    elif isinstance(chunk, str):
        data = chunk.encode("utf-8")
    elif isinstance(chunk, list):
        try:
            data = bytes(chunk)
        except (TypeError, ValueError):
            logger.debug("Body chunk is not a list of byte values")
            return None
    else:
        return None
    return data or None


class RequestIngestor:
    """Feeds intercepted requests into the Reconciler."""

    def __init__(self, reconciler: Reconciler):
        self.reconciler = reconciler

    async def ingest(
        self, record: Union[RequestRecord, dict, Any]
    ) -> Optional[ReconcileResult]:
        """
        Process one intercepted request. Returns None when the request was
        filtered out or carried nothing to classify.
        """
        if not isinstance(record, RequestRecord):
            try:
                record = RequestRecord.model_validate(record)
            except ValidationError as e:
                logger.debug("Dropping malformed request record: %s", e)
                return None

        if record.method.upper() != "POST":
            return None
        if record.entity_id is None:
            logger.debug("Dropping request without an entity id")
            return None
        if not matches_origin(record.url, self.reconciler.config.origin_patterns):
            return None

        payload = extract_payload(record.request_body)
        if payload is None:
            logger.debug("No body bytes in request for entity %s", record.entity_id)
            return None

        tags = classify(payload)
        logger.debug("Request for entity %s classified as %s", record.entity_id, [t.value for t in tags])
        return await self.reconciler.handle_batch(record.entity_id, tags)
