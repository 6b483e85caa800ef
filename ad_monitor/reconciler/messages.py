"""
Task-tagged request/response protocol between callers (the UI panel) and
the Reconciler.

| task         | params                     | response            |
| log          | message, level, extra      | True                |
| toggleDebug  | optional tabId             | {"success": bool}   |
| toggleMute   | tabId                      | {"success": bool}   |
| togglePlayer | tabId                      | {"success": bool}   |
"""

import logging
from typing import Any, Union

from ad_monitor.models.events import normalize_entity_id
from ad_monitor.observability.log import log_message
from ad_monitor.reconciler.loop import Reconciler

logger = logging.getLogger(__name__)

FAILURE = {"success": False}


class MessageHandler:
    """Routes protocol messages to Reconciler operations. Never raises."""

    def __init__(self, reconciler: Reconciler):
        self.reconciler = reconciler

    async def handle(self, message: Any) -> Union[bool, dict]:
        if not isinstance(message, dict):
            logger.error("Rejected message that is not an object: %r", message)
            return dict(FAILURE)

        task = message.get("task")
        if not isinstance(task, str):
            logger.error("Rejected message, task was provided as a non-string value: %r", task)
            return dict(FAILURE)

        entity_id = normalize_entity_id(message.get("tabId", message.get("entityId")))
        logger.debug("Received task %s for entity %s", task, entity_id)

        if task == "log":
            params = {
                k: v for k, v in message.items()
                if k not in ("task", "message", "level", "tabId", "entityId")
            }
            log_message(str(message.get("message", "")), message.get("level"), params)
            return True

        if task == "toggleDebug":
            return {"success": await self.reconciler.toggle_debug(entity_id)}

        if task in ("toggleMute", "togglePlayer"):
            if entity_id is None:
                logger.error("Task %s requires an entity id", task)
                return dict(FAILURE)
            if task == "toggleMute":
                success = await self.reconciler.toggle_mute(entity_id)
            else:
                success = await self.reconciler.toggle_player(entity_id)
            logger.debug("Task %s for entity %s success: %s", task, entity_id, success)
            return {"success": success}

        logger.error("Unknown task: %s", task)
        return dict(FAILURE)
