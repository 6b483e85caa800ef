"""
Simulated entity host.

Stands in for the browser: tabs with a real mute state, each running a
player handler that hides or shows its video surface on request.
"""

import asyncio
import logging
from typing import Dict, Optional

from ad_monitor.models.actions import MuteInfo

logger = logging.getLogger(__name__)

AD_NOTICE_TEXT = "(Ads playing)"


class EntityNotFoundError(Exception):
    """Raised when an action targets an entity that no longer exists."""
    pass


class PlayerHandler:
    """The in-page handler owning an entity's player element."""

    def __init__(self, debug_mode: bool = False):
        self.player_hidden = False
        self.ad_notice: Optional[str] = None
        self.debug_mode = debug_mode
        self.has_player = True

    def handle_message(self, message: dict) -> dict:
        task = message.get("task")
        if not isinstance(task, str):
            return {"success": False, "message": "task must be a string"}

        if task == "toggleDebug":
            self.debug_mode = not self.debug_mode
            return {"success": True}
        if task == "togglePlayer":
            hide = message.get("hide")
            if hide is None:
                hide = not self.player_hidden
            return self.toggle_player(bool(hide))
        return {"success": False, "message": f"Unknown task {task}"}

    def toggle_player(self, hide: bool) -> dict:
        if not self.has_player:
            return {"success": False, "message": "player element not found"}
        if hide:
            self.ad_notice = AD_NOTICE_TEXT
        else:
            self.ad_notice = None
        self.player_hidden = hide
        return {"success": True}


class SimulatedTab:
    def __init__(self, entity_id: str, muted: bool = False, mute_reason: Optional[str] = None):
        self.entity_id = entity_id
        self.muted = muted
        self.mute_reason = mute_reason if muted else None
        self.handler = PlayerHandler()
        self.responsive = True          # False: messages go unanswered
        self.latency_seconds = 0.0


class SimulatedHost:
    """
    In-memory host for entities. With `auto_open`, unknown entity ids are
    opened on first contact, as a browser tab would already exist.
    """

    def __init__(self, auto_open: bool = False):
        self.auto_open = auto_open
        self._tabs: Dict[str, SimulatedTab] = {}

    def open_tab(
        self, entity_id: str, muted: bool = False, mute_reason: Optional[str] = None
    ) -> SimulatedTab:
        tab = SimulatedTab(entity_id, muted=muted, mute_reason=mute_reason)
        self._tabs[entity_id] = tab
        return tab

    def close_tab(self, entity_id: str) -> None:
        self._tabs.pop(entity_id, None)

    def tab(self, entity_id: str) -> SimulatedTab:
        tab = self._tabs.get(entity_id)
        if tab is None:
            if not self.auto_open:
                raise EntityNotFoundError(f"No entity with id {entity_id}")
            tab = self.open_tab(entity_id)
        return tab

    def user_mute(self, entity_id: str) -> None:
        tab = self.tab(entity_id)
        tab.muted = True
        tab.mute_reason = "user"

    async def get_mute_info(self, entity_id: str) -> MuteInfo:
        tab = self.tab(entity_id)
        await self._delay(tab)
        return MuteInfo(muted=tab.muted, reason=tab.mute_reason)

    async def set_muted(self, entity_id: str, muted: bool) -> None:
        tab = self.tab(entity_id)
        await self._delay(tab)
        tab.muted = muted
        tab.mute_reason = "extension" if muted else None

    async def send_message(self, entity_id: str, message: dict) -> Optional[dict]:
        tab = self.tab(entity_id)
        await self._delay(tab)
        if not tab.responsive:
            return None
        response = tab.handler.handle_message(message)
        if tab.handler.debug_mode:
            logger.debug("Entity %s handled %s -> %s", entity_id, message, response)
        return response

    async def _delay(self, tab: SimulatedTab) -> None:
        if tab.latency_seconds:
            await asyncio.sleep(tab.latency_seconds)
