"""
Action Gateway — issues the two controllable side effects against an entity.

Behavioral Contract:
- Never raises to the caller: every failure (refusal, rejection, transport
  error, timeout) is reported as False and logged at error level.
- Never overrides a mute the user applied.
- Every external call is bounded by a timeout; expiry counts as failure.
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Awaitable, Callable, List, Optional, Protocol

from ad_monitor.models.actions import ActionResult, MuteInfo

logger = logging.getLogger(__name__)

USER_MUTE_REASON = "user"


class ActionError(Exception):
    """Raised when an entity rejects or cannot perform an action."""
    pass


class EntityHost(Protocol):
    """The environment hosting entities (the browser, in production)."""

    async def get_mute_info(self, entity_id: str) -> MuteInfo: ...

    async def set_muted(self, entity_id: str, muted: bool) -> None: ...

    async def send_message(self, entity_id: str, message: dict) -> Optional[dict]: ...


class ActionGateway:
    """
    Dispatches mute/unmute and hide/show requests to an EntityHost and
    reduces each outcome to a boolean.
    """

    def __init__(
        self,
        host: EntityHost,
        timeout_seconds: float = 5.0,
        history_limit: int = 200,
    ):
        self.host = host
        self.timeout_seconds = timeout_seconds
        self.history_limit = history_limit
        self._history: List[ActionResult] = []

    def get_recent_results(self, limit: int = 20) -> List[ActionResult]:
        """Most recent action outcomes, oldest first."""
        return self._history[-limit:]

    async def mute(self, entity_id: str) -> bool:
        async def _mute():
            info = await self.host.get_mute_info(entity_id)
            if info.muted and info.reason == USER_MUTE_REASON:
                raise ActionError("entity was muted by the user, refusing to take over")
            await self.host.set_muted(entity_id, True)

        return (await self._dispatch("mute", entity_id, _mute)).success

    async def unmute(self, entity_id: str) -> bool:
        async def _unmute():
            await self.host.set_muted(entity_id, False)

        return (await self._dispatch("unmute", entity_id, _unmute)).success

    async def hide_player(self, entity_id: str) -> bool:
        return await self._toggle_player(entity_id, hide=True)

    async def show_player(self, entity_id: str) -> bool:
        return await self._toggle_player(entity_id, hide=False)

    async def relay_debug_toggle(self, entity_id: str) -> bool:
        """Ask the entity's own handler to flip its debug output."""
        async def _relay():
            response = await self.host.send_message(entity_id, {"task": "toggleDebug"})
            _require_success(response)

        return (await self._dispatch("toggle_debug", entity_id, _relay)).success

    async def _toggle_player(self, entity_id: str, hide: bool) -> bool:
        async def _request():
            response = await self.host.send_message(
                entity_id, {"task": "togglePlayer", "hide": hide}
            )
            _require_success(response)

        action_type = "hide_player" if hide else "show_player"
        return (await self._dispatch(action_type, entity_id, _request)).success

    async def _dispatch(
        self,
        action_type: str,
        entity_id: str,
        call: Callable[[], Awaitable[None]],
    ) -> ActionResult:
        """Run a single bounded action and record its outcome."""
        start = time.monotonic()
        error = None
        try:
            await asyncio.wait_for(call(), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            error = f"timed out after {self.timeout_seconds}s"
        except Exception as e:
            error = str(e) or e.__class__.__name__

        result = ActionResult(
            action_type=action_type,
            entity_id=entity_id,
            success=error is None,
            error=error,
            duration=round(time.monotonic() - start, 3),
            completed_at=datetime.utcnow(),
        )
        if error is not None:
            logger.error("Action %s failed for entity %s: %s", action_type, entity_id, error)
        else:
            logger.debug("Action %s succeeded for entity %s", action_type, entity_id)

        self._history.append(result)
        if len(self._history) > self.history_limit:
            del self._history[: len(self._history) - self.history_limit]
        return result


def _require_success(response: Optional[dict]) -> None:
    if response is None:
        raise ActionError("no response from entity handler")
    if not isinstance(response, dict) or response.get("success") is not True:
        message = response.get("message") if isinstance(response, dict) else None
        raise ActionError(message or f"entity handler reported failure: {response!r}")
