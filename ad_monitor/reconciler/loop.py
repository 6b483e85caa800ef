"""
Reconciler — keeps each entity's mute/hide state in line with the ad
lifecycle observed on the wire.

States:
  NORMAL → (ad-started) → AD_PLAYING → (ad-completed | timeout | corrupt) → NORMAL

Batches for one entity are serialized by a per-entity lock around the whole
read-decide-act-write sequence. Batches for different entities run freely.
A failed state write is logged and reported in the result, never raised.
"""

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional

from ad_monitor.actions.gateway import ActionGateway
from ad_monitor.models.events import EventTag
from ad_monitor.models.reconciler import MonitorConfig, ReconcileResult, Transition
from ad_monitor.models.state import EntityState
from ad_monitor.observability.log import configure_logging
from ad_monitor.state_store.store import EntityStateStore, StorageError

logger = logging.getLogger(__name__)


class Reconciler:
    """
    The ad-lifecycle state machine. Also the entry point for manual toggles,
    which are not ad-aware: they never touch playingAds or adStartTime.
    """

    def __init__(
        self,
        store: EntityStateStore,
        gateway: ActionGateway,
        config: Optional[MonitorConfig] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.gateway = gateway
        self.config = config or MonitorConfig()
        self.clock = clock

        self._locks: Dict[str, asyncio.Lock] = {}
        self._lock_users: Dict[str, int] = {}
        self._debug_lock = asyncio.Lock()
        self._running = False

    @property
    def status(self) -> str:
        """Current heartbeat status."""
        return "running" if self._running else "stopped"

    @asynccontextmanager
    async def _entity_lock(self, entity_id: str) -> AsyncIterator[None]:
        """Serialize work on one entity. The lock is dropped once nobody holds or awaits it."""
        lock = self._locks.get(entity_id)
        if lock is None:
            lock = self._locks[entity_id] = asyncio.Lock()
        self._lock_users[entity_id] = self._lock_users.get(entity_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._lock_users[entity_id] - 1
            if remaining:
                self._lock_users[entity_id] = remaining
            else:
                del self._lock_users[entity_id]
                del self._locks[entity_id]

    def _now(self) -> int:
        return int(self.clock())

    async def handle_batch(
        self,
        entity_id: str,
        tags: Iterable[EventTag],
        now: Optional[int] = None,
    ) -> ReconcileResult:
        """Apply one batch of classified tags to an entity."""
        tags = list(tags)
        if not self.store.ready:
            logger.debug("Ignoring batch for entity %s, state store not initialized", entity_id)
            return self._result(await self.store.get(entity_id), Transition.NOT_READY)

        async with self._entity_lock(entity_id):
            if now is None:
                now = self._now()
            state = await self.store.get(entity_id)
            logger.debug("Batch for entity %s: %s", entity_id, [t.value for t in tags])

            # Completion wins, in case start and complete arrive in one payload.
            if EventTag.AD_COMPLETED in tags:
                return await self._enter_normal(state, Transition.AD_COMPLETED)
            if EventTag.AD_STARTED in tags:
                return await self._enter_ad_playing(state, now)
            return await self._check_desync(state, now)

    async def _enter_ad_playing(self, state: EntityState, now: int) -> ReconcileResult:
        entity_id = state.entity_id
        failed = []

        if not state.muted:
            if await self.gateway.mute(entity_id):
                await self._write(failed, "muted", self.store.set_muted(entity_id, True))
            else:
                failed.append("mute")

        if not state.hidden:
            if await self.gateway.hide_player(entity_id):
                await self._write(failed, "hidden", self.store.set_hidden(entity_id, True))
            else:
                failed.append("hide_player")

        # Re-stamped on every start event so long ad pods extend the window.
        await self._write(
            failed, "playing_ads", self.store.set_playing_ads(entity_id, True, now)
        )
        return self._result(await self.store.get(entity_id), Transition.AD_STARTED, failed)

    async def _enter_normal(self, state: EntityState, transition: Transition) -> ReconcileResult:
        entity_id = state.entity_id
        failed = []

        if state.muted:
            if await self.gateway.unmute(entity_id):
                await self._write(failed, "muted", self.store.set_muted(entity_id, False))
            else:
                failed.append("unmute")

        if state.hidden:
            if await self.gateway.show_player(entity_id):
                await self._write(failed, "hidden", self.store.set_hidden(entity_id, False))
            else:
                failed.append("show_player")

        await self._write(failed, "playing_ads", self.store.set_playing_ads(entity_id, False))
        return self._result(await self.store.get(entity_id), transition, failed)

    async def _write(self, failed: List[str], field: str, write: Awaitable) -> None:
        """Await a state write, recording `persist_<field>` on failure."""
        try:
            await write
        except StorageError as e:
            logger.error("State write for %s failed: %s", field, e)
            failed.append(f"persist_{field}")

    async def _check_desync(self, state: EntityState, now: int) -> ReconcileResult:
        """No lifecycle tag in the batch: recover if the ad belief is stale."""
        if not state.playing_ads:
            return self._result(state, Transition.NONE)

        if state.ad_start_time is None:
            logger.debug(
                "Entity %s tracked as playing ads without a start time, resuming normal playback",
                state.entity_id,
            )
            return await self._enter_normal(state, Transition.CORRUPT_RECOVERY)

        elapsed = now - state.ad_start_time
        if elapsed > self.config.ad_state_timeout_seconds:
            logger.debug(
                "Ad state for entity %s exceeded %ss (%ss elapsed), resuming normal playback",
                state.entity_id,
                self.config.ad_state_timeout_seconds,
                elapsed,
            )
            return await self._enter_normal(state, Transition.TIMEOUT_RECOVERY)

        return self._result(state, Transition.NONE)

    def _result(
        self,
        state: EntityState,
        transition: Transition,
        failed: Optional[List[str]] = None,
    ) -> ReconcileResult:
        return ReconcileResult(
            entity_id=state.entity_id,
            transition=transition,
            phase=state.phase,
            muted=state.muted,
            hidden=state.hidden,
            playing_ads=state.playing_ads,
            actions_failed=failed or [],
        )

    # --- Manual toggles ---

    async def toggle_mute(self, entity_id: str) -> bool:
        """Invert the entity's mute attribution and apply it."""
        if not self.store.ready:
            logger.debug("Refusing toggle_mute for entity %s, state store not initialized", entity_id)
            return False

        async with self._entity_lock(entity_id):
            state = await self.store.get(entity_id)
            if state.muted:
                success = await self.gateway.unmute(entity_id)
            else:
                success = await self.gateway.mute(entity_id)
            if not success:
                return False
            failed = []
            await self._write(failed, "muted", self.store.set_muted(entity_id, not state.muted))
            return not failed

    async def toggle_player(self, entity_id: str) -> bool:
        """Invert the entity's hidden attribution and apply it."""
        if not self.store.ready:
            logger.debug("Refusing toggle_player for entity %s, state store not initialized", entity_id)
            return False

        async with self._entity_lock(entity_id):
            state = await self.store.get(entity_id)
            if state.hidden:
                success = await self.gateway.show_player(entity_id)
            else:
                success = await self.gateway.hide_player(entity_id)
            if not success:
                return False
            failed = []
            await self._write(failed, "hidden", self.store.set_hidden(entity_id, not state.hidden))
            return not failed

    async def toggle_debug(self, entity_id: Optional[str] = None) -> bool:
        """
        Flip the global debug flag. When an entity is named, its handler is
        toggled first and the flag only flips if that succeeds.
        """
        if not self.store.ready:
            logger.debug("Refusing toggle_debug, state store not initialized")
            return False

        async with self._debug_lock:
            if entity_id is not None and not await self.gateway.relay_debug_toggle(entity_id):
                return False
            debug_mode = not self.store.debug_mode
            failed = []
            await self._write(failed, "debug_mode", self.store.set_debug_mode(debug_mode))
            if failed:
                return False
            configure_logging(debug_mode)
            logger.debug("Debug mode is now %s", debug_mode)
            return True

    # --- Heartbeat ---

    async def sweep_once(self, now: Optional[int] = None) -> List[ReconcileResult]:
        """Run the desync check for every entity believed to be playing ads."""
        results = []
        for entity_id in self.store.entities_playing_ads():
            try:
                results.append(await self.handle_batch(entity_id, [], now=now))
            except Exception:
                logger.exception("Desync check failed for entity %s", entity_id)
        return results

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Sweep periodically until the stop event is set."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                try:
                    await self.sweep_once()
                except Exception:
                    logger.exception("Heartbeat sweep failed")
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.config.heartbeat_interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False
