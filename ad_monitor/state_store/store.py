"""
Entity State Store — durable per-entity state with typed accessors.

Updated by: Reconciler
Queried by: Reconciler + API

Behavioral Contract:
- Write-through: every mutation persists the affected mapping before returning.
- A failed write raises StorageError and leaves in-memory state untouched.
- playingAds and startTime are always set or cleared together.
- Unseen entities read as defaults; nothing is created until a mutation.
- `ready` is False until initialize() has loaded every persisted key.
"""

import logging
from typing import Dict, List, Optional

from ad_monitor.models.state import EntityState, GlobalConfig
from ad_monitor.observability.log import configure_logging
from ad_monitor.state_store.storage import KeyValueStorage

logger = logging.getLogger(__name__)

DEBUG_MODE_KEY = "debugMode"
MUTED_KEY = "mutedTabs"
HIDDEN_KEY = "hiddenPlayers"
PLAYING_ADS_KEY = "playingAds"
START_TIME_KEY = "startTime"


class StorageError(Exception):
    """Raised when a mutation could not be persisted. In-memory state is unchanged."""
    pass


class EntityStateStore:
    """
    Owns every tracked entity's state. Passed explicitly to the Reconciler.
    """

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage
        self._ready = False
        self._config = GlobalConfig()
        self._muted: Dict[str, bool] = {}
        self._hidden: Dict[str, bool] = {}
        self._playing_ads: Dict[str, bool] = {}
        self._start_time: Dict[str, int] = {}

    @property
    def ready(self) -> bool:
        """True once persisted state has been loaded."""
        return self._ready

    @property
    def debug_mode(self) -> bool:
        return self._config.debug_mode

    @property
    def global_config(self) -> GlobalConfig:
        return self._config.model_copy()

    async def initialize(self) -> None:
        """Load all persisted keys, applying defaults where absent."""
        debug_mode = await self.storage.get(DEBUG_MODE_KEY, False)
        self._config = GlobalConfig(debug_mode=bool(debug_mode))
        self._muted = await self._load_flags(MUTED_KEY)
        self._hidden = await self._load_flags(HIDDEN_KEY)
        self._playing_ads = await self._load_flags(PLAYING_ADS_KEY)
        self._start_time = await self._load_times(START_TIME_KEY)

        configure_logging(self._config.debug_mode)
        self._ready = True
        logger.debug(
            "State store initialized: debug_mode=%s, %d entities tracked",
            self._config.debug_mode,
            len(self.tracked_entities()),
        )

    async def _load_mapping(self, key: str) -> dict:
        value = await self.storage.get(key, {})
        if not isinstance(value, dict):
            logger.warning("Stored value for %r is not a mapping, using default", key)
            return {}
        return value

    async def _load_flags(self, key: str) -> Dict[str, bool]:
        mapping = await self._load_mapping(key)
        return {str(k): True for k, v in mapping.items() if v is True}

    async def _load_times(self, key: str) -> Dict[str, int]:
        mapping = await self._load_mapping(key)
        times = {}
        for k, v in mapping.items():
            if isinstance(v, (int, float)) and not isinstance(v, bool):
                times[str(k)] = int(v)
            else:
                logger.debug("Dropping unreadable start time for entity %s: %r", k, v)
        return times

    async def get(self, entity_id: str) -> EntityState:
        """Current state for an entity; defaults if it has never been seen."""
        return EntityState(
            entity_id=entity_id,
            muted=self._muted.get(entity_id, False),
            hidden=self._hidden.get(entity_id, False),
            playing_ads=self._playing_ads.get(entity_id, False),
            ad_start_time=self._start_time.get(entity_id),
        )

    def is_tracked(self, entity_id: str) -> bool:
        return any(
            entity_id in m
            for m in (self._muted, self._hidden, self._playing_ads, self._start_time)
        )

    def tracked_entities(self) -> List[str]:
        """Every entity with at least one non-default field."""
        ids = set(self._muted) | set(self._hidden) | set(self._playing_ads) | set(self._start_time)
        return sorted(ids)

    def entities_playing_ads(self) -> List[str]:
        return sorted(self._playing_ads)

    async def set_muted(self, entity_id: str, value: bool) -> EntityState:
        self._muted = await self._persist(MUTED_KEY, _with_flag(self._muted, entity_id, value))
        return await self.get(entity_id)

    async def set_hidden(self, entity_id: str, value: bool) -> EntityState:
        self._hidden = await self._persist(HIDDEN_KEY, _with_flag(self._hidden, entity_id, value))
        return await self.get(entity_id)

    async def set_playing_ads(
        self, entity_id: str, value: bool, timestamp: Optional[int] = None
    ) -> EntityState:
        """Set or clear the ad-playing belief together with its start time."""
        start_time = dict(self._start_time)
        if value:
            if timestamp is None:
                raise ValueError("A start timestamp is required when ads start playing")
            start_time[entity_id] = int(timestamp)
        else:
            start_time.pop(entity_id, None)
        playing_ads = _with_flag(self._playing_ads, entity_id, value)

        # Memory only moves once both keys are durable.
        await self._persist(START_TIME_KEY, start_time)
        await self._persist(PLAYING_ADS_KEY, playing_ads)
        self._start_time = start_time
        self._playing_ads = playing_ads
        return await self.get(entity_id)

    async def set_debug_mode(self, value: bool) -> None:
        await self._persist(DEBUG_MODE_KEY, value)
        self._config = GlobalConfig(debug_mode=value)

    async def _persist(self, key: str, value):
        try:
            await self.storage.set(key, value)
        except Exception as e:
            logger.error("Failed to persist %r: %s", key, e)
            raise StorageError(f"could not persist {key!r}: {e}") from e
        return value


def _with_flag(mapping: Dict[str, bool], entity_id: str, value: bool) -> Dict[str, bool]:
    updated = dict(mapping)
    if value:
        updated[entity_id] = True
    else:
        updated.pop(entity_id, None)
    return updated
