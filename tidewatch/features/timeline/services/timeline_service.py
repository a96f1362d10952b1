import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional

from tidewatch.features.tides.models.tide_types import TideSituation, TideSnapshot, WaterLevel
from tidewatch.features.timeline.models.timeline_types import (
    ComplicationFamily,
    TimelineAction,
    TimelineBounds,
    TimelineEntry
)
from tidewatch.features.timeline.services.timeline_reconciler import reconcile
from tidewatch.features.common.exceptions.sync_exceptions import FetchError, PersistenceError
from tidewatch.features.sync.services.notification_bus import NotificationBus, SnapshotEvent
from tidewatch.features.sync.services.snapshot_store import SnapshotStore
from tidewatch.features.sync.services.sync_coordinator import SyncCoordinator, utc_now
from tidewatch.core.config import settings

logger = logging.getLogger(__name__)

def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value

class TimelineService:
    """Watch-side complication timeline kept in step with the cached snapshot."""

    def __init__(
        self,
        coordinator: SyncCoordinator,
        snapshot_store: SnapshotStore,
        bus: NotificationBus,
        families: Optional[Iterable[ComplicationFamily]] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.coordinator = coordinator
        self.snapshot_store = snapshot_store
        self.clock = clock
        if families is None:
            families = [ComplicationFamily(f) for f in settings.active_complications]
        self.timelines: Dict[ComplicationFamily, List[TimelineEntry]] = {f: [] for f in families}
        self._snapshot: TideSnapshot = coordinator.snapshot

        bus.subscribe(SnapshotEvent.REFRESHED, self._on_snapshot_changed)
        bus.subscribe(SnapshotEvent.RECEIVED, self._on_snapshot_changed)

    @property
    def snapshot(self) -> TideSnapshot:
        return self._snapshot

    @property
    def horizon(self) -> Optional[datetime]:
        """Timestamp of the latest entry rendered on any active timeline."""
        ends = [entries[-1].date for entries in self.timelines.values() if entries]
        return max(ends) if ends else None

    async def _on_snapshot_changed(self, snapshot: TideSnapshot) -> None:
        await self.reload_or_extend(snapshot)

    async def on_wake(self) -> bool:
        """Refresh then reconcile; returns False if the refresh failed.

        The timeline is reconciled through the refresh notification. On
        failure the cached snapshot keeps serving queries.
        """
        try:
            await self.coordinator.refresh()
            return True
        except FetchError as e:
            logger.warning(f"Wake refresh failed, serving cached timeline: {str(e)}")
            return False

    async def reload_or_extend(self, snapshot: Optional[TideSnapshot] = None) -> Optional[TimelineAction]:
        """Extend or rebuild the rendered timelines from the latest snapshot.

        Without an explicit snapshot the persisted one is used, falling back
        to the cached copy when nothing can be loaded.
        """
        if snapshot is None:
            try:
                snapshot = await self.snapshot_store.load_snapshot()
            except PersistenceError as e:
                logger.error(f"Error loading snapshot for timeline, using cached copy: {str(e)}")
        if snapshot is not None:
            self._snapshot = snapshot

        if not self.timelines:
            return None

        try:
            marker = await self.snapshot_store.load_marker()
        except PersistenceError as e:
            logger.error(f"Error loading station marker: {str(e)}")
            marker = None

        horizon = self.horizon
        action, new_marker = reconcile(self._snapshot, marker, horizon)
        if action == TimelineAction.EXTEND:
            self._extend(horizon)
        else:
            self._reload()

        try:
            await self.snapshot_store.save_marker(new_marker)
        except PersistenceError as e:
            logger.error(f"Error saving station marker: {str(e)}")

        logger.info(f"Timeline {action.value} for {self._snapshot.station.name}, horizon now {self.horizon}")
        return action

    def _extend(self, horizon: datetime) -> None:
        """Append levels past the horizon and drop entries older than the cached window."""
        levels = self._snapshot.water_levels
        oldest = levels[0].timestamp
        new_levels = [level for level in levels if level.timestamp > horizon]
        for family, entries in self.timelines.items():
            kept = [entry for entry in entries if entry.date >= oldest]
            kept.extend(TimelineEntry.from_water_level(level, family) for level in new_levels)
            self.timelines[family] = kept

    def _reload(self) -> None:
        for family in self.timelines:
            self.timelines[family] = self._entries(self._snapshot.water_levels, family)

    @staticmethod
    def _entries(levels: Iterable[WaterLevel], family: ComplicationFamily) -> List[TimelineEntry]:
        return [TimelineEntry.from_water_level(level, family) for level in levels]

    def entries_before(
        self,
        date: datetime,
        limit: int,
        family: ComplicationFamily = ComplicationFamily.UTILITARIAN_LARGE
    ) -> List[TimelineEntry]:
        """The `limit` entries closest to `date` from below, ascending."""
        if limit <= 0:
            return []
        date = _as_utc(date)
        levels = [level for level in self._snapshot.water_levels if level.timestamp < date]
        return self._entries(levels[-limit:], family)

    def entries_after(
        self,
        date: datetime,
        limit: int,
        family: ComplicationFamily = ComplicationFamily.UTILITARIAN_LARGE
    ) -> List[TimelineEntry]:
        """The `limit` entries closest to `date` from above, ascending."""
        if limit <= 0:
            return []
        date = _as_utc(date)
        levels = [level for level in self._snapshot.water_levels if level.timestamp > date]
        return self._entries(levels[:limit], family)

    def next_wake_time(self, now: Optional[datetime] = None) -> datetime:
        return self._snapshot.latest_timestamp or now or self.clock()

    def current_entry(
        self,
        family: ComplicationFamily = ComplicationFamily.UTILITARIAN_LARGE,
        now: Optional[datetime] = None
    ) -> Optional[TimelineEntry]:
        level = self._snapshot.current_water_level(now or self.clock())
        if level is None:
            return None
        return TimelineEntry.from_water_level(level, family)

    def bounds(self) -> TimelineBounds:
        levels = self._snapshot.water_levels
        if not levels:
            return TimelineBounds()
        return TimelineBounds(start=levels[0].timestamp, end=levels[-1].timestamp)

    def placeholder_entry(
        self,
        family: ComplicationFamily = ComplicationFamily.UTILITARIAN_LARGE
    ) -> TimelineEntry:
        sample = WaterLevel(timestamp=self.clock(), height=2.6, situation=TideSituation.RISING)
        return TimelineEntry.from_water_level(sample, family)
