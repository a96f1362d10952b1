import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, List, Optional

from tidewatch.features.tides.models.tide_types import TideSnapshot, WaterLevel
from tidewatch.features.tides.services.tide_classifier import TideClassifier
from tidewatch.features.tides.services.tide_service import TideService
from tidewatch.features.stations.services.station_service import StationService
from tidewatch.features.common.models.station_types import Station
from tidewatch.features.common.exceptions.sync_exceptions import (
    ChannelError,
    FetchError,
    PersistenceError
)
from tidewatch.features.sync.services.channel import PeerChannel
from tidewatch.features.sync.services.notification_bus import NotificationBus, SnapshotEvent
from tidewatch.features.sync.services.snapshot_store import SnapshotStore, decode_snapshot, encode_snapshot
from tidewatch.core.config import settings

logger = logging.getLogger(__name__)

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

class SyncCoordinator:
    """Owns the local tide snapshot and keeps the paired device's copy current.

    Refreshes are serialized. A snapshot received from the peer may land
    while a local refresh is in flight; whichever finishes last is what
    gets persisted.
    """

    def __init__(
        self,
        tide_service: TideService,
        snapshot_store: SnapshotStore,
        channel: PeerChannel,
        bus: NotificationBus,
        station_service: StationService,
        window_hours: Optional[int] = None,
        clock: Callable[[], datetime] = utc_now
    ):
        self.tide_service = tide_service
        self.snapshot_store = snapshot_store
        self.channel = channel
        self.bus = bus
        self.station_service = station_service
        self.window = timedelta(hours=window_hours or settings.window_hours)
        self.clock = clock
        self.is_stale = False
        self._snapshot: Optional[TideSnapshot] = None
        self._refresh_lock = asyncio.Lock()

        channel.on_deliver(self.on_receive)

    @property
    def snapshot(self) -> TideSnapshot:
        if self._snapshot is None:
            self._snapshot = TideSnapshot.empty(self.station_service.default_station)
        return self._snapshot

    @property
    def refresh_in_progress(self) -> bool:
        return self._refresh_lock.locked()

    async def load(self) -> TideSnapshot:
        """Load the persisted snapshot, falling back to the default station."""
        try:
            snapshot = await self.snapshot_store.load_snapshot()
        except PersistenceError as e:
            logger.error(f"Error loading persisted snapshot, using default: {str(e)}")
            snapshot = None

        if snapshot is None:
            snapshot = TideSnapshot.empty(self.station_service.default_station)
        self._snapshot = snapshot
        logger.info(f"Loaded snapshot for {snapshot.station.name} ({len(snapshot.water_levels)} levels)")
        return snapshot

    async def refresh(
        self,
        snapshot: Optional[TideSnapshot] = None,
        new_station: bool = False
    ) -> TideSnapshot:
        """Fetch, classify, persist and publish a fresh set of water levels.

        Raises FetchError when predictions cannot be loaded; the current
        snapshot is then kept as is and flagged stale.
        """
        async with self._refresh_lock:
            snapshot = snapshot or self.snapshot
            now = self.clock()
            from_time, to_time = now - self.window, now + self.window

            try:
                levels = await self.tide_service.fetch_samples(snapshot.station.id, from_time, to_time)
            except FetchError as e:
                self.is_stale = True
                logger.warning(f"Failed to load station {snapshot.station.name}: {str(e)}")
                raise

            result = TideClassifier.classify(self._within_window(levels, from_time, to_time))
            refreshed = TideSnapshot(
                station=snapshot.station,
                water_levels=result.water_levels,
                average_height=result.average_height,
                fetched_at=now
            )

            self._snapshot = refreshed
            self.is_stale = False
            try:
                await self.snapshot_store.save_snapshot(refreshed)
            except PersistenceError as e:
                logger.error(f"Error persisting snapshot for {refreshed.station.name}: {str(e)}")

        logger.info(
            f"Refreshed {refreshed.station.name}: {len(refreshed.water_levels)} levels, "
            f"average {refreshed.average_height:.2f}m"
        )
        await self.bus.publish(SnapshotEvent.REFRESHED, refreshed)
        await self.publish(refreshed, new_station)
        return refreshed

    async def select_station(self, station: Station) -> TideSnapshot:
        """Switch to another station, starting from an empty snapshot."""
        if station == self.snapshot.station:
            return self.snapshot

        logger.info(f"Switching station from {self.snapshot.station.name} to {station.name}")
        clean = TideSnapshot.empty(station)
        self._snapshot = clean
        return await self.refresh(clean, new_station=True)

    async def publish(self, snapshot: TideSnapshot, is_new_station: bool) -> None:
        """Send a snapshot to the paired device.

        A new station goes through the queued transfer so the peer is sure to
        switch; a plain refresh only replaces the peer's latest context.
        """
        try:
            payload = encode_snapshot(snapshot)
            if is_new_station:
                await self.channel.send_queued(payload)
            else:
                await self.channel.send_latest(payload)
        except (ChannelError, ValueError) as e:
            logger.warning(f"Could not send snapshot for {snapshot.station.name} to paired device: {str(e)}")

    async def on_receive(self, payload: bytes) -> Optional[TideSnapshot]:
        """Replace local state with a snapshot delivered by the paired device."""
        try:
            snapshot = decode_snapshot(payload)
        except ValueError as e:
            logger.error(f"Dropping undecodable snapshot from paired device: {str(e)}")
            return None

        try:
            await self.snapshot_store.save_snapshot(snapshot)
        except PersistenceError as e:
            logger.error(f"Error persisting received snapshot: {str(e)}")
        self._snapshot = snapshot
        self.is_stale = False

        logger.info(f"Received snapshot for {snapshot.station.name} from paired device")
        await self.bus.publish(SnapshotEvent.RECEIVED, snapshot)
        return snapshot

    @staticmethod
    def _within_window(
        levels: Iterable[WaterLevel],
        from_time: datetime,
        to_time: datetime
    ) -> List[WaterLevel]:
        """Keep levels strictly inside the window, sorted and with unique timestamps."""
        kept = {}
        for level in levels:
            if from_time < level.timestamp < to_time:
                kept.setdefault(level.timestamp, level)
        return [kept[ts] for ts in sorted(kept)]
