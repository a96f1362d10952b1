"""
Shared fixtures for tide sync tests.
"""

import math
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from tidewatch.features.stations.services.station_service import StationService
from tidewatch.features.sync.services.blob_store import MemoryBlobStore
from tidewatch.features.sync.services.channel import LoopbackChannel
from tidewatch.features.sync.services.notification_bus import NotificationBus
from tidewatch.features.sync.services.snapshot_store import SnapshotStore
from tidewatch.features.sync.services.sync_coordinator import SyncCoordinator
from tidewatch.features.tides.models.tide_types import WaterLevel
from tidewatch.features.tides.services.tide_service import TideService

NOW = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_levels():
    """Build hourly water levels from a list of heights."""

    def _make(heights, start=NOW, step=timedelta(hours=1)):
        return [
            WaterLevel(timestamp=start + i * step, height=height)
            for i, height in enumerate(heights)
        ]

    return _make


@pytest.fixture
def provider_levels(make_levels):
    """What CO-OPS returns for two whole days: hourly levels from -30h to +30h."""
    heights = [round(1.5 + math.sin(i / 2.0), 3) for i in range(61)]
    return make_levels(heights, start=NOW - timedelta(hours=30))


@pytest.fixture
def tide_service(provider_levels):
    service = AsyncMock(spec=TideService)
    service.fetch_samples.return_value = provider_levels
    return service


@pytest.fixture
def station_service():
    return StationService()


@pytest.fixture
def stations(station_service):
    return station_service.get_stations()


@pytest.fixture
def blob_store():
    return MemoryBlobStore()


@pytest.fixture
def snapshot_store(blob_store):
    return SnapshotStore(blob_store)


@pytest.fixture
def channels():
    return LoopbackChannel.pair()


@pytest.fixture
def bus():
    return NotificationBus()


@pytest.fixture
def coordinator(tide_service, snapshot_store, channels, bus, station_service):
    return SyncCoordinator(
        tide_service=tide_service,
        snapshot_store=snapshot_store,
        channel=channels[0],
        bus=bus,
        station_service=station_service,
        clock=lambda: NOW
    )
