"""
Tests for the watch complication timeline.
"""

from datetime import timedelta

import pytest

from tidewatch.features.common.exceptions.sync_exceptions import FetchError
from tidewatch.features.sync.services.snapshot_store import encode_snapshot
from tidewatch.features.tides.models.tide_types import StationMarker, TideSituation, TideSnapshot
from tidewatch.features.tides.services.tide_classifier import TideClassifier
from tidewatch.features.timeline.models.timeline_types import (
    ComplicationFamily,
    TimelineAction,
    TimelineEntry,
)
from tidewatch.features.timeline.services.timeline_reconciler import reconcile
from tidewatch.features.timeline.services.timeline_service import TimelineService

SMALL = ComplicationFamily.UTILITARIAN_SMALL
LARGE = ComplicationFamily.UTILITARIAN_LARGE


@pytest.fixture
def classified_snapshot(stations, make_levels, now):
    """Ten hourly levels starting at now, for the first station."""
    def _make(station=None, heights=(0.2, 0.8, 1.5, 1.9, 1.6, 1.0, 0.4, 0.1, 0.5, 1.2)):
        result = TideClassifier.classify(make_levels(list(heights), start=now))
        return TideSnapshot(
            station=station or stations[0],
            water_levels=result.water_levels,
            average_height=result.average_height,
        )
    return _make


@pytest.fixture
def timeline(coordinator, snapshot_store, bus, now):
    return TimelineService(coordinator, snapshot_store, bus, families=[SMALL, LARGE], clock=lambda: now)


def hours(entries, now):
    return [int((entry.date - now).total_seconds() // 3600) for entry in entries]


class TestReconcile:
    """Test the extend/reload decision."""

    def test_same_station_with_progress_extends(self, classified_snapshot, stations, now):
        snapshot = classified_snapshot()
        action, marker = reconcile(snapshot, StationMarker(station=stations[0]), now + timedelta(hours=5))
        assert action == TimelineAction.EXTEND
        assert marker.station == stations[0]

    def test_station_change_reloads(self, classified_snapshot, stations, now):
        snapshot = classified_snapshot(station=stations[1])
        action, marker = reconcile(snapshot, StationMarker(station=stations[0]), now)
        assert action == TimelineAction.RELOAD
        assert marker.station == stations[1]

    def test_missing_marker_reloads(self, classified_snapshot, now):
        action, _ = reconcile(classified_snapshot(), None, now)
        assert action == TimelineAction.RELOAD

    def test_no_forward_progress_reloads(self, classified_snapshot, stations, now):
        snapshot = classified_snapshot()
        action, _ = reconcile(snapshot, StationMarker(station=stations[0]), snapshot.latest_timestamp)
        assert action == TimelineAction.RELOAD

    def test_nothing_rendered_reloads(self, classified_snapshot, stations):
        action, _ = reconcile(classified_snapshot(), StationMarker(station=stations[0]), None)
        assert action == TimelineAction.RELOAD

    def test_empty_snapshot_reloads(self, stations, now):
        action, _ = reconcile(TideSnapshot.empty(stations[0]), StationMarker(station=stations[0]), now)
        assert action == TimelineAction.RELOAD


class TestTimelineQueries:
    """Test read-only queries over the cached snapshot."""

    @pytest.mark.asyncio
    async def test_entries_before_keeps_nearest(self, timeline, classified_snapshot, now):
        await timeline.reload_or_extend(classified_snapshot())

        entries = timeline.entries_before(now + timedelta(hours=5), 3)
        assert hours(entries, now) == [2, 3, 4]
        assert len(timeline.entries_before(now + timedelta(hours=5), 100)) == 5

    @pytest.mark.asyncio
    async def test_entries_after_keeps_nearest(self, timeline, classified_snapshot, now):
        await timeline.reload_or_extend(classified_snapshot())

        entries = timeline.entries_after(now + timedelta(hours=5), 3)
        assert hours(entries, now) == [6, 7, 8]

    @pytest.mark.asyncio
    async def test_bounds_are_exclusive(self, timeline, classified_snapshot, now):
        await timeline.reload_or_extend(classified_snapshot())

        assert timeline.entries_before(now, 5) == []
        assert timeline.entries_after(now + timedelta(hours=9), 5) == []
        assert timeline.entries_after(now, 0) == []

    @pytest.mark.asyncio
    async def test_naive_dates_are_utc(self, timeline, classified_snapshot, now):
        await timeline.reload_or_extend(classified_snapshot())
        naive = (now + timedelta(hours=2)).replace(tzinfo=None)
        assert hours(timeline.entries_before(naive, 10), now) == [0, 1]

    @pytest.mark.asyncio
    async def test_next_wake_time(self, timeline, classified_snapshot, stations, now):
        assert timeline.next_wake_time(now) == now

        await timeline.reload_or_extend(classified_snapshot())
        assert timeline.next_wake_time(now) == now + timedelta(hours=9)

    @pytest.mark.asyncio
    async def test_current_entry_and_bounds(self, timeline, classified_snapshot, now):
        assert timeline.current_entry() is None
        assert timeline.bounds().start is None

        await timeline.reload_or_extend(classified_snapshot())
        entry = timeline.current_entry(LARGE, now=now + timedelta(minutes=150))

        assert entry.date == now + timedelta(hours=3)
        assert entry.situation == TideSituation.HIGH
        assert entry.image_name == "tide_high"
        assert entry.long_text == "High, +1.9m"
        assert timeline.bounds().end == now + timedelta(hours=9)

    def test_placeholder(self, timeline):
        large = timeline.placeholder_entry(LARGE)
        small = timeline.placeholder_entry(SMALL)

        assert large.short_text == "+2.6m"
        assert large.long_text == "Rising, +2.6m"
        assert small.long_text is None
        assert small.image_name == "tide_rising"

    def test_entry_texts(self, make_levels):
        level = TideClassifier.classify(make_levels([0.0, -0.34])).water_levels[1]
        entry = TimelineEntry.from_water_level(level, SMALL)

        assert entry.short_text == "-0.3m"
        assert entry.animation_group == "Falling"
        assert entry.image_name == "tide_falling"


class TestReloadOrExtend:
    """Test timeline regeneration across refresh cycles."""

    @pytest.mark.asyncio
    async def test_first_refresh_reloads(self, timeline, coordinator, snapshot_store, stations, now):
        await coordinator.refresh()

        assert hours(timeline.timelines[LARGE], now)[0] == -23
        assert len(timeline.timelines[SMALL]) == 47
        assert (await snapshot_store.load_marker()).station == stations[0]

    @pytest.mark.asyncio
    async def test_later_refresh_extends(self, timeline, coordinator, now):
        await coordinator.refresh()
        coordinator.clock = lambda: now + timedelta(hours=2)

        await coordinator.refresh()

        rendered = hours(timeline.timelines[LARGE], now)
        assert len(rendered) == 47
        assert rendered[0] == -21
        assert rendered[-2:] == [24, 25]
        assert timeline.horizon == now + timedelta(hours=25)

    @pytest.mark.asyncio
    async def test_repeated_extends_stay_within_cached_window(
        self, timeline, coordinator, tide_service, make_levels, now
    ):
        def hourly(station_id, from_time, to_time):
            count = int((to_time - from_time).total_seconds() // 3600) + 1
            return make_levels([1.5 + (i % 12) / 10 for i in range(count)], start=from_time)

        tide_service.fetch_samples.side_effect = hourly
        await coordinator.refresh()

        for cycle in range(1, 31):
            coordinator.clock = lambda cycle=cycle: now + timedelta(hours=2 * cycle)
            await coordinator.refresh()

            levels = coordinator.snapshot.water_levels
            rendered = timeline.timelines[LARGE]
            assert len(rendered) <= len(levels)
            assert rendered[0].date == levels[0].timestamp
            assert rendered[-1].date == levels[-1].timestamp

    @pytest.mark.asyncio
    async def test_same_data_reloads(self, timeline, coordinator):
        await coordinator.refresh()
        assert await timeline.reload_or_extend() == TimelineAction.RELOAD

    @pytest.mark.asyncio
    async def test_station_change_reloads(self, timeline, coordinator, snapshot_store, stations, now):
        await coordinator.refresh()
        coordinator.clock = lambda: now + timedelta(hours=2)

        await coordinator.select_station(stations[3])

        rendered = hours(timeline.timelines[LARGE], now)
        assert len(rendered) == 47
        assert rendered[0] == -21
        assert (await snapshot_store.load_marker()).station == stations[3]

    @pytest.mark.asyncio
    async def test_received_snapshot_reloads(self, timeline, coordinator, classified_snapshot, stations):
        await coordinator.refresh()

        await coordinator.on_receive(encode_snapshot(classified_snapshot(station=stations[5])))

        assert timeline.snapshot.station == stations[5]
        assert len(timeline.timelines[SMALL]) == 10

    @pytest.mark.asyncio
    async def test_no_active_complications(self, coordinator, snapshot_store, bus, now):
        idle = TimelineService(coordinator, snapshot_store, bus, families=[], clock=lambda: now)

        assert await idle.reload_or_extend() is None
        assert await snapshot_store.load_marker() is None


class TestWake:
    """Test scheduled wake handling."""

    @pytest.mark.asyncio
    async def test_wake_refreshes_and_reconciles(self, timeline, tide_service):
        assert await timeline.on_wake() is True
        tide_service.fetch_samples.assert_awaited_once()
        assert len(timeline.timelines[LARGE]) == 47

    @pytest.mark.asyncio
    async def test_failed_wake_serves_stale_cache(self, timeline, coordinator, tide_service, now):
        await coordinator.refresh()
        tide_service.fetch_samples.side_effect = FetchError("no network")

        assert await timeline.on_wake() is False
        assert coordinator.is_stale
        assert len(timeline.entries_after(now, 5)) == 5
        assert timeline.next_wake_time(now) == now + timedelta(hours=23)
