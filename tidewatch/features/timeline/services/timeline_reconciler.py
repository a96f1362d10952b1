from datetime import datetime
from typing import Optional, Tuple

from tidewatch.features.tides.models.tide_types import StationMarker, TideSnapshot
from tidewatch.features.timeline.models.timeline_types import TimelineAction

def reconcile(
    snapshot: TideSnapshot,
    marker: Optional[StationMarker],
    horizon: Optional[datetime]
) -> Tuple[TimelineAction, StationMarker]:
    """Decide whether the rendered timeline can be extended or must be rebuilt.

    Extending is only safe when the same station is still shown and the
    snapshot reaches past everything already rendered. Any other case
    (new station, no marker, nothing rendered, no forward progress) reloads.
    The returned marker always points at the snapshot's station.
    """
    new_marker = StationMarker(station=snapshot.station)
    latest = snapshot.latest_timestamp

    if (
        marker is not None
        and marker.station == snapshot.station
        and horizon is not None
        and latest is not None
        and latest > horizon
    ):
        return TimelineAction.EXTEND, new_marker
    return TimelineAction.RELOAD, new_marker
