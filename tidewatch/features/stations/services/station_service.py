import json
import logging
from typing import List, Optional
from pathlib import Path

from tidewatch.features.common.models.station_types import Station
from tidewatch.features.common.exceptions.sync_exceptions import StationNotFoundError
from tidewatch.core.config import settings

logger = logging.getLogger(__name__)

class StationService:
    """Static catalog of tide stations."""

    def __init__(self, stations_file: Optional[Path] = None):
        self.stations_file = Path(stations_file or settings.stations_file)
        self._stations: Optional[List[Station]] = None

    def _load_stations(self) -> List[Station]:
        """Load tide stations from JSON file."""
        if self._stations is not None:
            return self._stations

        try:
            with open(self.stations_file) as f:
                stations_data = json.load(f)
        except Exception as e:
            logger.error(f"Error reading tide stations from {self.stations_file}: {str(e)}")
            raise

        self._stations = [
            Station(
                station_id=station["station_id"],
                name=station["name"],
                state=station.get("state") or ""
            )
            for station in stations_data
        ]
        if not self._stations:
            raise ValueError(f"Station catalog {self.stations_file} is empty")
        return self._stations

    def get_stations(self) -> List[Station]:
        """Get list of all tide stations."""
        return list(self._load_stations())

    def get_station(self, station_id: str) -> Station:
        """Get station by ID."""
        station = next(
            (s for s in self._load_stations() if s.id == station_id),
            None
        )
        if not station:
            raise StationNotFoundError(station_id)
        return station

    @property
    def default_station(self) -> Station:
        """First catalog station, used when nothing has been persisted yet."""
        return self._load_stations()[0]
