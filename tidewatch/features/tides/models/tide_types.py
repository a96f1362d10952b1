from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

from tidewatch.features.common.models.station_types import Station

class TideSituation(str, Enum):
    """Qualitative tide phase derived from neighboring heights."""
    HIGH = "High"
    LOW = "Low"
    RISING = "Rising"
    FALLING = "Falling"
    UNKNOWN = "Unknown"

class WaterLevel(BaseModel):
    """One predicted water level sample."""
    timestamp: datetime = Field(..., description="Time of prediction (UTC)")
    height: float = Field(..., description="Height above MLLW in meters")
    situation: TideSituation = Field(TideSituation.UNKNOWN, description="Derived tide situation")

    model_config = ConfigDict(frozen=True)

    @field_validator('timestamp')
    @classmethod
    def ensure_utc(cls, v: datetime) -> datetime:
        """Ensure timestamps are always timezone aware UTC."""
        if v.tzinfo is None:
            v = v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    @property
    def short_text(self) -> str:
        return f"{self.height:+.1f}m"

    @property
    def long_text(self) -> str:
        return f"{self.situation.value}, {self.short_text}"

class TideSnapshot(BaseModel):
    """A station with its classified water levels, the unit of persistence and sync."""
    station: Station
    water_levels: List[WaterLevel] = Field(default_factory=list)
    average_height: float = 0.0
    fetched_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @classmethod
    def empty(cls, station: Station) -> "TideSnapshot":
        return cls(station=station)

    def current_water_level(self, now: Optional[datetime] = None) -> Optional[WaterLevel]:
        """Get the first water level at or after now."""
        now = now or datetime.now(timezone.utc)
        return next((level for level in self.water_levels if level.timestamp >= now), None)

    @property
    def latest_timestamp(self) -> Optional[datetime]:
        return self.water_levels[-1].timestamp if self.water_levels else None

class StationMarker(BaseModel):
    """Last station whose timeline was rendered on the watch."""
    station: Station

    model_config = ConfigDict(frozen=True)

class SnapshotResponse(BaseModel):
    """Current snapshot with its freshness"""
    snapshot: TideSnapshot
    is_stale: bool = Field(..., description="True if the last refresh failed")
    current: Optional[WaterLevel] = Field(None, description="Water level at or right after now")

class StationSelection(BaseModel):
    station_id: str = Field(..., description="Station identifier")
