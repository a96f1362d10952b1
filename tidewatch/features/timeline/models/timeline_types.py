from datetime import datetime
from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel, Field

from tidewatch.features.tides.models.tide_types import TideSituation, WaterLevel

class ComplicationFamily(str, Enum):
    UTILITARIAN_SMALL = "utilitarian_small"
    UTILITARIAN_LARGE = "utilitarian_large"

class TimelineAction(str, Enum):
    """What to do with the rendered timeline after a wake."""
    EXTEND = "extend"
    RELOAD = "reload"

TIDE_IMAGES: Dict[TideSituation, str] = {
    TideSituation.HIGH: "tide_high",
    TideSituation.LOW: "tide_low",
    TideSituation.RISING: "tide_rising",
    TideSituation.FALLING: "tide_falling",
    TideSituation.UNKNOWN: "tide_high"
}

class TimelineEntry(BaseModel):
    """One complication timeline entry"""
    date: datetime = Field(..., description="Time the entry becomes current")
    family: ComplicationFamily
    situation: TideSituation
    height: float = Field(..., description="Height in meters")
    short_text: str = Field(..., description="e.g. +2.6m")
    long_text: Optional[str] = Field(None, description="e.g. Rising, +2.6m (large family only)")
    image_name: str
    animation_group: str

    @classmethod
    def from_water_level(cls, level: WaterLevel, family: ComplicationFamily) -> "TimelineEntry":
        return cls(
            date=level.timestamp,
            family=family,
            situation=level.situation,
            height=level.height,
            short_text=level.short_text,
            long_text=level.long_text if family == ComplicationFamily.UTILITARIAN_LARGE else None,
            image_name=TIDE_IMAGES[level.situation],
            animation_group=level.situation.value
        )

class TimelineBounds(BaseModel):
    start: Optional[datetime] = None
    end: Optional[datetime] = None
