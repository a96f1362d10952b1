import asyncio
import logging
import aiohttp
from datetime import datetime, timezone
from typing import List, Dict, Any, Optional

from tidewatch.features.tides.models.tide_types import WaterLevel
from tidewatch.features.common.exceptions.sync_exceptions import FetchError
from tidewatch.core.config import settings

logger = logging.getLogger(__name__)

COOPS_TIME_FORMAT = "%Y-%m-%d %H:%M"

class TideService:
    """Service for interacting with NOAA CO-OPS tide data API."""

    def __init__(self, data_url: Optional[str] = None) -> None:
        self.data_url = data_url or settings.coops_base_url

    async def fetch_samples(
        self,
        station_id: str,
        from_time: datetime,
        to_time: datetime
    ) -> List[WaterLevel]:
        """Get hourly water level predictions covering the given window.

        CO-OPS works in whole days, so the result usually extends past both
        ends of the window; callers trim it.
        """
        predictions = await self._get_predictions(station_id, from_time, to_time)

        try:
            return [
                WaterLevel(
                    timestamp=datetime.strptime(p["t"], COOPS_TIME_FORMAT).replace(tzinfo=timezone.utc),
                    height=float(p["v"])
                )
                for p in predictions
            ]
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Malformed prediction for station {station_id}: {str(e)}")
            raise FetchError(f"Malformed prediction for station {station_id}: {str(e)}") from e

    async def _get_predictions(
        self,
        station_id: str,
        start_date: datetime,
        end_date: datetime
    ) -> List[Dict[str, Any]]:
        """Get raw tide predictions for a station from NOAA CO-OPS API."""
        params = {
            **settings.coops_params,
            "application": settings.application_name,
            "station": station_id,
            "begin_date": start_date.astimezone(timezone.utc).strftime("%Y%m%d"),
            "end_date": end_date.astimezone(timezone.utc).strftime("%Y%m%d")
        }

        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(
                    self.data_url,
                    params=params,
                    headers={"Accept": "application/json"},
                    timeout=aiohttp.ClientTimeout(total=settings.request_timeout)
                ) as response:
                    response.raise_for_status()
                    data = await response.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"Error fetching tide predictions for station {station_id}: {str(e)}")
            raise FetchError(f"Error fetching tide predictions for station {station_id}: {str(e)}") from e
        except ValueError as e:
            logger.error(f"Invalid JSON in tide predictions for station {station_id}: {str(e)}")
            raise FetchError(f"Invalid JSON for station {station_id}") from e

        if not isinstance(data, dict):
            raise FetchError(f"Unexpected payload for station {station_id}")

        if "error" in data:
            error = data["error"]
            message = error.get("message", "Unknown error from NOAA API") if isinstance(error, dict) else str(error)
            logger.error(f"NOAA API error for station {station_id}: {message}")
            raise FetchError(message)

        predictions = data.get("predictions")
        if not isinstance(predictions, list):
            raise FetchError(f"No predictions in response for station {station_id}")

        return predictions
