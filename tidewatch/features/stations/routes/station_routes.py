from typing import List
from fastapi import APIRouter, Depends, HTTPException, Request

from tidewatch.features.common.models.station_types import Station
from tidewatch.features.common.exceptions.sync_exceptions import StationNotFoundError
from tidewatch.features.stations.services.station_service import StationService

router = APIRouter(
    prefix="/stations",
    tags=["Stations"]
)

def get_service(request: Request) -> StationService:
    """Dependency to get the StationService instance."""
    return request.app.state.station_service

@router.get(
    "",
    response_model=List[Station],
    summary="Get all tide stations",
    description="Returns the static catalog of tide stations"
)
async def get_all_stations(
    service: StationService = Depends(get_service)
) -> List[Station]:
    """Get all tide stations."""
    return service.get_stations()

@router.get(
    "/{station_id}",
    response_model=Station,
    summary="Get a tide station",
    description="Returns one station from the catalog"
)
async def get_station(
    station_id: str,
    service: StationService = Depends(get_service)
) -> Station:
    """Get a single station by ID."""
    try:
        return service.get_station(station_id)
    except StationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
