from fastapi import APIRouter, Depends, HTTPException, Request

from tidewatch.features.tides.models.tide_types import SnapshotResponse, StationSelection
from tidewatch.features.common.exceptions.sync_exceptions import FetchError, StationNotFoundError
from tidewatch.features.stations.services.station_service import StationService
from tidewatch.features.sync.services.sync_coordinator import SyncCoordinator

router = APIRouter(
    prefix="/tides",
    tags=["Tides"]
)

def get_coordinator(request: Request) -> SyncCoordinator:
    """Dependency to get the SyncCoordinator instance."""
    return request.app.state.coordinator

def get_station_service(request: Request) -> StationService:
    """Dependency to get the StationService instance."""
    return request.app.state.station_service

def _snapshot_response(coordinator: SyncCoordinator) -> SnapshotResponse:
    snapshot = coordinator.snapshot
    return SnapshotResponse(
        snapshot=snapshot,
        is_stale=coordinator.is_stale,
        current=snapshot.current_water_level(coordinator.clock())
    )

@router.get(
    "/snapshot",
    response_model=SnapshotResponse,
    summary="Get the current tide snapshot",
    description="Returns the cached station, classified water levels and average height"
)
async def get_snapshot(
    coordinator: SyncCoordinator = Depends(get_coordinator)
) -> SnapshotResponse:
    """Get the current tide snapshot."""
    return _snapshot_response(coordinator)

@router.post(
    "/refresh",
    response_model=SnapshotResponse,
    summary="Refresh tide predictions",
    description="Fetches the last and next 24 hours of predictions and syncs them to the paired device"
)
async def refresh(
    coordinator: SyncCoordinator = Depends(get_coordinator)
) -> SnapshotResponse:
    """Refresh the current station's predictions."""
    try:
        await coordinator.refresh()
    except FetchError as e:
        raise HTTPException(status_code=503, detail=f"Predictions unavailable, showing stale data: {str(e)}")
    return _snapshot_response(coordinator)

@router.put(
    "/station",
    response_model=SnapshotResponse,
    summary="Select a station",
    description="Switches to another station and sends it to the paired device"
)
async def select_station(
    selection: StationSelection,
    coordinator: SyncCoordinator = Depends(get_coordinator),
    stations: StationService = Depends(get_station_service)
) -> SnapshotResponse:
    """Select the station to track."""
    try:
        station = stations.get_station(selection.station_id)
    except StationNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    try:
        await coordinator.select_station(station)
    except FetchError as e:
        raise HTTPException(status_code=503, detail=f"Station selected but predictions unavailable: {str(e)}")
    return _snapshot_response(coordinator)
