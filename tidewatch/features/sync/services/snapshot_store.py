import logging
from typing import Literal, Optional
from pydantic import BaseModel, ValidationError

from tidewatch.features.tides.models.tide_types import StationMarker, TideSnapshot
from tidewatch.features.common.exceptions.sync_exceptions import PersistenceError
from tidewatch.features.sync.services.blob_store import BlobStore

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
SNAPSHOT_KEY = "tide_conditions"
MARKER_KEY = "current_station"

class SnapshotEnvelope(BaseModel):
    schema_version: Literal[1] = SCHEMA_VERSION
    snapshot: TideSnapshot

class MarkerEnvelope(BaseModel):
    schema_version: Literal[1] = SCHEMA_VERSION
    marker: StationMarker

def encode_snapshot(snapshot: TideSnapshot) -> bytes:
    return SnapshotEnvelope(snapshot=snapshot).model_dump_json().encode("utf-8")

def decode_snapshot(data: bytes) -> TideSnapshot:
    """Decode a snapshot envelope, raising ValueError on anything unreadable."""
    try:
        return SnapshotEnvelope.model_validate_json(data).snapshot
    except ValidationError as e:
        raise ValueError(f"Invalid snapshot payload: {e.error_count()} error(s)") from e

class SnapshotStore:
    """Loads and saves the snapshot and station marker as versioned JSON blobs."""

    def __init__(self, blob_store: BlobStore):
        self.blob_store = blob_store

    async def load_snapshot(self) -> Optional[TideSnapshot]:
        data = await self.blob_store.load_blob(SNAPSHOT_KEY)
        if data is None:
            return None
        try:
            return decode_snapshot(data)
        except ValueError as e:
            raise PersistenceError(f"Stored snapshot is unreadable: {str(e)}") from e

    async def save_snapshot(self, snapshot: TideSnapshot) -> None:
        await self.blob_store.save_blob(SNAPSHOT_KEY, encode_snapshot(snapshot))
        logger.debug(f"Saved snapshot for station {snapshot.station.id} ({len(snapshot.water_levels)} levels)")

    async def load_marker(self) -> Optional[StationMarker]:
        data = await self.blob_store.load_blob(MARKER_KEY)
        if data is None:
            return None
        try:
            return MarkerEnvelope.model_validate_json(data).marker
        except ValidationError as e:
            raise PersistenceError(f"Stored station marker is unreadable: {e.error_count()} error(s)") from e

    async def save_marker(self, marker: StationMarker) -> None:
        await self.blob_store.save_blob(MARKER_KEY, MarkerEnvelope(marker=marker).model_dump_json().encode("utf-8"))
