from fastapi import FastAPI
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from tidewatch.core.config import settings
from tidewatch.core.logging_config import setup_logging
from tidewatch.core.scheduler import Scheduler

# Feature routes
from tidewatch.features.stations.routes.station_routes import router as station_router
from tidewatch.features.tides.routes.tide_routes import router as tide_router
from tidewatch.features.sync.routes.sync_routes import router as sync_router
from tidewatch.features.timeline.routes.timeline_routes import router as timeline_router

# Services
from tidewatch.features.stations.services.station_service import StationService
from tidewatch.features.tides.services.tide_service import TideService
from tidewatch.features.sync.services.blob_store import FileBlobStore
from tidewatch.features.sync.services.channel import HTTPPeerChannel
from tidewatch.features.sync.services.notification_bus import NotificationBus
from tidewatch.features.sync.services.snapshot_store import SnapshotStore
from tidewatch.features.sync.services.sync_coordinator import SyncCoordinator
from tidewatch.features.timeline.services.timeline_service import TimelineService

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    try:
        logger.info(f"🌊 Starting TideWatch ({settings.device_role})...")

        station_service = StationService()
        snapshot_store = SnapshotStore(FileBlobStore(settings.data_dir))
        channel = HTTPPeerChannel()
        bus = NotificationBus()

        coordinator = SyncCoordinator(
            tide_service=TideService(),
            snapshot_store=snapshot_store,
            channel=channel,
            bus=bus,
            station_service=station_service
        )
        await coordinator.load()

        timeline_service = None
        if settings.device_role == "watch":
            timeline_service = TimelineService(coordinator, snapshot_store, bus)
            await timeline_service.reload_or_extend()

        # Store services in app state
        app.state.station_service = station_service
        app.state.channel = channel
        app.state.bus = bus
        app.state.coordinator = coordinator
        app.state.timeline_service = timeline_service

        if settings.peer_url:
            await channel.start()
        else:
            logger.warning("No peer URL configured, snapshots will not be sent to the paired device")

        scheduler = Scheduler(coordinator, timeline_service)
        scheduler.start()
        app.state.scheduler = scheduler

        logger.info("✨ TideWatch startup complete")
        yield

    except Exception as e:
        logger.error(f"❌ Startup error: {str(e)}")
        raise
    finally:
        logger.info("🔄 Shutting down TideWatch...")
        if hasattr(app.state, "scheduler"):
            app.state.scheduler.shutdown()
        if hasattr(app.state, "channel"):
            await app.state.channel.close()
        logger.info("👋 TideWatch shutdown complete")

app = FastAPI(
    title="TideWatch",
    description="Tide predictions kept in sync between a phone and a watch",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.include_router(station_router)
app.include_router(tide_router)
app.include_router(sync_router)
app.include_router(timeline_router)

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "role": settings.device_role,
        "time": datetime.now(timezone.utc).isoformat()
    }

def run() -> None:
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 5010))

    uvicorn.run(
        "tidewatch.main:app",
        host=host,
        port=port,
        log_level=settings.log_level.lower(),
        workers=1
    )

if __name__ == "__main__":
    run()
