from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Dict, List, Literal, Optional
from pathlib import Path

class Settings(BaseSettings):
    """Application settings."""

    # Which side of the phone/watch pair this process plays
    device_role: Literal["phone", "watch"] = "phone"
    peer_url: Optional[str] = None  # e.g. http://watch.local:5011

    # Data directory
    data_dir: str = "data"
    stations_file: str = str(Path(__file__).parent.parent / "data" / "tide_stations.json")

    # NOAA CO-OPS settings
    coops_base_url: str = "https://api.tidesandcurrents.noaa.gov/api/prod/datagetter"
    coops_params: Dict[str, str] = {
        "product": "predictions",
        "units": "metric",
        "time_zone": "gmt",
        "datum": "mllw",
        "interval": "h",
        "format": "json"
    }
    application_name: str = "TideWatch"
    request_timeout: int = 30

    # Samples are kept for [now - window, now + window]
    window_hours: int = 24

    # Background jobs
    refresh_interval_minutes: int = 60
    retry_interval_minutes: int = 15

    # Peer channel retry (seconds)
    channel_retry_delay: float = 2.0
    channel_max_backoff: float = 300.0

    # Complication families rendered on the watch
    active_complications: List[Literal["utilitarian_small", "utilitarian_large"]] = [
        "utilitarian_small",
        "utilitarian_large"
    ]

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="tidewatch_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

settings = Settings()
