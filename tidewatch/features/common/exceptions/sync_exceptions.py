class TideWatchError(Exception):
    """Base exception for tide sync errors."""
    pass

class FetchError(TideWatchError):
    """Raised when tide predictions cannot be fetched or parsed."""
    pass

class PersistenceError(TideWatchError):
    """Raised when local state cannot be read, written or decoded."""
    pass

class ChannelError(TideWatchError):
    """Raised when a snapshot cannot be sent to or decoded from the paired device."""
    pass

class StationNotFoundError(TideWatchError):
    """Raised when a station id is not in the catalog."""

    def __init__(self, station_id: str):
        super().__init__(f"Station {station_id} not found")
        self.station_id = station_id
