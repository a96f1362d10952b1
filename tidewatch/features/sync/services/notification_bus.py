import inspect
import logging
from collections import defaultdict
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Union

from tidewatch.features.tides.models.tide_types import TideSnapshot

logger = logging.getLogger(__name__)

class SnapshotEvent(str, Enum):
    REFRESHED = "snapshot_refreshed"
    RECEIVED = "snapshot_received"

Subscriber = Callable[[TideSnapshot], Union[None, Awaitable[Any]]]

class NotificationBus:
    """In-process publish/subscribe for snapshot changes."""

    def __init__(self) -> None:
        self._subscribers: Dict[SnapshotEvent, List[Subscriber]] = defaultdict(list)

    def subscribe(self, event: SnapshotEvent, callback: Subscriber) -> None:
        self._subscribers[event].append(callback)

    async def publish(self, event: SnapshotEvent, snapshot: TideSnapshot) -> None:
        """Notify subscribers once; one failing observer does not stop the rest."""
        for callback in list(self._subscribers[event]):
            try:
                result = callback(snapshot)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error in {event.value} subscriber {getattr(callback, '__name__', callback)}: {str(e)}")
