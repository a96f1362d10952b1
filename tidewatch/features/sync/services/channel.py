import asyncio
import logging
import aiohttp
from collections import deque
from typing import Awaitable, Callable, Deque, List, Optional, Tuple

from tidewatch.features.common.exceptions.sync_exceptions import ChannelError
from tidewatch.core.config import settings

logger = logging.getLogger(__name__)

DeliveryHandler = Callable[[bytes], Awaitable[None]]

class PeerChannel:
    """Point-to-point link to the paired device.

    send_latest: only the most recent payload is guaranteed to arrive; a
        pending payload is dropped when superseded.
    send_queued: every payload is delivered eventually, in send order. A
        queued send also drops any context payload still pending.
    on_deliver: handlers run once per delivered payload, in delivery order.
    """

    def __init__(self) -> None:
        self._handlers: List[DeliveryHandler] = []

    def on_deliver(self, handler: DeliveryHandler) -> None:
        self._handlers.append(handler)

    async def deliver(self, payload: bytes) -> None:
        """Hand a payload that arrived from the peer to local handlers."""
        for handler in list(self._handlers):
            try:
                await handler(payload)
            except Exception as e:
                logger.error(f"Error handling delivered payload: {str(e)}")

    async def send_latest(self, payload: bytes) -> None:
        raise NotImplementedError

    async def send_queued(self, payload: bytes) -> None:
        raise NotImplementedError

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass

class LoopbackChannel(PeerChannel):
    """In-memory channel endpoint, paired with another endpoint in the same process."""

    def __init__(self) -> None:
        super().__init__()
        self.peer: Optional["LoopbackChannel"] = None
        self.reachable = True
        self._queued: Deque[bytes] = deque()
        self._latest: Optional[bytes] = None

    @classmethod
    def pair(cls) -> Tuple["LoopbackChannel", "LoopbackChannel"]:
        first, second = cls(), cls()
        first.peer, second.peer = second, first
        return first, second

    @property
    def pending(self) -> int:
        return len(self._queued) + (1 if self._latest is not None else 0)

    async def send_latest(self, payload: bytes) -> None:
        self._check_paired()
        self._latest = payload
        await self.flush()

    async def send_queued(self, payload: bytes) -> None:
        self._check_paired()
        self._queued.append(payload)
        # Any pending context predates this transfer
        self._latest = None
        await self.flush()

    async def set_reachable(self, reachable: bool) -> None:
        self.reachable = reachable
        if reachable:
            await self.flush()

    async def flush(self) -> None:
        """Deliver whatever is pending if the peer can be reached."""
        if not self.reachable or self.peer is None:
            return
        while self._queued:
            await self.peer.deliver(self._queued.popleft())
        if self._latest is not None:
            payload, self._latest = self._latest, None
            await self.peer.deliver(payload)

    def _check_paired(self) -> None:
        if self.peer is None:
            raise ChannelError("No paired device")

class HTTPPeerChannel(PeerChannel):
    """Channel endpoint that POSTs payloads to the peer's sync routes.

    A single outbox worker sends queued transfers in order, then the newest
    context payload, so a context update never lands after a transfer that
    was sent later.
    """

    TRANSFER_PATH = "/sync/transfer"
    CONTEXT_PATH = "/sync/context"

    def __init__(
        self,
        peer_url: Optional[str] = None,
        retry_delay: Optional[float] = None,
        max_backoff: Optional[float] = None,
        timeout: Optional[int] = None
    ):
        super().__init__()
        self.peer_url = (peer_url or settings.peer_url or "").rstrip("/")
        self.retry_delay = retry_delay if retry_delay is not None else settings.channel_retry_delay
        self.max_backoff = max_backoff if max_backoff is not None else settings.channel_max_backoff
        self.timeout = timeout or settings.request_timeout
        self._session: Optional[aiohttp.ClientSession] = None
        self._transfers: Deque[bytes] = deque()
        self._latest: Optional[bytes] = None
        self._ready = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> int:
        return len(self._transfers) + (1 if self._latest is not None else 0)

    async def _init_session(self) -> aiohttp.ClientSession:
        if not self._session:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self.timeout))
        return self._session

    async def start(self) -> None:
        if self._task is None:
            self._task = asyncio.create_task(self._outbox_worker())

    async def close(self) -> None:
        if self._task is not None:
            self._task.cancel()
            await asyncio.gather(self._task, return_exceptions=True)
            self._task = None
        if self._session:
            await self._session.close()
            self._session = None

    async def send_queued(self, payload: bytes) -> None:
        self._check_peer()
        self._transfers.append(payload)
        # Any pending context predates this transfer
        self._latest = None
        self._ready.set()

    async def send_latest(self, payload: bytes) -> None:
        self._check_peer()
        self._latest = payload
        self._ready.set()

    def _check_peer(self) -> None:
        if not self.peer_url:
            raise ChannelError("No peer URL configured")

    async def _post(self, path: str, payload: bytes) -> None:
        try:
            session = await self._init_session()
            async with session.post(
                f"{self.peer_url}{path}",
                data=payload,
                headers={"Content-Type": "application/json"}
            ) as response:
                response.raise_for_status()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ChannelError(f"Peer unreachable at {self.peer_url}: {str(e)}") from e

    def _backoff(self, attempt: int) -> float:
        return min(self.retry_delay * (2 ** attempt), self.max_backoff)

    async def _outbox_worker(self) -> None:
        """Drain the outbox, retrying the head item with backoff until accepted."""
        attempt = 0
        while True:
            await self._ready.wait()
            self._ready.clear()
            while self.pending:
                if self._transfers:
                    path, payload = self.TRANSFER_PATH, self._transfers[0]
                else:
                    path, payload = self.CONTEXT_PATH, self._latest
                try:
                    await self._post(path, payload)
                except ChannelError as e:
                    delay = self._backoff(attempt)
                    attempt += 1
                    logger.warning(f"Send to {path} failed ({str(e)}), retrying in {delay:.0f}s")
                    await asyncio.sleep(delay)
                    continue

                attempt = 0
                if path == self.TRANSFER_PATH:
                    self._transfers.popleft()
                elif self._latest is payload:
                    self._latest = None
