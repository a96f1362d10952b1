from fastapi import APIRouter, Depends, Request, status

from tidewatch.features.sync.services.channel import PeerChannel

router = APIRouter(
    prefix="/sync",
    tags=["Sync"]
)

def get_channel(request: Request) -> PeerChannel:
    """Dependency to get the local channel endpoint."""
    return request.app.state.channel

@router.post(
    "/context",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Receive latest context from the paired device"
)
async def receive_context(
    request: Request,
    channel: PeerChannel = Depends(get_channel)
) -> dict:
    await channel.deliver(await request.body())
    return {"status": "accepted"}

@router.post(
    "/transfer",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Receive a queued transfer from the paired device"
)
async def receive_transfer(
    request: Request,
    channel: PeerChannel = Depends(get_channel)
) -> dict:
    await channel.deliver(await request.body())
    return {"status": "accepted"}
