from fastapi import APIRouter, Depends, Path

from presale_radio.schemas.live_stream import LiveStatusResponse
from presale_radio.services.live_broadcast_bridge import LiveBroadcastBridge, get_bridge

router = APIRouter(prefix="/live-status", tags=["live"])


@router.get("/{broadcaster_id}", response_model=LiveStatusResponse)
async def live_status(
    broadcaster_id: str = Path(min_length=1, max_length=255),
    bridge: LiveBroadcastBridge = Depends(get_bridge),
):
    """
    Is this artist broadcasting right now?
    ``isLive`` with a null ``manifestUrl`` means the room is up but HLS isn't playable yet.
    """
    status = await bridge.get_status(broadcaster_id)
    return LiveStatusResponse(
        is_live=status.is_live,
        manifest_url=status.manifest_url,
        participant_count=status.participant_count,
        error=status.error,
    )
