"""
Live-stream control: start/stop an artist broadcast (optionally relayed to
YouTube) and manage the track overlay shown on the stream.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from presale_radio.core.dependencies import get_db, require_admin
from presale_radio.core.exceptions import BadRequestError, NotFoundError
from presale_radio.schemas.live_stream import (
    LiveSessionOut,
    LiveStreamAction,
    LiveStreamActionResponse,
    OverlayTrack,
)
from presale_radio.services.live_broadcast_bridge import BroadcastSession, LiveBroadcastBridge, get_bridge

router = APIRouter(prefix="/live-stream", tags=["live"])


def _session_out(session: BroadcastSession | None) -> LiveSessionOut | None:
    if session is None:
        return None
    return LiveSessionOut(
        broadcaster_id=session.room_id,
        state=session.state.value,
        participant_count=session.participant_count,
        manifest_url=session.manifest_url,
        relay_target_id=session.relay_target_id,
        watch_url=session.watch_url,
        title=session.title,
        started_at=session.started_at,
        current_track=OverlayTrack(**session.current_track) if session.current_track else None,
        track_queue=[OverlayTrack(**t) for t in session.track_queue],
    )


@router.post("", response_model=LiveStreamActionResponse)
async def live_stream_action(
    data: LiveStreamAction,
    channel: str | None = Query(default=None, max_length=100),
    db: AsyncSession = Depends(get_db),
    bridge: LiveBroadcastBridge = Depends(get_bridge),
    _admin: str = Depends(require_admin),
):
    if data.action == "start":
        session = await bridge.start_broadcast(
            db,
            data.broadcaster_id,
            relay_enabled=data.relay_enabled,
            title=data.title,
            description=data.description,
            channel=channel,
        )
        message = "Live stream started"
    elif data.action == "stop":
        session = await bridge.stop_broadcast(db, data.broadcaster_id, channel=channel)
        message = "Live stream stopped"
    else:
        if data.track_id is None:
            raise BadRequestError("track_id is required for track actions")
        if data.action == "add-track":
            session = await bridge.add_track(db, data.broadcaster_id, data.track_id)
            message = "Track added to stream queue"
        else:
            session = await bridge.update_track(db, data.broadcaster_id, data.track_id)
            message = "Current track updated"

    return LiveStreamActionResponse(action=data.action, message=message, session=_session_out(session))


@router.get("/{broadcaster_id}", response_model=LiveSessionOut)
async def get_live_session(
    broadcaster_id: str,
    bridge: LiveBroadcastBridge = Depends(get_bridge),
):
    session = bridge.get_session(broadcaster_id)
    if session is None:
        raise NotFoundError("No live session for this broadcaster")
    return _session_out(session)
