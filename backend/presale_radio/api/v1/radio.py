"""
Radio endpoints: public now-playing status for pollers, plus admin controls
for rebuilding the playlist and moving the schedule.
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from presale_radio.core.dependencies import get_db, require_admin
from presale_radio.models.radio_playlist import RadioPlaylist
from presale_radio.schemas.radio import (
    MusicOnlyResponse,
    PlaylistBuildRequest,
    PlaylistBuildResponse,
    PlaylistDetail,
    PlaylistStateResponse,
    RadioStatusResponse,
    ScheduleMoveResponse,
    SetTrackRequest,
)
from presale_radio.services.live_broadcast_bridge import LiveBroadcastBridge, get_bridge
from presale_radio.services.playlist_builder import BuildOptions
from presale_radio.services.radio_status_service import (
    build_music_only,
    build_status,
    entry_track_info,
    load_catalog,
)
from presale_radio.services.rotation_controller import RotationController, TickResult

router = APIRouter(prefix="/radio", tags=["radio"])

ChannelQuery = Query(default=None, max_length=100, description="Defaults to RADIO_DEFAULT_CHANNEL")


@router.get("/status", response_model=RadioStatusResponse, response_model_exclude_none=True)
async def radio_status(
    channel: str | None = ChannelQuery,
    db: AsyncSession = Depends(get_db),
    bridge: LiveBroadcastBridge = Depends(get_bridge),
):
    """What is on air right now. Always answers; falls back to demo content."""
    return await build_status(db, bridge, channel)


@router.get("/music-only", response_model=MusicOnlyResponse, response_model_exclude_none=True)
async def music_only(
    channel: str | None = ChannelQuery,
    db: AsyncSession = Depends(get_db),
):
    """Ad-free track list for the footer player."""
    return await build_music_only(db, channel)


@router.get("/playlist", response_model=PlaylistStateResponse)
async def get_playlist(
    channel: str | None = ChannelQuery,
    db: AsyncSession = Depends(get_db),
):
    controller = RotationController(db, channel)
    schedule = await controller.read_schedule()
    if schedule is None:
        return PlaylistStateResponse()

    playlist = None
    if schedule.active_playlist_id is not None:
        record = await db.get(RadioPlaylist, schedule.active_playlist_id)
        playlist = PlaylistDetail.model_validate(record) if record else None

    return PlaylistStateResponse(
        playlist=playlist,
        current_entry_index=schedule.current_entry_index,
        epoch_started_at=schedule.epoch_started_at,
        is_live=schedule.is_live,
    )


@router.post("/playlist", response_model=PlaylistBuildResponse, status_code=201)
async def regenerate_playlist(
    data: PlaylistBuildRequest,
    channel: str | None = ChannelQuery,
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    """Build a new playlist and restart the schedule on it."""
    options = BuildOptions(
        shuffle=data.shuffle,
        include_intros=data.include_intros,
        include_ads=data.include_ads,
    )
    playlist = await RotationController(db, channel).regenerate(data.max_duration_seconds, options)
    return PlaylistBuildResponse(
        playlist_id=playlist.id,
        entry_count=playlist.entry_count,
        total_duration_seconds=playlist.total_duration_seconds,
    )


async def _move_response(db: AsyncSession, result: TickResult) -> ScheduleMoveResponse:
    position = result.position
    current = None
    if position.has_content:
        catalog = await load_catalog(db, [position.entry.source_ref])
        current = entry_track_info(position.entry, catalog.get(position.entry.source_ref))
    return ScheduleMoveResponse(
        current_entry_index=position.entry_index,
        epoch_started_at=position.entry_started_at,
        current_track=current,
    )


@router.post("/previous", response_model=ScheduleMoveResponse)
async def previous_track(
    channel: str | None = ChannelQuery,
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    result = await RotationController(db, channel).previous()
    return await _move_response(db, result)


@router.post("/set-track", response_model=ScheduleMoveResponse)
async def set_track(
    data: SetTrackRequest,
    channel: str | None = ChannelQuery,
    db: AsyncSession = Depends(get_db),
    _admin: str = Depends(require_admin),
):
    """Jump the schedule to a specific catalog item in the active playlist."""
    result = await RotationController(db, channel).set_track(data.track_id)
    return await _move_response(db, result)
