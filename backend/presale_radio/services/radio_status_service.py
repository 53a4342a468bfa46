"""Formats schedule positions into the public radio payloads."""
import logging
import random
import time
import uuid
from datetime import datetime
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from presale_radio.config import settings
from presale_radio.db.base import utcnow
from presale_radio.models.catalog_item import CatalogItem
from presale_radio.models.radio_playlist import EntryKind, PlaylistEntry
from presale_radio.schemas.radio import LiveStreamInfo, MusicOnlyResponse, RadioStatusResponse, TrackInfo
from presale_radio.services import catalog_service, music_only_service
from presale_radio.services.live_broadcast_bridge import LiveBroadcastBridge
from presale_radio.services.playback_resolver import as_utc, upcoming
from presale_radio.services.rotation_controller import RotationController
from presale_radio.services.storage_service import artwork_url

logger = logging.getLogger(__name__)

DEMO_ART = "https://images.unsplash.com/photo-1511379938547-c1f69419868d?w=400&h=400&fit=crop"


def demo_status() -> RadioStatusResponse:
    """Placeholder shown while nothing is scheduled, so the player never renders empty."""
    stamp = time.time()
    return RadioStatusResponse(
        is_active=False,
        is_demo=True,
        current_track=TrackInfo(
            id="demo-track-1",
            name="Demo Track - Vinyl Dreams",
            artist="Demo Artist",
            album_art=artwork_url(None, "demo-track-1", stamp),
            duration=180,
            genre="Indie Rock",
            record_label="Demo Records",
            progress=0.0,
        ),
        next_track=TrackInfo(
            id="demo-track-2",
            name="Demo Track - Digital Age",
            artist="Demo Artist 2",
            album_art=artwork_url(DEMO_ART, "demo-track-2", stamp),
            duration=210,
        ),
    )


async def load_catalog(db: AsyncSession, ids: Iterable[uuid.UUID | None]) -> dict[uuid.UUID, CatalogItem]:
    wanted = {i for i in ids if i is not None}
    if not wanted:
        return {}
    result = await db.execute(select(CatalogItem).where(CatalogItem.id.in_(wanted)))
    return {item.id: item for item in result.scalars().all()}


def entry_track_info(
    entry: PlaylistEntry,
    item: CatalogItem | None,
    stamp: float | None = None,
    progress: float | None = None,
    is_complete: bool | None = None,
) -> TrackInfo:
    is_ad = entry.kind == EntryKind.AD
    is_intro = entry.kind == EntryKind.INTRO
    release = item.release_title or item.title if item else None

    if is_ad:
        name, artist, genre, label = entry.title or "Sponsored Message", "Ad", "Ad", "Sponsored"
    elif is_intro:
        name = f"Intro: {item.title if item else 'Track'}"
        artist = (item.artist_name if item else None) or "Intro"
        genre, label = "Intro", (item.record_label if item else None) or "Independent"
    else:
        name = (item.title if item else entry.title) or "Unknown Track"
        artist = (item.artist_name if item else None) or "Unknown Artist"
        genre = (item.genre if item else None) or "Unknown"
        label = (item.record_label if item else None) or "Independent"

    return TrackInfo(
        id=str(entry.source_ref or entry.id),
        entry_id=str(entry.id),
        kind=entry.kind.value,
        name=name,
        artist=artist,
        album_name=None if is_ad else release,
        album_art=artwork_url(None if is_ad or not item else item.cover_image_url, str(entry.id), stamp),
        duration=entry.duration_seconds,
        genre=genre,
        record_label=label,
        audio_url=entry.audio_url,
        is_ad=is_ad,
        is_intro=is_intro,
        progress=progress,
        is_complete=is_complete,
    )


def catalog_track_info(item: CatalogItem, audio_url: str | None, stamp: float | None = None) -> TrackInfo:
    return TrackInfo(
        id=str(item.id),
        name=item.title or "Unknown Track",
        artist=item.artist_name or "Unknown Artist",
        album_name=item.release_title,
        album_art=artwork_url(item.cover_image_url, str(item.id), stamp),
        duration=item.duration_seconds or settings.RADIO_DEFAULT_TRACK_SECONDS,
        genre=item.genre or "Unknown",
        record_label=item.record_label or "Independent",
        audio_url=audio_url,
    )


async def build_status(
    db: AsyncSession,
    bridge: LiveBroadcastBridge,
    channel: str | None = None,
    now: datetime | None = None,
) -> RadioStatusResponse:
    now = as_utc(now or utcnow())
    controller = RotationController(db, channel)

    if settings.RADIO_LAZY_TICK:
        try:
            await controller.tick(now)
        except Exception:
            # Pollers still get the read-only view
            logger.error("Lazy tick failed for channel %s", controller.channel, exc_info=True)
            await db.rollback()

    schedule, entries, position = await controller.current_position(now)
    if not position.has_content:
        return demo_status()

    following = upcoming(entries, position, settings.RADIO_UP_NEXT_COUNT)
    catalog = await load_catalog(db, [position.entry.source_ref] + [e.source_ref for e in following])
    stamp = time.time()

    current = entry_track_info(
        position.entry,
        catalog.get(position.entry.source_ref),
        stamp,
        progress=round(position.elapsed_seconds, 3),
        is_complete=position.is_complete,
    )
    up_next = [entry_track_info(e, catalog.get(e.source_ref), stamp) for e in following]

    status = RadioStatusResponse(
        is_active=True,
        current_track=current,
        next_track=up_next[0] if up_next else entry_track_info(
            position.next_entry, catalog.get(position.next_entry.source_ref), stamp
        ),
        progress_seconds=round(position.elapsed_seconds, 3),
        total_duration_seconds=sum(e.duration_seconds for e in entries),
        playlist_id=str(schedule.active_playlist_id),
        up_next=up_next,
    )

    if schedule.is_live and schedule.live_broadcaster_id:
        live = await bridge.get_status(schedule.live_broadcaster_id)
        session = bridge.get_session(schedule.live_broadcaster_id)
        if live.is_live:
            status.is_live = True
            status.mode = "live"
            status.live_stream = LiveStreamInfo(
                broadcaster_id=schedule.live_broadcaster_id,
                manifest_url=live.manifest_url,
                participant_count=live.participant_count,
                watch_url=session.watch_url if session else None,
            )
    return status


async def build_music_only(
    db: AsyncSession,
    channel: str | None = None,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> MusicOnlyResponse:
    _, _, position = await RotationController(db, channel).current_position(now)
    candidates = await catalog_service.list_eligible(db, limit=settings.RADIO_MUSIC_ONLY_LIMIT)
    view = music_only_service.project(position, candidates, rng)
    if not view.candidates:
        return MusicOnlyResponse()

    stamp = time.time()
    playlist = [catalog_track_info(c.item, c.preview_asset, stamp) for c in view.candidates]
    return MusicOnlyResponse(
        current_track=playlist[view.current_index],
        next_track=playlist[(view.current_index + 1) % len(playlist)],
        current_track_index=view.current_index,
        playlist=playlist,
    )
