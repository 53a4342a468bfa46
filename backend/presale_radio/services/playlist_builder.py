"""Playlist builder: turns the eligible catalog into a duration-bounded run of entries."""
import logging
import random
import uuid
from dataclasses import asdict, dataclass
from typing import Sequence

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from presale_radio.config import settings
from presale_radio.core.exceptions import BadRequestError
from presale_radio.db.base import utcnow
from presale_radio.models.radio_playlist import EntryKind, PlaylistEntry, PlaylistStatus, RadioPlaylist
from presale_radio.models.radio_schedule import RadioSchedule
from presale_radio.services.catalog_service import EligibleItem, list_eligible

logger = logging.getLogger(__name__)

AD_TITLE = "Sponsored Message"


@dataclass(frozen=True)
class BuildOptions:
    shuffle: bool = True
    include_intros: bool = False
    include_ads: bool = True

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class PlaylistPlan:
    entries: list[dict]
    eligible_count: int

    @property
    def total_seconds(self) -> int:
        return sum(e["duration_seconds"] for e in self.entries)

    @property
    def has_tracks(self) -> bool:
        return any(e["kind"] == EntryKind.TRACK for e in self.entries)


def track_window(item: EligibleItem) -> tuple[int, int | None, int | None]:
    """(duration, sample_start, sample_end) for one catalog item."""
    duration = item.duration_hint if item.duration_hint and item.duration_hint > 0 else settings.RADIO_DEFAULT_TRACK_SECONDS
    if settings.RADIO_SAMPLE_SECONDS > 0:
        end = min(duration, settings.RADIO_SAMPLE_SECONDS)
        return end, 0, end
    return duration, None, None


def _greedy(
    items: Sequence[EligibleItem],
    max_duration_seconds: int,
    options: BuildOptions,
    rng: random.Random,
    lead_in: bool,
) -> list[dict]:
    planned: list[dict] = []
    running = 0
    tracks_since_ad = 0
    intro_urls = settings.RADIO_INTRO_AUDIO_URLS if options.include_intros else []

    def add_ad() -> None:
        nonlocal running, tracks_since_ad
        if running + settings.RADIO_AD_SECONDS > max_duration_seconds:
            return
        ad_urls = settings.RADIO_AD_AUDIO_URLS
        planned.append({
            "kind": EntryKind.AD,
            "source_ref": None,
            "duration_seconds": settings.RADIO_AD_SECONDS,
            "title": AD_TITLE,
            "audio_url": rng.choice(ad_urls) if ad_urls else None,
        })
        running += settings.RADIO_AD_SECONDS
        tracks_since_ad = 0

    if lead_in and items:
        add_ad()

    for item in items:
        duration, sample_start, sample_end = track_window(item)
        intro_cost = settings.RADIO_INTRO_SECONDS if intro_urls else 0
        if running + duration + intro_cost > max_duration_seconds:
            continue

        if intro_urls:
            planned.append({
                "kind": EntryKind.INTRO,
                "source_ref": item.id,
                "duration_seconds": settings.RADIO_INTRO_SECONDS,
                "title": f"Intro: {item.item.title}",
                "audio_url": rng.choice(intro_urls),
            })
        planned.append({
            "kind": EntryKind.TRACK,
            "source_ref": item.id,
            "duration_seconds": duration,
            "sample_start": sample_start,
            "sample_end": sample_end,
            "title": item.item.title,
            "audio_url": item.preview_asset,
        })
        running += duration + intro_cost
        tracks_since_ad += 1

        if options.include_ads and tracks_since_ad >= settings.RADIO_AD_EVERY_N_TRACKS:
            add_ad()

    return planned


def plan_entries(
    items: Sequence[EligibleItem],
    max_duration_seconds: int,
    options: BuildOptions,
    rng: random.Random | None = None,
) -> list[dict]:
    """Greedy selection of entries in the given candidate order.

    A track (plus its intro) that would overflow the budget is skipped and the
    next candidate is tried; nothing is ever cut short. The opening ad is only
    kept when at least one track still fits after it, and intros are only
    planned when there is intro audio to play.
    """
    rng = rng or random.Random()
    lead_in = options.include_ads and settings.RADIO_AD_LEAD_IN
    planned = _greedy(items, max_duration_seconds, options, rng, lead_in)
    if lead_in and not any(e["kind"] == EntryKind.TRACK for e in planned):
        planned = _greedy(items, max_duration_seconds, options, rng, lead_in=False)

    for position, entry in enumerate(planned):
        entry["position"] = position
    return planned


class PlaylistBuilder:
    """Builds and persists playlists for one channel."""

    def __init__(self, db: AsyncSession, channel: str, rng: random.Random | None = None):
        self.db = db
        self.channel = channel
        self.rng = rng or random.Random()

    async def plan(self, max_duration_seconds: int, options: BuildOptions | None = None) -> PlaylistPlan:
        """Pick entries for a playlist without writing anything."""
        if max_duration_seconds is None or max_duration_seconds <= 0:
            raise BadRequestError("max_duration_seconds must be positive")
        options = options or BuildOptions()
        if options.include_intros and not settings.RADIO_INTRO_AUDIO_URLS:
            logger.warning(
                "Channel %s: intros requested but RADIO_INTRO_AUDIO_URLS is empty, skipping them", self.channel
            )

        items = await list_eligible(self.db)
        if options.shuffle:
            self.rng.shuffle(items)
        return PlaylistPlan(
            entries=plan_entries(items, max_duration_seconds, options, self.rng),
            eligible_count=len(items),
        )

    async def build(
        self,
        max_duration_seconds: int,
        options: BuildOptions | None = None,
        playlist_id: uuid.UUID | None = None,
        plan: PlaylistPlan | None = None,
    ) -> RadioPlaylist:
        """Build a new active playlist, retiring the channel's previous one.

        The schedule is left alone; callers that want listeners to hear the new
        playlist reset the schedule themselves.
        """
        options = options or BuildOptions()
        if plan is None:
            plan = await self.plan(max_duration_seconds, options)
        planned = plan.entries
        total = plan.total_seconds

        await self.db.execute(
            update(RadioPlaylist)
            .where(RadioPlaylist.channel == self.channel, RadioPlaylist.status == PlaylistStatus.ACTIVE)
            .values(status=PlaylistStatus.RETIRED)
        )

        playlist = RadioPlaylist(
            id=playlist_id or uuid.uuid4(),
            channel=self.channel,
            name=f"{self.channel.title()} Radio {utcnow():%Y-%m-%d %H:%M}",
            status=PlaylistStatus.ACTIVE,
            entry_count=len(planned),
            total_duration_seconds=total,
            build_options={**options.as_dict(), "max_duration_seconds": max_duration_seconds},
            entries=[PlaylistEntry(**entry) for entry in planned],
        )
        self.db.add(playlist)
        await self.db.flush()

        if not plan.eligible_count:
            logger.warning("Channel %s: no eligible catalog items, built an empty playlist", self.channel)
        elif not planned:
            logger.warning(
                "Channel %s: none of %d eligible items fit the %ds budget, built an empty playlist",
                self.channel, plan.eligible_count, max_duration_seconds,
            )
        else:
            logger.info(
                "Channel %s: built playlist %s (%d entries, %ds of %ds budget)",
                self.channel, playlist.id, len(planned), total, max_duration_seconds,
            )

        await self.prune()
        return playlist

    async def prune(self) -> int:
        """Delete retired playlists beyond the retention window."""
        keep = max(settings.RADIO_PLAYLIST_RETENTION, 0)
        result = await self.db.execute(
            select(RadioPlaylist.id)
            .where(RadioPlaylist.channel == self.channel, RadioPlaylist.status == PlaylistStatus.RETIRED)
            .order_by(RadioPlaylist.created_at.desc(), RadioPlaylist.id)
            .offset(keep)
        )
        stale = set(result.scalars().all())
        if not stale:
            return 0

        # Never drop the playlist a schedule still points at
        result = await self.db.execute(
            select(RadioSchedule.active_playlist_id).where(RadioSchedule.active_playlist_id.in_(stale))
        )
        stale -= set(result.scalars().all())
        if not stale:
            return 0

        await self.db.execute(delete(PlaylistEntry).where(PlaylistEntry.playlist_id.in_(stale)))
        await self.db.execute(delete(RadioPlaylist).where(RadioPlaylist.id.in_(stale)))
        logger.info("Channel %s: pruned %d retired playlists", self.channel, len(stale))
        return len(stale)
