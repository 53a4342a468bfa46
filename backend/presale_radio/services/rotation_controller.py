"""
Rotation controller: the single writer of radio schedule state.

Every write is a compare-and-set on (active_playlist_id, current_entry_index,
epoch_started_at), so concurrent pollers and the background sweep can all
call ``tick`` and exactly one of them advances the clock.
"""
import enum
import logging
import random
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from presale_radio.config import settings
from presale_radio.core.exceptions import BadRequestError, ConflictError, NotFoundError
from presale_radio.db.base import utcnow
from presale_radio.models.radio_playlist import EntryKind, PlaylistEntry, RadioPlaylist
from presale_radio.models.radio_schedule import RadioSchedule
from presale_radio.services import catalog_service
from presale_radio.services.playback_resolver import NO_CONTENT, PlaybackPosition, as_utc, resolve, walk_forward
from presale_radio.services.playlist_builder import BuildOptions, PlaylistBuilder, PlaylistPlan

logger = logging.getLogger(__name__)


class TickOutcome(str, enum.Enum):
    NOOP = "noop"
    ADVANCED = "advanced"
    REGENERATED = "regenerated"
    NO_CONTENT = "no_content"
    CONFLICT = "conflict"


@dataclass
class TickResult:
    outcome: TickOutcome
    position: PlaybackPosition
    playlist_id: uuid.UUID | None = None


class RotationController:
    """Advances one channel's schedule as entry windows elapse."""

    def __init__(self, db: AsyncSession, channel: str | None = None, rng: random.Random | None = None):
        self.db = db
        self.channel = channel or settings.RADIO_DEFAULT_CHANNEL
        self.builder = PlaylistBuilder(db, self.channel, rng=rng)

    # --- Reads ---

    async def read_schedule(self) -> RadioSchedule | None:
        result = await self.db.execute(
            select(RadioSchedule)
            .where(RadioSchedule.channel == self.channel)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_or_create_schedule(self) -> RadioSchedule:
        schedule = await self.read_schedule()
        if schedule is not None:
            return schedule

        schedule = RadioSchedule(
            channel=self.channel,
            current_entry_index=0,
            epoch_started_at=utcnow(),
            max_duration_seconds=settings.RADIO_MAX_DURATION_SECONDS,
        )
        self.db.add(schedule)
        try:
            await self.db.flush()
        except IntegrityError:
            # Another request created the row first
            await self.db.rollback()
            schedule = await self.read_schedule()
            if schedule is None:
                raise
        else:
            logger.info("Created radio schedule for channel %s", self.channel)
        return schedule

    async def load_entries(self, playlist_id: uuid.UUID | None) -> list[PlaylistEntry]:
        if playlist_id is None:
            return []
        playlist = await self.db.get(RadioPlaylist, playlist_id)
        if playlist is None:
            return []
        return list(playlist.entries)

    async def current_position(self, now: datetime | None = None) -> tuple[RadioSchedule | None, list[PlaylistEntry], PlaybackPosition]:
        """Read-only view used by the status endpoints."""
        now = as_utc(now or utcnow())
        schedule = await self.read_schedule()
        if schedule is None:
            return None, [], NO_CONTENT
        entries = await self.load_entries(schedule.active_playlist_id)
        return schedule, entries, resolve(entries, schedule, now)

    # --- Compare-and-set ---

    async def _compare_and_set(self, schedule: RadioSchedule, **values) -> bool:
        """Write ``values`` only if the row still holds what ``schedule`` was read with."""
        result = await self.db.execute(
            update(RadioSchedule)
            .where(
                RadioSchedule.id == schedule.id,
                RadioSchedule.active_playlist_id.is_not_distinct_from(schedule.active_playlist_id),
                RadioSchedule.current_entry_index == schedule.current_entry_index,
                RadioSchedule.epoch_started_at == schedule.epoch_started_at,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def _reset_to_new_playlist(
        self,
        schedule: RadioSchedule,
        now: datetime,
        options: BuildOptions,
        max_duration: int,
        plan: PlaylistPlan | None = None,
        **extra,
    ) -> RadioPlaylist | None:
        """Claim the reset via CAS, then build. Losers never build."""
        playlist_id = uuid.uuid4()
        claimed = await self._compare_and_set(
            schedule,
            active_playlist_id=playlist_id,
            current_entry_index=0,
            epoch_started_at=now,
            **extra,
        )
        if not claimed:
            return None
        return await self.builder.build(max_duration, options, playlist_id=playlist_id, plan=plan)

    async def _plan_rebuild(self, schedule: RadioSchedule) -> PlaylistPlan | None:
        """Plan a replacement playlist, or None when no track would make it in."""
        if not await catalog_service.has_eligible(self.db):
            return None
        plan = await self.builder.plan(schedule.max_duration_seconds, self._stored_options(schedule))
        if not plan.has_tracks:
            logger.debug(
                "Channel %s: %d eligible items but none fit %ds, not rebuilding",
                self.channel, plan.eligible_count, schedule.max_duration_seconds,
            )
            return None
        return plan

    @staticmethod
    def _stored_options(schedule: RadioSchedule) -> BuildOptions:
        return BuildOptions(
            shuffle=schedule.shuffle,
            include_intros=schedule.include_intros,
            include_ads=schedule.include_ads,
        )

    # --- Tick ---

    async def tick(self, now: datetime | None = None) -> TickResult:
        """Advance past every elapsed entry, regenerating when the playlist runs out."""
        now = as_utc(now or utcnow())
        schedule = await self.get_or_create_schedule()

        for attempt in range(settings.RADIO_CAS_MAX_ATTEMPTS):
            if attempt:
                schedule = await self.read_schedule()
            entries = await self.load_entries(schedule.active_playlist_id)

            if not entries:
                plan = await self._plan_rebuild(schedule)
                if plan is None:
                    return TickResult(TickOutcome.NO_CONTENT, NO_CONTENT, schedule.active_playlist_id)
                playlist = await self._reset_to_new_playlist(
                    schedule, now, self._stored_options(schedule), schedule.max_duration_seconds, plan=plan
                )
                if playlist is not None:
                    return await self._result(TickOutcome.REGENERATED, now)
                continue

            position = resolve(entries, schedule, now)
            if not position.is_complete:
                return TickResult(TickOutcome.NOOP, position, schedule.active_playlist_id)

            walk = walk_forward(entries, schedule.current_entry_index, schedule.epoch_started_at, now)
            if walk.wrapped:
                plan = await self._plan_rebuild(schedule)
                if plan is not None:
                    playlist = await self._reset_to_new_playlist(
                        schedule, now, self._stored_options(schedule), schedule.max_duration_seconds, plan=plan
                    )
                    won = playlist is not None
                    outcome = TickOutcome.REGENERATED
                else:
                    # Nothing playable fits any more; park the schedule until content returns
                    won = await self._compare_and_set(
                        schedule, active_playlist_id=None, current_entry_index=0, epoch_started_at=now
                    )
                    outcome = TickOutcome.NO_CONTENT
            else:
                won = await self._compare_and_set(
                    schedule, current_entry_index=walk.index, epoch_started_at=walk.epoch
                )
                outcome = TickOutcome.ADVANCED

            if won:
                await self._record_plays(walk.passed, now)
                if outcome == TickOutcome.ADVANCED:
                    logger.debug(
                        "Channel %s: advanced %d -> %d", self.channel, schedule.current_entry_index, walk.index
                    )
                else:
                    logger.info("Channel %s: playlist exhausted (%s)", self.channel, outcome.value)
                return await self._result(outcome, now)

        logger.warning(
            "Channel %s: gave up advancing after %d conflicting writes",
            self.channel, settings.RADIO_CAS_MAX_ATTEMPTS,
        )
        schedule = await self.read_schedule()
        entries = await self.load_entries(schedule.active_playlist_id)
        return TickResult(TickOutcome.CONFLICT, resolve(entries, schedule, now), schedule.active_playlist_id)

    async def _result(self, outcome: TickOutcome, now: datetime) -> TickResult:
        schedule = await self.read_schedule()
        entries = await self.load_entries(schedule.active_playlist_id)
        return TickResult(outcome, resolve(entries, schedule, now), schedule.active_playlist_id)

    async def _record_plays(self, passed: list[PlaylistEntry], now: datetime) -> None:
        track_ids = [e.source_ref for e in passed if e.kind == EntryKind.TRACK]
        if track_ids:
            await catalog_service.record_plays(self.db, track_ids, now)

    # --- Admin operations ---

    async def regenerate(
        self,
        max_duration_seconds: int | None = None,
        options: BuildOptions | None = None,
        now: datetime | None = None,
    ) -> RadioPlaylist:
        """Build a fresh playlist and restart the schedule on it."""
        now = as_utc(now or utcnow())
        max_duration = settings.RADIO_MAX_DURATION_SECONDS if max_duration_seconds is None else max_duration_seconds
        if max_duration <= 0:
            raise BadRequestError("max_duration_seconds must be positive")
        options = options or BuildOptions()
        schedule = await self.get_or_create_schedule()

        for attempt in range(settings.RADIO_CAS_MAX_ATTEMPTS):
            if attempt:
                schedule = await self.read_schedule()
            playlist = await self._reset_to_new_playlist(
                schedule,
                now,
                options,
                max_duration,
                max_duration_seconds=max_duration,
                shuffle=options.shuffle,
                include_ads=options.include_ads,
                include_intros=options.include_intros,
            )
            if playlist is not None:
                logger.info("Channel %s: schedule reset onto playlist %s", self.channel, playlist.id)
                return playlist

        _raise_conflict(self.channel)

    async def _move_to(self, index_for, now: datetime | None) -> TickResult:
        now = as_utc(now or utcnow())
        for _ in range(settings.RADIO_CAS_MAX_ATTEMPTS):
            schedule = await self.read_schedule()
            entries = await self.load_entries(schedule.active_playlist_id) if schedule else []
            if not entries:
                raise NotFoundError("No active radio playlist")
            target = index_for(entries, resolve(entries, schedule, now))
            if await self._compare_and_set(schedule, current_entry_index=target, epoch_started_at=now):
                return await self._result(TickOutcome.ADVANCED, now)
        _raise_conflict(self.channel)

    async def previous(self, now: datetime | None = None) -> TickResult:
        """Step back one entry from what listeners currently hear, wrapping to the end."""
        return await self._move_to(lambda entries, pos: (pos.entry_index - 1) % len(entries), now)

    async def set_track(self, catalog_item_id: uuid.UUID, now: datetime | None = None) -> TickResult:
        """Jump to the first entry belonging to ``catalog_item_id``."""

        def index_for(entries, _position):
            for entry in entries:
                if entry.source_ref == catalog_item_id:
                    return entry.position
            raise NotFoundError("Track is not in the active playlist")

        return await self._move_to(index_for, now)

    async def set_live(self, is_live: bool, broadcaster_id: str | None = None) -> RadioSchedule:
        for _ in range(settings.RADIO_CAS_MAX_ATTEMPTS):
            schedule = await self.get_or_create_schedule()
            if await self._compare_and_set(
                schedule, is_live=is_live, live_broadcaster_id=broadcaster_id if is_live else None
            ):
                logger.info("Channel %s: live=%s (broadcaster %s)", self.channel, is_live, broadcaster_id)
                return await self.read_schedule()
        _raise_conflict(self.channel)


def _raise_conflict(channel: str) -> None:
    logger.warning("Channel %s: schedule kept changing underneath an admin update", channel)
    raise ConflictError("Radio schedule is busy, try again")
