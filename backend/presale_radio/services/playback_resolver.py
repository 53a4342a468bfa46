"""
Playback position resolver.

Pure functions of (playlist entries, schedule state, now). Nothing here touches
the database or mutates the schedule; every listener poll goes through
``resolve`` and the rotation controller uses ``walk_forward`` to decide what to
persist.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Sequence


def as_utc(dt: datetime) -> datetime:
    """SQLite hands back naive datetimes; everything here is UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _duration(entry: Any) -> int:
    return max(int(entry.duration_seconds or 0), 0)


@dataclass(frozen=True)
class PlaybackPosition:
    entry: Any | None
    entry_index: int
    elapsed_seconds: float
    remaining_seconds: float
    is_complete: bool
    next_entry: Any | None
    is_exhausted: bool = False
    stored_index: int = 0
    entry_started_at: datetime | None = None

    @property
    def has_content(self) -> bool:
        return self.entry is not None


NO_CONTENT = PlaybackPosition(
    entry=None,
    entry_index=0,
    elapsed_seconds=0.0,
    remaining_seconds=0.0,
    is_complete=False,
    next_entry=None,
)


@dataclass
class WalkResult:
    index: int  # == entry_count once the playlist has been played through
    epoch: datetime
    entry_count: int
    passed: list = field(default_factory=list)

    @property
    def wrapped(self) -> bool:
        return self.index >= self.entry_count


def walk_forward(entries: Sequence[Any], index: int, epoch: datetime, now: datetime) -> WalkResult:
    """Step over every entry whose window has fully elapsed.

    Each step chains the epoch onto the previous entry's theoretical end time,
    so a late caller lands on the same (index, epoch) as a punctual one.
    """
    epoch = as_utc(epoch)
    now = as_utc(now)
    count = len(entries)
    passed = []
    while 0 <= index < count:
        duration = _duration(entries[index])
        end = epoch + timedelta(seconds=duration)
        if now < end:
            break
        passed.append(entries[index])
        epoch = end
        index += 1
    return WalkResult(index=index, epoch=epoch, entry_count=count, passed=passed)


def resolve(entries: Sequence[Any], schedule: Any | None, now: datetime) -> PlaybackPosition:
    """Where playback is for ``schedule`` at ``now``.

    ``is_complete`` refers to the stored entry. The reported entry is projected
    through windows that have already elapsed, stopping at the final entry,
    which is reported with ``is_exhausted`` once its window is over too.
    """
    if schedule is None or not entries or schedule.epoch_started_at is None:
        return NO_CONTENT

    count = len(entries)
    stored_index = schedule.current_entry_index
    if not 0 <= stored_index < count:
        # Stale index from a shorter playlist; treat as played through
        last = entries[-1]
        return PlaybackPosition(
            entry=last,
            entry_index=count - 1,
            elapsed_seconds=float(_duration(last)),
            remaining_seconds=0.0,
            is_complete=True,
            next_entry=entries[0],
            is_exhausted=True,
            stored_index=stored_index,
        )

    epoch = as_utc(schedule.epoch_started_at)
    now = as_utc(now)
    if now < epoch:
        now = epoch  # clock skew

    stored_elapsed = (now - epoch).total_seconds()
    is_complete = stored_elapsed >= _duration(entries[stored_index])

    walk = walk_forward(entries, stored_index, epoch, now)
    exhausted = walk.index >= count
    if exhausted:
        index = count - 1
        started_at = walk.epoch - timedelta(seconds=_duration(entries[index]))
    else:
        index = walk.index
        started_at = walk.epoch

    entry = entries[index]
    duration = _duration(entry)
    elapsed = min(max((now - started_at).total_seconds(), 0.0), float(duration))

    return PlaybackPosition(
        entry=entry,
        entry_index=index,
        elapsed_seconds=elapsed,
        remaining_seconds=float(duration) - elapsed,
        is_complete=is_complete,
        next_entry=entries[(index + 1) % count],
        is_exhausted=exhausted,
        stored_index=stored_index,
        entry_started_at=started_at,
    )


def upcoming(entries: Sequence[Any], position: PlaybackPosition, count: int) -> list:
    """The ``count`` entries after the current one, wrapping around the playlist."""
    if not position.has_content or not entries:
        return []
    total = len(entries)
    return [entries[(position.entry_index + offset) % total] for offset in range(1, min(count, total - 1) + 1)]
