"""
RadioSchedule: the only mutable state behind the virtual radio clock.
One row per channel; writes go through compare-and-set on
(current_entry_index, epoch_started_at).
"""
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from presale_radio.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow


class RadioSchedule(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "radio_schedules"

    channel: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)

    # Deferred so a reset can point at a playlist inserted later in the same transaction
    active_playlist_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("radio_playlists.id", ondelete="SET NULL", deferrable=True, initially="DEFERRED"),
        nullable=True,
    )
    current_entry_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    epoch_started_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    # Live override
    is_live: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    live_broadcaster_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Build options reused by automatic regeneration
    max_duration_seconds: Mapped[int] = mapped_column(Integer, default=3600, nullable=False)
    shuffle: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    include_ads: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    include_intros: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
