"""
RadioPlaylist / PlaylistEntry: an immutable, duration-bounded run of tracks,
intros and ads generated for one channel.
"""
import enum
import uuid

from sqlalchemy import ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import ENUM, JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from presale_radio.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class PlaylistStatus(str, enum.Enum):
    ACTIVE = "active"
    RETIRED = "retired"


class EntryKind(str, enum.Enum):
    TRACK = "track"
    INTRO = "intro"  # Spoken/jingle lead-in for the following track
    AD = "ad"


class RadioPlaylist(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "radio_playlists"

    channel: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[PlaylistStatus] = mapped_column(
        ENUM(PlaylistStatus, name="radio_playlist_status", create_type=True, values_callable=_enum_values),
        default=PlaylistStatus.ACTIVE,
        nullable=False,
    )
    entry_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_duration_seconds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Options the playlist was built with, kept for display/debugging
    build_options: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    entries: Mapped[list["PlaylistEntry"]] = relationship(
        "PlaylistEntry",
        back_populates="playlist",
        order_by="PlaylistEntry.position",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )


class PlaylistEntry(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "radio_playlist_entries"
    __table_args__ = (UniqueConstraint("playlist_id", "position", name="uq_radio_entry_position"),)

    playlist_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("radio_playlists.id", ondelete="CASCADE"), nullable=False, index=True
    )
    kind: Mapped[EntryKind] = mapped_column(
        ENUM(EntryKind, name="radio_entry_kind", create_type=True, values_callable=_enum_values),
        default=EntryKind.TRACK,
        nullable=False,
    )
    # Catalog item for tracks and intros; ads carry no catalog reference
    source_ref: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("catalog_items.id", ondelete="SET NULL"), nullable=True, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    duration_seconds: Mapped[int] = mapped_column(Integer, nullable=False)

    # Optional window into the source asset (seconds)
    sample_start: Mapped[int | None] = mapped_column(Integer, nullable=True)
    sample_end: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Display snapshot taken at build time
    title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    audio_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    playlist: Mapped["RadioPlaylist"] = relationship("RadioPlaylist", back_populates="entries")
