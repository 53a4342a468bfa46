"""
CatalogItem model: the marketplace's release/track record as the radio sees it.
Owned by the catalog service; the radio only reads it and updates play statistics.
"""
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from presale_radio.db.base import Base, TimestampMixin, UUIDPrimaryKeyMixin


class CatalogItem(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    __tablename__ = "catalog_items"

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    artist_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    release_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    genre: Mapped[str | None] = mapped_column(String(100), nullable=True)
    record_label: Mapped[str | None] = mapped_column(String(255), nullable=True)
    cover_image_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Playable media; a short preview is what goes on air
    preview_audio_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    audio_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    duration_seconds: Mapped[int | None] = mapped_column(Integer, nullable=True)

    # Higher priority is scheduled first when not shuffling
    priority: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_radio_eligible: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Play statistics
    radio_play_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_radio_play_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
