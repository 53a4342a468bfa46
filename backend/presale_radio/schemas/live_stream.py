import uuid
from datetime import datetime
from typing import Literal

from pydantic import Field

from presale_radio.schemas.radio import CamelModel


class LiveStatusResponse(CamelModel):
    is_live: bool
    manifest_url: str | None = None
    participant_count: int = 0
    error: str | None = None


class LiveStreamAction(CamelModel):
    action: Literal["start", "stop", "add-track", "update-track"]
    broadcaster_id: str = Field(min_length=1, max_length=255)
    track_id: uuid.UUID | None = None
    relay_enabled: bool = False
    title: str | None = None
    description: str | None = None


class OverlayTrack(CamelModel):
    id: str
    name: str
    artist: str
    album_art: str | None = None
    added_at: datetime | None = None


class LiveSessionOut(CamelModel):
    broadcaster_id: str
    state: str
    participant_count: int = 0
    manifest_url: str | None = None
    relay_target_id: str | None = None
    watch_url: str | None = None
    title: str | None = None
    started_at: datetime | None = None
    current_track: OverlayTrack | None = None
    track_queue: list[OverlayTrack] = []


class LiveStreamActionResponse(CamelModel):
    success: bool = True
    action: str
    message: str | None = None
    session: LiveSessionOut | None = None
