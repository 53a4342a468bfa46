import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from presale_radio.models.radio_playlist import EntryKind, PlaylistStatus


class CamelModel(BaseModel):
    """Public radio payloads use camelCase keys; either spelling is accepted on input."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --- Public status ---

class TrackInfo(CamelModel):
    id: str
    entry_id: str | None = None
    kind: str = "track"
    name: str
    artist: str
    album_name: str | None = None
    album_art: str
    duration: int
    genre: str | None = None
    record_label: str | None = None
    audio_url: str | None = None
    is_ad: bool = False
    is_intro: bool = False
    progress: float | None = None
    is_complete: bool | None = None


class LiveStreamInfo(CamelModel):
    broadcaster_id: str
    manifest_url: str | None = None
    participant_count: int = 0
    watch_url: str | None = None


class RadioStatusResponse(CamelModel):
    is_active: bool
    is_live: bool = False
    mode: str = "schedule"
    current_track: TrackInfo | None = None
    next_track: TrackInfo | None = None
    progress_seconds: float = 0.0
    total_duration_seconds: int = 0
    playlist_id: str | None = None
    up_next: list[TrackInfo] = []
    live_stream: LiveStreamInfo | None = None
    is_demo: bool = False


class MusicOnlyResponse(CamelModel):
    current_track: TrackInfo | None = None
    next_track: TrackInfo | None = None
    current_track_index: int = 0
    playlist: list[TrackInfo] = []


# --- Playlist administration ---

class PlaylistBuildRequest(CamelModel):
    max_duration_seconds: int | None = Field(default=None, description="Defaults to RADIO_MAX_DURATION_SECONDS")
    shuffle: bool = True
    include_ads: bool = True
    include_intros: bool = False


class PlaylistBuildResponse(CamelModel):
    playlist_id: uuid.UUID
    entry_count: int
    total_duration_seconds: int


class PlaylistEntryOut(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: uuid.UUID
    kind: EntryKind
    source_ref: uuid.UUID | None = None
    position: int
    duration_seconds: int
    sample_start: int | None = None
    sample_end: int | None = None
    title: str | None = None
    audio_url: str | None = None


class PlaylistDetail(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: uuid.UUID
    channel: str
    name: str
    status: PlaylistStatus
    entry_count: int
    total_duration_seconds: int
    build_options: dict | None = None
    created_at: datetime
    entries: list[PlaylistEntryOut] = []


class PlaylistStateResponse(CamelModel):
    playlist: PlaylistDetail | None = None
    current_entry_index: int = 0
    epoch_started_at: datetime | None = None
    is_live: bool = False


class SetTrackRequest(CamelModel):
    track_id: uuid.UUID


class ScheduleMoveResponse(CamelModel):
    success: bool = True
    current_entry_index: int
    epoch_started_at: datetime | None = None
    current_track: TrackInfo | None = None
