# Schemas package
from presale_radio.schemas.radio import (
    MusicOnlyResponse,
    PlaylistBuildRequest,
    PlaylistBuildResponse,
    PlaylistDetail,
    PlaylistStateResponse,
    RadioStatusResponse,
    ScheduleMoveResponse,
    SetTrackRequest,
    TrackInfo,
)
from presale_radio.schemas.live_stream import (
    LiveSessionOut,
    LiveStatusResponse,
    LiveStreamAction,
    LiveStreamActionResponse,
)
