"""
YouTube Live relay: provisions an RTMP ingest on YouTube and drives the
broadcast lifecycle through the Live Streaming API (v3) over plain REST.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import httpx

from presale_radio.config import settings

logger = logging.getLogger(__name__)

TOKEN_URL = "https://oauth2.googleapis.com/token"
API_BASE = "https://www.googleapis.com/youtube/v3"
MUSIC_CATEGORY_ID = "10"


class RelayError(Exception):
    """The video platform rejected or failed a relay request."""


@dataclass
class RelayTarget:
    stream_id: str  # broadcast id; what start/stop operate on
    live_stream_id: str
    ingest_url: str
    watch_url: str
    title: str


class YouTubeRelayService:
    def __init__(self, transport: httpx.AsyncBaseTransport | None = None, timeout: float | None = None):
        self._transport = transport
        self._timeout = timeout or max(settings.LIVE_PROVIDER_TIMEOUT_SECONDS, 10.0)

    @property
    def enabled(self) -> bool:
        return settings.youtube_enabled

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self._timeout, transport=self._transport)

    async def _access_token(self, client: httpx.AsyncClient) -> str:
        resp = await client.post(
            TOKEN_URL,
            data={
                "client_id": settings.YOUTUBE_CLIENT_ID,
                "client_secret": settings.YOUTUBE_CLIENT_SECRET,
                "refresh_token": settings.YOUTUBE_REFRESH_TOKEN,
                "grant_type": "refresh_token",
            },
        )
        if resp.status_code != 200:
            raise RelayError(f"YouTube token refresh failed ({resp.status_code})")
        return resp.json()["access_token"]

    async def create_relay_target(self, title: str | None = None, description: str | None = None) -> RelayTarget:
        """Create a broadcast + RTMP stream pair and bind them."""
        title = title or settings.YOUTUBE_DEFAULT_TITLE
        description = description or settings.YOUTUBE_DEFAULT_DESCRIPTION
        now = datetime.now(timezone.utc)

        async with self._client() as client:
            headers = {"Authorization": f"Bearer {await self._access_token(client)}"}

            broadcast = await client.post(
                f"{API_BASE}/liveBroadcasts",
                params={"part": "snippet,status,contentDetails"},
                headers=headers,
                json={
                    "snippet": {
                        "title": title,
                        "description": description,
                        "scheduledStartTime": now.isoformat().replace("+00:00", "Z"),
                    },
                    "status": {"privacyStatus": settings.YOUTUBE_PRIVACY_STATUS, "selfDeclaredMadeForKids": False},
                    "contentDetails": {"enableAutoStart": True, "enableAutoStop": True},
                },
            )
            _check(broadcast, "create broadcast")
            broadcast_id = broadcast.json()["id"]

            stream = await client.post(
                f"{API_BASE}/liveStreams",
                params={"part": "snippet,cdn,contentDetails,status"},
                headers=headers,
                json={
                    "snippet": {"title": f"{title} {now:%Y%m%d%H%M%S}"},
                    "cdn": {"ingestionType": "rtmp", "resolution": "variable", "frameRate": "variable"},
                    "contentDetails": {"isReusable": False},
                },
            )
            _check(stream, "create stream")
            stream_data = stream.json()
            ingestion = stream_data["cdn"]["ingestionInfo"]

            bound = await client.post(
                f"{API_BASE}/liveBroadcasts/bind",
                params={"id": broadcast_id, "streamId": stream_data["id"], "part": "id,contentDetails"},
                headers=headers,
            )
            _check(bound, "bind broadcast")

        logger.info("Created YouTube broadcast %s bound to stream %s", broadcast_id, stream_data["id"])
        return RelayTarget(
            stream_id=broadcast_id,
            live_stream_id=stream_data["id"],
            ingest_url=f"{ingestion['ingestionAddress']}/{ingestion['streamName']}",
            watch_url=f"https://www.youtube.com/watch?v={broadcast_id}",
            title=title,
        )

    async def _transition(self, stream_id: str, status: str) -> None:
        async with self._client() as client:
            headers = {"Authorization": f"Bearer {await self._access_token(client)}"}
            resp = await client.post(
                f"{API_BASE}/liveBroadcasts/transition",
                params={"broadcastStatus": status, "id": stream_id, "part": "status"},
                headers=headers,
            )
        if resp.status_code == 403 and "redundantTransition" in resp.text:
            # Auto start/stop already moved the broadcast there
            logger.warning("YouTube broadcast %s already %s", stream_id, status)
            return
        _check(resp, f"transition to {status}")
        logger.info("YouTube broadcast %s -> %s", stream_id, status)

    async def start_relay(self, stream_id: str) -> None:
        await self._transition(stream_id, "live")

    async def stop_relay(self, stream_id: str) -> None:
        await self._transition(stream_id, "complete")


def _check(resp: httpx.Response, what: str) -> None:
    if resp.is_success:
        return
    logger.error("YouTube %s failed: %s %s", what, resp.status_code, resp.text[:300])
    raise RelayError(f"YouTube {what} failed ({resp.status_code})")
