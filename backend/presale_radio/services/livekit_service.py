"""LiveKit room provider: room occupancy, HLS manifest location and RTMP forwarding (egress)."""
import logging
from urllib.parse import urlparse

from presale_radio.config import settings

logger = logging.getLogger(__name__)


class LiveKitRoomProvider:
    @property
    def enabled(self) -> bool:
        return settings.livekit_enabled

    def _api(self):
        from livekit import api

        return api.LiveKitAPI(settings.LIVEKIT_URL, settings.LIVEKIT_API_KEY, settings.LIVEKIT_API_SECRET)

    async def list_rooms(self, room_ids: list[str]) -> dict[str, int]:
        """Participant counts keyed by room name; rooms that don't exist are absent."""
        from livekit import api

        lkapi = self._api()
        try:
            resp = await lkapi.room.list_rooms(api.ListRoomsRequest(names=room_ids))
        finally:
            await lkapi.aclose()
        return {room.name: room.num_participants for room in resp.rooms}

    def derive_manifest_url(self, room_id: str) -> str:
        """HLS playlist for a room, served next to the LiveKit host unless overridden."""
        base = settings.LIVEKIT_HLS_BASE_URL
        if not base:
            host = urlparse(settings.LIVEKIT_URL).netloc or settings.LIVEKIT_URL
            base = f"https://{host}/hls"
        return f"{base.rstrip('/')}/{room_id}/index.m3u8"

    async def start_forwarding(self, room_id: str, ingest_url: str) -> str:
        """Push the room's composite output to an RTMP ingest; returns the egress id."""
        from livekit import api

        lkapi = self._api()
        try:
            info = await lkapi.egress.start_room_composite_egress(
                api.RoomCompositeEgressRequest(
                    room_name=room_id,
                    layout="speaker",
                    stream_outputs=[
                        api.StreamOutput(protocol=api.StreamProtocol.RTMP, urls=[ingest_url]),
                    ],
                )
            )
        finally:
            await lkapi.aclose()
        logger.info("Started LiveKit egress %s for room %s", info.egress_id, room_id)
        return info.egress_id

    async def stop_forwarding(self, egress_id: str) -> None:
        from livekit import api

        lkapi = self._api()
        try:
            await lkapi.egress.stop_egress(api.StopEgressRequest(egress_id=egress_id))
        finally:
            await lkapi.aclose()
        logger.info("Stopped LiveKit egress %s", egress_id)
