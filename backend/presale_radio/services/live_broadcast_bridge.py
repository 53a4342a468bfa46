"""
Live broadcast bridge.

Per broadcaster: offline -> connecting (room has a participant) -> live (HLS
manifest actually servable) -> offline. Sessions only live in this process;
the room provider is the source of truth and is re-polled on every status call.
"""
import asyncio
import enum
import logging
import uuid
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from presale_radio.config import settings
from presale_radio.core.exceptions import NotFoundError, ServiceUnavailableError
from presale_radio.services import catalog_service
from presale_radio.services.livekit_service import LiveKitRoomProvider
from presale_radio.services.rotation_controller import RotationController
from presale_radio.services.status_cache import LiveStatusCache
from presale_radio.services.storage_service import resolve_media_url
from presale_radio.services.youtube_relay_service import YouTubeRelayService

logger = logging.getLogger(__name__)

UNAVAILABLE = "live_streaming_unavailable"
ROOM_LOOKUP_FAILED = "room_lookup_failed"
MANIFEST_UNAVAILABLE = "manifest_unavailable"


class BridgeState(str, enum.Enum):
    OFFLINE = "offline"
    CONNECTING = "connecting"
    LIVE = "live"


@dataclass
class LiveStatus:
    is_live: bool
    manifest_url: str | None = None
    participant_count: int = 0
    error: str | None = None

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass
class BroadcastSession:
    room_id: str
    state: BridgeState = BridgeState.OFFLINE
    participant_count: int = 0
    manifest_url: str | None = None
    consecutive_probe_failures: int = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    title: str | None = None

    # External relay
    relay_target_id: str | None = None
    watch_url: str | None = None
    ingest_url: str | None = None
    egress_id: str | None = None

    # On-screen overlay
    current_track: dict | None = None
    track_queue: list[dict] = field(default_factory=list)

    @property
    def has_relay(self) -> bool:
        return self.relay_target_id is not None or self.egress_id is not None


async def is_manifest_ready(client: httpx.AsyncClient, url: str) -> bool:
    """True only for a real HLS playlist; warming-up endpoints answer 200 with a bare "OK"."""
    try:
        resp = await client.get(url)
    except httpx.HTTPError as e:
        logger.debug("Manifest probe %s failed: %s", url, e)
        return False
    if resp.status_code != 200:
        return False
    body = resp.text.strip()
    if body == "OK":
        return False
    return "#EXTM3U" in body


class LiveBroadcastBridge:
    def __init__(
        self,
        provider: LiveKitRoomProvider | None = None,
        relay: YouTubeRelayService | None = None,
        cache: LiveStatusCache | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.provider = provider or LiveKitRoomProvider()
        self.relay = relay or YouTubeRelayService()
        self.cache = cache or LiveStatusCache()
        self._transport = transport
        self.sessions: dict[str, BroadcastSession] = {}

    @property
    def timeout(self) -> float:
        return settings.LIVE_PROVIDER_TIMEOUT_SECONDS

    # --- Status ---

    async def get_status(self, broadcaster_id: str) -> LiveStatus:
        if not self.provider.enabled:
            return LiveStatus(is_live=False, error=UNAVAILABLE)

        cached = await self.cache.get(broadcaster_id)
        if cached is not None:
            return LiveStatus(**cached)

        try:
            rooms = await asyncio.wait_for(self.provider.list_rooms([broadcaster_id]), self.timeout)
        except Exception as e:
            logger.warning("Room lookup for %s failed: %s", broadcaster_id, e)
            return LiveStatus(is_live=False, error=ROOM_LOOKUP_FAILED)

        status = await self._observe(broadcaster_id, rooms.get(broadcaster_id, 0))
        await self.cache.set(broadcaster_id, status.as_dict())
        return status

    async def _observe(self, broadcaster_id: str, participant_count: int) -> LiveStatus:
        session = self.sessions.get(broadcaster_id)

        if participant_count <= 0:
            if session is not None:
                if session.has_relay:
                    # Keep relay ids around so stop can still tear them down
                    session.state = BridgeState.OFFLINE
                    session.participant_count = 0
                    session.manifest_url = None
                else:
                    del self.sessions[broadcaster_id]
                logger.info("Broadcaster %s went offline (room empty)", broadcaster_id)
            return LiveStatus(is_live=False)

        if session is None:
            session = BroadcastSession(room_id=broadcaster_id)
            self.sessions[broadcaster_id] = session
        if session.state == BridgeState.OFFLINE:
            session.state = BridgeState.CONNECTING
            session.consecutive_probe_failures = 0
            logger.info("Broadcaster %s connecting (%d participants)", broadcaster_id, participant_count)
        session.participant_count = participant_count

        manifest_url = self.provider.derive_manifest_url(broadcaster_id)
        if await self._probe(manifest_url):
            if session.state != BridgeState.LIVE:
                logger.info("Broadcaster %s is live at %s", broadcaster_id, manifest_url)
            session.state = BridgeState.LIVE
            session.manifest_url = manifest_url
            session.consecutive_probe_failures = 0
        elif session.state == BridgeState.LIVE:
            session.consecutive_probe_failures += 1
            if session.consecutive_probe_failures >= settings.LIVE_MANIFEST_MAX_FAILURES:
                logger.warning(
                    "Broadcaster %s manifest failed %d probes in a row, marking offline",
                    broadcaster_id, session.consecutive_probe_failures,
                )
                session.state = BridgeState.OFFLINE
                session.manifest_url = None
                session.consecutive_probe_failures = 0
                return LiveStatus(is_live=False, participant_count=participant_count, error=MANIFEST_UNAVAILABLE)

        return LiveStatus(
            is_live=True,
            manifest_url=session.manifest_url if session.state == BridgeState.LIVE else None,
            participant_count=participant_count,
        )

    async def _probe(self, url: str) -> bool:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                return await asyncio.wait_for(is_manifest_ready(client, url), self.timeout)
        except asyncio.TimeoutError:
            logger.debug("Manifest probe %s timed out", url)
            return False
        except Exception as e:
            # A bad manifest URL must not turn a status poll into a 500
            logger.warning("Manifest probe %s errored: %s", url, e)
            return False

    # --- Broadcast control ---

    def get_session(self, broadcaster_id: str) -> BroadcastSession | None:
        return self.sessions.get(broadcaster_id)

    async def start_broadcast(
        self,
        db: AsyncSession,
        broadcaster_id: str,
        relay_enabled: bool = False,
        title: str | None = None,
        description: str | None = None,
        channel: str | None = None,
    ) -> BroadcastSession:
        """Open a session and, when asked, relay the room to YouTube before going live on the radio."""
        if not self.provider.enabled:
            raise ServiceUnavailableError(UNAVAILABLE)
        if relay_enabled and not self.relay.enabled:
            raise ServiceUnavailableError("YouTube relay is not configured")

        session = self.sessions.get(broadcaster_id)
        if session is None:
            session = BroadcastSession(room_id=broadcaster_id)
            self.sessions[broadcaster_id] = session
        session.title = title or session.title

        if relay_enabled and session.relay_target_id is None:
            try:
                target = await self.relay.create_relay_target(title, description)
                session.relay_target_id = target.stream_id
                session.watch_url = target.watch_url
                session.ingest_url = target.ingest_url
                session.egress_id = await asyncio.wait_for(
                    self.provider.start_forwarding(broadcaster_id, target.ingest_url), self.timeout
                )
                await self.relay.start_relay(target.stream_id)
            except Exception:
                logger.error("Relay start for %s failed, unwinding", broadcaster_id, exc_info=True)
                await self._teardown_relay(session)
                raise ServiceUnavailableError("Could not start the YouTube relay")

        await RotationController(db, channel).set_live(True, broadcaster_id)
        await self.cache.invalidate(broadcaster_id)
        logger.info("Broadcast started for %s (relay=%s)", broadcaster_id, relay_enabled)
        return session

    async def stop_broadcast(
        self, db: AsyncSession, broadcaster_id: str, channel: str | None = None
    ) -> BroadcastSession | None:
        """Stop relay, then forwarding, then drop local state. Local cleanup always happens."""
        session = self.sessions.get(broadcaster_id)
        try:
            if session is not None:
                await self._teardown_relay(session)
        finally:
            self.sessions.pop(broadcaster_id, None)
            await self.cache.invalidate(broadcaster_id)

        await RotationController(db, channel).set_live(False)
        logger.info("Broadcast stopped for %s", broadcaster_id)
        return session

    async def _teardown_relay(self, session: BroadcastSession) -> None:
        if session.relay_target_id:
            try:
                await self.relay.stop_relay(session.relay_target_id)
            except Exception:
                logger.error(
                    "Could not confirm YouTube broadcast %s ended; it may still be live",
                    session.relay_target_id, exc_info=True,
                )
        if session.egress_id:
            try:
                await asyncio.wait_for(self.provider.stop_forwarding(session.egress_id), self.timeout)
            except Exception:
                logger.error(
                    "Could not confirm egress %s stopped for room %s",
                    session.egress_id, session.room_id, exc_info=True,
                )
        session.relay_target_id = None
        session.egress_id = None
        session.ingest_url = None

    # --- Overlay metadata ---

    async def _overlay_track(self, db: AsyncSession, track_id: uuid.UUID) -> dict:
        item = await catalog_service.get_item(db, track_id)
        if item is None or item.is_deleted:
            raise NotFoundError("Track not found")
        return {
            "id": str(item.id),
            "name": item.title,
            "artist": item.artist_name or "Unknown Artist",
            "album_art": resolve_media_url(item.cover_image_url),
            "added_at": datetime.now(timezone.utc),
        }

    def _require_session(self, broadcaster_id: str) -> BroadcastSession:
        session = self.sessions.get(broadcaster_id)
        if session is None:
            raise NotFoundError("No live session for this broadcaster")
        return session

    async def add_track(self, db: AsyncSession, broadcaster_id: str, track_id: uuid.UUID) -> BroadcastSession:
        session = self._require_session(broadcaster_id)
        session.track_queue.append(await self._overlay_track(db, track_id))
        return session

    async def update_track(self, db: AsyncSession, broadcaster_id: str, track_id: uuid.UUID) -> BroadcastSession:
        session = self._require_session(broadcaster_id)
        track = await self._overlay_track(db, track_id)
        session.track_queue = [t for t in session.track_queue if t["id"] != track["id"]]
        session.current_track = track
        return session


_bridge: LiveBroadcastBridge | None = None


def get_bridge() -> LiveBroadcastBridge:
    global _bridge
    if _bridge is None:
        _bridge = LiveBroadcastBridge()
    return _bridge
