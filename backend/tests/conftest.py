import uuid
from collections.abc import AsyncIterator
from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from presale_radio.config import settings
from presale_radio.db.base import Base
from presale_radio.db.session import get_db
from presale_radio.main import create_app
from presale_radio.models.catalog_item import CatalogItem
from presale_radio.services.live_broadcast_bridge import LiveBroadcastBridge, get_bridge
from presale_radio.services.status_cache import LiveStatusCache

# Use SQLite for testing (no PostgreSQL needed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///./test.db"

engine = create_async_engine(TEST_DATABASE_URL, echo=False)
TestSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

ADMIN_TOKEN = "test-admin-token"
T0 = datetime(2025, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

# SQLite compatibility: compile PostgreSQL types to SQLite equivalents
from sqlalchemy.dialects.postgresql import UUID as PG_UUID, JSONB, ENUM as PG_ENUM  # noqa: E402


@event.listens_for(engine.sync_engine, "connect")
def _set_sqlite_pragma(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _register_sqlite_compilers():
    """Register SQLite-compatible compilers for PG types."""
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_UUID, "sqlite")
    def compile_uuid(type_, compiler, **kw):
        return "VARCHAR(36)"

    @compiles(JSONB, "sqlite")
    def compile_jsonb(type_, compiler, **kw):
        return "TEXT"

    @compiles(PG_ENUM, "sqlite")
    def compile_enum(type_, compiler, **kw):
        return "VARCHAR(50)"


_register_sqlite_compilers()


@pytest.fixture(autouse=True)
def radio_settings(monkeypatch):
    """Pin the radio knobs tests reason about, whatever the local .env says."""
    monkeypatch.setattr(settings, "RADIO_DEFAULT_CHANNEL", "main")
    monkeypatch.setattr(settings, "RADIO_DEFAULT_TRACK_SECONDS", 180)
    monkeypatch.setattr(settings, "RADIO_SAMPLE_SECONDS", 0)
    monkeypatch.setattr(settings, "RADIO_INTRO_SECONDS", 8)
    monkeypatch.setattr(settings, "RADIO_AD_SECONDS", 30)
    monkeypatch.setattr(settings, "RADIO_AD_EVERY_N_TRACKS", 5)
    monkeypatch.setattr(settings, "RADIO_AD_LEAD_IN", True)
    monkeypatch.setattr(settings, "RADIO_AD_AUDIO_URLS", [])
    monkeypatch.setattr(settings, "RADIO_INTRO_AUDIO_URLS", ["https://cdn.test/intros/station-id.mp3"])
    monkeypatch.setattr(settings, "RADIO_PLAYLIST_RETENTION", 3)
    monkeypatch.setattr(settings, "RADIO_CAS_MAX_ATTEMPTS", 3)
    monkeypatch.setattr(settings, "RADIO_LAZY_TICK", True)
    monkeypatch.setattr(settings, "LIVE_MANIFEST_MAX_FAILURES", 3)
    monkeypatch.setattr(settings, "LIVE_PROVIDER_TIMEOUT_SECONDS", 1.0)
    monkeypatch.setattr(settings, "REDIS_URL", "")
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", False)
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", ADMIN_TOKEN)
    monkeypatch.setattr(settings, "MEDIA_BASE_URL", "https://cdn.test")


@pytest_asyncio.fixture
async def db_session() -> AsyncIterator[AsyncSession]:
    # Import all models
    import presale_radio.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


class FakeRoomProvider:
    """In-memory stand-in for the LiveKit room service."""

    def __init__(self):
        self.enabled = True
        self.rooms: dict[str, int] = {}
        self.fail_lookup = False
        self.fail_forwarding = False
        self.fail_stop = False
        self.calls: list[tuple] = []

    async def list_rooms(self, room_ids):
        self.calls.append(("list_rooms", tuple(room_ids)))
        if self.fail_lookup:
            raise RuntimeError("twirp error: unavailable")
        return {r: self.rooms[r] for r in room_ids if r in self.rooms}

    def derive_manifest_url(self, room_id):
        return f"https://live.test/hls/{room_id}/index.m3u8"

    async def start_forwarding(self, room_id, ingest_url):
        self.calls.append(("start_forwarding", room_id, ingest_url))
        if self.fail_forwarding:
            raise RuntimeError("egress limit reached")
        return f"EG_{room_id}"

    async def stop_forwarding(self, egress_id):
        self.calls.append(("stop_forwarding", egress_id))
        if self.fail_stop:
            raise RuntimeError("egress not found")


class FakeRelay:
    def __init__(self, calls: list):
        self.enabled = True
        self.calls = calls
        self.fail_start = False
        self.fail_stop = False

    async def create_relay_target(self, title=None, description=None):
        from presale_radio.services.youtube_relay_service import RelayTarget

        self.calls.append(("create_relay_target", title))
        return RelayTarget(
            stream_id="yt-broadcast-1",
            live_stream_id="yt-stream-1",
            ingest_url="rtmp://a.rtmp.youtube.com/live2/key-123",
            watch_url="https://www.youtube.com/watch?v=yt-broadcast-1",
            title=title or "Live",
        )

    async def start_relay(self, stream_id):
        self.calls.append(("start_relay", stream_id))
        if self.fail_start:
            raise RuntimeError("stream not active")

    async def stop_relay(self, stream_id):
        self.calls.append(("stop_relay", stream_id))
        if self.fail_stop:
            raise RuntimeError("youtube unreachable")


class ManifestServer:
    """httpx.MockTransport handler serving canned manifest bodies per URL."""

    def __init__(self):
        self.bodies: dict[str, tuple[int, str]] = {}
        self.requests: list[str] = []
        self.errors: dict[str, Exception] = {}

    def serve(self, url: str, body: str, status: int = 200) -> None:
        self.bodies[url] = (status, body)

    def fail(self, url: str, error: Exception) -> None:
        self.errors[url] = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url in self.errors:
            raise self.errors[url]
        status, body = self.bodies.get(url, (404, "Not Found"))
        return httpx.Response(status, text=body)


@pytest.fixture
def room_provider() -> FakeRoomProvider:
    return FakeRoomProvider()


@pytest.fixture
def relay(room_provider: FakeRoomProvider) -> FakeRelay:
    return FakeRelay(room_provider.calls)


@pytest.fixture
def manifest_server() -> ManifestServer:
    return ManifestServer()


@pytest.fixture
def bridge(room_provider, relay, manifest_server) -> LiveBroadcastBridge:
    return LiveBroadcastBridge(
        provider=room_provider,
        relay=relay,
        cache=LiveStatusCache(ttl_seconds=0),
        transport=httpx.MockTransport(manifest_server),
    )


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, bridge: LiveBroadcastBridge) -> AsyncIterator[AsyncClient]:
    app = create_app()

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_bridge] = lambda: bridge

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> dict:
    return {"Authorization": f"Bearer {ADMIN_TOKEN}"}


@pytest.fixture
def make_item(db_session: AsyncSession):
    """Factory for catalog items; created_at is spaced out so "newest first" is deterministic."""
    counter = {"n": 0}

    async def _make(title: str = "Track", duration: int | None = 180, **kwargs) -> CatalogItem:
        counter["n"] += 1
        kwargs.setdefault("artist_name", f"{title} Artist")
        kwargs.setdefault("preview_audio_url", f"previews/{uuid.uuid4().hex}.mp3")
        kwargs.setdefault("created_at", T0 - timedelta(days=30) + timedelta(minutes=counter["n"]))
        item = CatalogItem(title=title, duration_seconds=duration, **kwargs)
        db_session.add(item)
        await db_session.commit()
        return item

    return _make
