import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from presale_radio.config import settings

NO_CACHE = "no-cache, no-store, must-revalidate"


@pytest.mark.asyncio
async def test_status_without_content_returns_demo(client: AsyncClient):
    response = await client.get("/api/v1/radio/status")
    assert response.status_code == 200
    data = response.json()
    assert data["isActive"] is False
    assert data["isDemo"] is True
    assert data["currentTrack"]["id"] == "demo-track-1"
    assert "t=demo-track-1" in data["currentTrack"]["albumArt"]
    assert response.headers["Cache-Control"] == NO_CACHE
    assert response.headers["Pragma"] == "no-cache"
    assert response.headers["Expires"] == "0"


@pytest.mark.asyncio
async def test_status_lazily_builds_when_catalog_has_content(client: AsyncClient, make_item):
    await make_item("Fresh Cut", duration=200, genre="Jazz", cover_image_url="https://img.test/fresh.jpg")

    response = await client.get("/api/v1/radio/status")
    data = response.json()
    assert data["isActive"] is True
    assert data["mode"] == "schedule"
    assert data["playlistId"]
    # Lead-in ad comes first
    assert data["currentTrack"]["isAd"] is True
    assert data["currentTrack"]["name"] == "Sponsored Message"
    assert data["nextTrack"]["name"] == "Fresh Cut"
    assert data["nextTrack"]["genre"] == "Jazz"
    assert data["nextTrack"]["albumArt"].startswith("https://img.test/fresh.jpg?v=")
    assert data["totalDurationSeconds"] == 230
    assert 0 <= data["progressSeconds"] <= 30


@pytest.mark.asyncio
async def test_regenerate_requires_admin(client: AsyncClient):
    response = await client.post("/api/v1/radio/playlist", json={})
    assert response.status_code == 401

    response = await client.post(
        "/api/v1/radio/playlist", json={}, headers={"Authorization": "Bearer wrong"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_admin_disabled_without_token(client: AsyncClient, auth_headers: dict, monkeypatch):
    monkeypatch.setattr(settings, "ADMIN_API_TOKEN", "")
    response = await client.post("/api/v1/radio/playlist", json={}, headers=auth_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_regenerate_and_read_playlist(client: AsyncClient, auth_headers: dict, make_item):
    for i in range(3):
        await make_item(f"Cut {i}", duration=100)

    response = await client.post(
        "/api/v1/radio/playlist",
        json={"maxDurationSeconds": 250, "shuffle": False, "includeAds": False},
        headers=auth_headers,
    )
    assert response.status_code == 201
    built = response.json()
    assert built["entryCount"] == 2
    assert built["totalDurationSeconds"] == 200

    response = await client.get("/api/v1/radio/playlist")
    data = response.json()
    assert data["playlist"]["id"] == built["playlistId"]
    assert data["playlist"]["status"] == "active"
    assert [e["position"] for e in data["playlist"]["entries"]] == [0, 1]
    assert data["currentEntryIndex"] == 0


@pytest.mark.asyncio
async def test_regenerate_rejects_bad_budget(client: AsyncClient, auth_headers: dict):
    response = await client.post(
        "/api/v1/radio/playlist", json={"maxDurationSeconds": -5}, headers=auth_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_playlist_before_any_schedule(client: AsyncClient):
    response = await client.get("/api/v1/radio/playlist")
    assert response.status_code == 200
    assert response.json()["playlist"] is None


@pytest.mark.asyncio
async def test_set_track_and_previous(client: AsyncClient, auth_headers: dict, make_item):
    first = await make_item("One", duration=100, priority=2)
    second = await make_item("Two", duration=100, priority=1)
    await client.post(
        "/api/v1/radio/playlist",
        json={"shuffle": False, "includeAds": False},
        headers=auth_headers,
    )

    response = await client.post(
        "/api/v1/radio/set-track", json={"trackId": str(second.id)}, headers=auth_headers
    )
    assert response.status_code == 200
    assert response.json()["currentEntryIndex"] == 1
    assert response.json()["currentTrack"]["id"] == str(second.id)

    response = await client.post("/api/v1/radio/previous", headers=auth_headers)
    assert response.json()["currentEntryIndex"] == 0
    assert response.json()["currentTrack"]["name"] == "One"

    status = (await client.get("/api/v1/radio/status")).json()
    assert status["currentTrack"]["id"] == str(first.id)


@pytest.mark.asyncio
async def test_set_track_not_in_playlist(client: AsyncClient, auth_headers: dict, make_item):
    await make_item("Scheduled", duration=100)
    await client.post("/api/v1/radio/playlist", json={"includeAds": False}, headers=auth_headers)
    outsider = await make_item("Outsider", duration=100, is_radio_eligible=False)

    response = await client.post(
        "/api/v1/radio/set-track", json={"trackId": str(outsider.id)}, headers=auth_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_music_only_has_no_ads(client: AsyncClient, make_item):
    for i in range(3):
        await make_item(f"Footer {i}", duration=120)

    response = await client.get("/api/v1/radio/music-only")
    assert response.status_code == 200
    assert response.headers["Cache-Control"] == NO_CACHE
    data = response.json()
    assert len(data["playlist"]) == 3
    assert not any(t["isAd"] for t in data["playlist"])
    assert data["currentTrack"]["id"] == data["playlist"][data["currentTrackIndex"]]["id"]


@pytest.mark.asyncio
async def test_status_reports_live_override(
    client: AsyncClient, auth_headers: dict, make_item, room_provider, manifest_server, db_session: AsyncSession
):
    await make_item("Background", duration=300)
    room_provider.rooms["artist-9"] = 1
    manifest_server.serve("https://live.test/hls/artist-9/index.m3u8", "#EXTM3U\n")

    response = await client.post(
        "/api/v1/live-stream", json={"action": "start", "broadcasterId": "artist-9"}, headers=auth_headers
    )
    assert response.status_code == 200

    data = (await client.get("/api/v1/radio/status")).json()
    assert data["isLive"] is True
    assert data["mode"] == "live"
    assert data["liveStream"]["broadcasterId"] == "artist-9"
    assert data["liveStream"]["manifestUrl"] == "https://live.test/hls/artist-9/index.m3u8"
    # The virtual schedule keeps running underneath
    assert data["isActive"] is True
