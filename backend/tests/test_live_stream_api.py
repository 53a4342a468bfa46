import pytest
from httpx import AsyncClient


@pytest.mark.asyncio
async def test_live_status_offline(client: AsyncClient):
    response = await client.get("/api/v1/live-status/artist-1")
    assert response.status_code == 200
    assert response.json() == {"isLive": False, "manifestUrl": None, "participantCount": 0, "error": None}
    assert response.headers["Cache-Control"] == "no-cache, no-store, must-revalidate"


@pytest.mark.asyncio
async def test_live_status_connecting_vs_live(client: AsyncClient, room_provider, manifest_server):
    room_provider.rooms["artist-1"] = 1
    url = "https://live.test/hls/artist-1/index.m3u8"
    manifest_server.serve(url, "OK")

    data = (await client.get("/api/v1/live-status/artist-1")).json()
    assert data["isLive"] is True
    assert data["manifestUrl"] is None

    manifest_server.serve(url, "#EXTM3U\n#EXT-X-VERSION:3\n")
    data = (await client.get("/api/v1/live-status/artist-1")).json()
    assert data["manifestUrl"] == url
    assert data["participantCount"] == 1


@pytest.mark.asyncio
async def test_live_status_provider_error_is_still_200(client: AsyncClient, room_provider):
    room_provider.fail_lookup = True
    response = await client.get("/api/v1/live-status/artist-1")
    assert response.status_code == 200
    assert response.json()["error"] == "room_lookup_failed"


@pytest.mark.asyncio
async def test_live_status_unconfigured(client: AsyncClient, room_provider):
    room_provider.enabled = False
    response = await client.get("/api/v1/live-status/artist-1")
    assert response.json()["error"] == "live_streaming_unavailable"


@pytest.mark.asyncio
async def test_live_stream_requires_admin(client: AsyncClient):
    response = await client.post("/api/v1/live-stream", json={"action": "start", "broadcasterId": "a"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_start_unconfigured_is_503(client: AsyncClient, auth_headers: dict, room_provider):
    room_provider.enabled = False
    response = await client.post(
        "/api/v1/live-stream", json={"action": "start", "broadcasterId": "a"}, headers=auth_headers
    )
    assert response.status_code == 503


@pytest.mark.asyncio
async def test_full_session_lifecycle(client: AsyncClient, auth_headers: dict, make_item):
    track = await make_item("Overlay Song", duration=200)

    response = await client.post(
        "/api/v1/live-stream",
        json={"action": "start", "broadcasterId": "artist-5", "relayEnabled": True, "title": "Listening party"},
        headers=auth_headers,
    )
    data = response.json()
    assert data["success"] is True
    assert data["session"]["relayTargetId"] == "yt-broadcast-1"
    assert data["session"]["watchUrl"] == "https://www.youtube.com/watch?v=yt-broadcast-1"
    assert data["session"]["title"] == "Listening party"

    response = await client.post(
        "/api/v1/live-stream",
        json={"action": "add-track", "broadcasterId": "artist-5", "trackId": str(track.id)},
        headers=auth_headers,
    )
    assert response.json()["session"]["trackQueue"][0]["name"] == "Overlay Song"

    response = await client.post(
        "/api/v1/live-stream",
        json={"action": "update-track", "broadcasterId": "artist-5", "trackId": str(track.id)},
        headers=auth_headers,
    )
    session = response.json()["session"]
    assert session["currentTrack"]["name"] == "Overlay Song"
    assert session["trackQueue"] == []

    response = await client.get("/api/v1/live-stream/artist-5")
    assert response.status_code == 200
    assert response.json()["broadcasterId"] == "artist-5"

    response = await client.post(
        "/api/v1/live-stream", json={"action": "stop", "broadcasterId": "artist-5"}, headers=auth_headers
    )
    assert response.json()["message"] == "Live stream stopped"
    assert (await client.get("/api/v1/live-stream/artist-5")).status_code == 404


@pytest.mark.asyncio
async def test_track_action_needs_track_id(client: AsyncClient, auth_headers: dict):
    response = await client.post(
        "/api/v1/live-stream", json={"action": "add-track", "broadcasterId": "artist-5"}, headers=auth_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_unknown_action_is_rejected(client: AsyncClient, auth_headers: dict):
    response = await client.post(
        "/api/v1/live-stream", json={"action": "explode", "broadcasterId": "artist-5"}, headers=auth_headers
    )
    assert response.status_code == 422
