"""
Tests for API endpoints
"""
import aiohttp
import pytest
from httpx import ASGITransport, AsyncClient
from conftest import FakeResponse
from mavida.core.app import create_app
from mavida.core.config import VERSION
from mavida.core.context import create_context
from mavida.models.catalog import ItemDetail, SeasonSummary
from mavida.models.watch import NextEpisode


@pytest.fixture
async def context(test_settings, fake_redis, fake_state_redis, tmdb_session):
    ctx = await create_context(
        config=test_settings,
        redis_client=fake_redis,
        state_client=fake_state_redis,
        session=tmdb_session,
    )
    yield ctx
    await ctx.aclose()


@pytest.fixture
async def client(context):
    app = create_app(context)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http_client:
        yield http_client


@pytest.mark.asyncio
async def test_health_check(client):
    """Test health check endpoint"""
    response = await client.get("/health")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["version"] == VERSION
    assert "cache_metrics" not in data


@pytest.mark.asyncio
async def test_health_check_with_metrics(client):
    response = await client.get("/health", params={"include_metrics": "true"})

    data = response.json()
    assert data["cache_metrics"]["fresh_hit"] == 0
    assert data["watch_state"] == {"favorites": 0, "history": 0, "continue_watching": 0}


@pytest.mark.asyncio
async def test_list_operations(client):
    response = await client.get("/catalog")

    assert response.status_code == 200
    assert "movies.trending" in response.json()["operations"]


@pytest.mark.asyncio
async def test_catalog_operation(client, tmdb_session, sample_page):
    tmdb_session.routes["/movie/popular"] = FakeResponse(payload=sample_page)

    response = await client.get("/catalog/movies.popular", params={"page": "1"})
    again = await client.get("/catalog/movies.popular")

    assert response.status_code == 200
    data = response.json()
    assert data["items"][0]["title"] == "Fight Club"
    assert data["items"][0]["genres"] == ["Drama", "Thriller"]
    assert again.json() == data
    assert tmdb_session.count("/movie/popular") == 1


@pytest.mark.asyncio
async def test_catalog_discover_filters(client, tmdb_session, sample_page):
    tmdb_session.routes["/discover/tv"] = FakeResponse(payload={"results": []})

    response = await client.get("/catalog/tv.discover", params={"with_genres": "80", "page": "2"})

    assert response.status_code == 200
    _, params, _ = next(c for c in tmdb_session.calls if c[0] == "/discover/tv")
    assert params["with_genres"] == "80"
    assert params["page"] == "2"


@pytest.mark.asyncio
@pytest.mark.parametrize("route,status", [
    (None, 404),
    (FakeResponse(status=401, reason="Unauthorized"), 502),
    (FakeResponse(status=500, reason="Internal Server Error"), 502),
    (FakeResponse(status=429, reason="Too Many Requests"), 503),
    (aiohttp.ClientConnectionError("reset"), 504),
])
async def test_catalog_errors_map_to_http(client, tmdb_session, route, status):
    if route is not None:
        tmdb_session.routes["/movie/550/similar"] = route

    response = await client.get("/catalog/movies.similar", params={"item_id": "550"})

    assert response.status_code == status
    assert "error" in response.json()


@pytest.mark.asyncio
@pytest.mark.parametrize("path", [
    "/catalog/movies.unknown",
    "/catalog/movies.detail",
    "/catalog/movies.popular?page=abc",
    "/catalog/movies.search?query=%20",
])
async def test_bad_catalog_requests(client, tmdb_session, path):
    response = await client.get(path)

    assert response.status_code == 400
    assert tmdb_session.calls == []


@pytest.mark.asyncio
async def test_favorites(client):
    response = await client.put("/watch/favorites/series/1396", json={"on": True})
    assert response.status_code == 200
    assert response.json()["favorite"] is True
    assert response.json()["persisted"] is True

    await client.put("/watch/favorites/movie/550", json={})

    favorites = (await client.get("/watch/favorites")).json()["favorites"]
    assert [(f["item_id"], f["kind"]) for f in favorites] == [(550, "movie"), (1396, "series")]

    movies = (await client.get("/watch/favorites", params={"kind": "movie"})).json()["favorites"]
    assert len(movies) == 1

    await client.put("/watch/favorites/movie/550", json={"on": False})
    favorites = (await client.get("/watch/favorites")).json()["favorites"]
    assert len(favorites) == 1


@pytest.mark.asyncio
async def test_unknown_kind_is_rejected(client):
    response = await client.put("/watch/favorites/anime/1", json={"on": True})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_progress_and_continue_watching(client, context):
    response = await client.post("/watch/progress", json={
        "item_id": 1396, "kind": "series", "progress": 40, "season": 1, "episode": 7,
        "title": "Breaking Bad", "total_seasons": 5, "episodes_in_season": 7,
    })
    assert response.status_code == 200
    assert response.json()["entry"]["progress"] == 40

    await client.post("/watch/progress", json={"item_id": 550, "kind": "movie", "progress": 97})

    items = (await client.get("/watch/continue-watching")).json()["items"]
    assert len(items) == 1
    assert items[0]["title"] == "Breaking Bad"
    assert items[0]["next_episode"] == {"season": 2, "episode": 1}

    history = (await client.get("/watch/history", params={"limit": 1})).json()["items"]
    assert [entry["item_id"] for entry in history] == [550]

    assert context.watch_state.get_progress(550, "movie").progress == 97


@pytest.mark.asyncio
async def test_invalid_progress_is_a_bad_request(client):
    response = await client.post("/watch/progress", json={"item_id": 1396, "kind": "series", "progress": 40})

    assert response.status_code == 400
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_remove_and_clear_watch_state(client, context):
    await client.post("/watch/progress", json={"item_id": 550, "kind": "movie", "progress": 20})
    await client.put("/watch/favorites/movie/550", json={"on": True})

    response = await client.delete("/watch/continue-watching/movie/550")
    assert response.json() == {"removed": True}
    response = await client.delete("/watch/history/movie/550")
    assert response.json() == {"removed": 1}

    response = await client.delete("/watch")
    assert response.json()["cleared"] is True
    assert context.watch_state.get_favorites() == []


@pytest.mark.asyncio
async def test_recent_searches(client):
    await client.post("/search/recent", json={"query": "heat"})
    response = await client.post("/search/recent", json={"query": " ronin "})
    assert response.json()["queries"] == ["ronin", "heat"]

    response = await client.delete("/search/recent", params={"query": "heat"})
    assert response.json()["queries"] == ["ronin"]

    await client.delete("/search/recent")
    assert (await client.get("/search/recent")).json()["queries"] == []


@pytest.mark.asyncio
async def test_state_survives_a_new_context(context, test_settings, fake_redis, fake_state_redis, tmdb_session):
    context.watch_state.set_favorite(550, "movie")
    context.search_history.add("heat")

    restarted = await create_context(
        config=test_settings,
        redis_client=fake_redis,
        state_client=fake_state_redis,
        session=tmdb_session,
    )

    assert restarted.watch_state.is_favorite(550, "movie")
    assert restarted.search_history.get_recent() == ["heat"]


@pytest.mark.asyncio
async def test_start_playback_uses_context_store(context):
    sync = context.start_playback(1396, "series", 1, 2, title="Breaking Bad", episodes_in_season=7)

    assert sync.update_progress(300, 2820) is True
    assert sync.update_progress(310, 2820) is False

    entry = context.watch_state.get_continue_watching()[0]
    assert entry.title == "Breaking Bad"
    assert entry.next_episode.episode == 3


@pytest.mark.asyncio
async def test_start_playback_fills_metadata_from_detail(context):
    detail = ItemDetail(
        id=1396,
        kind="series",
        title="Breaking Bad",
        poster_path="/ggFHVNu6YYI5L9pCfOacjizRGt.jpg",
        number_of_seasons=5,
        seasons=[
            SeasonSummary(season_number=1, episode_count=7),
            SeasonSummary(season_number=2, episode_count=13),
        ],
    )

    sync = context.start_playback(1396, "series", 1, 7, detail=detail, title="Breaking Bad (2008)")
    sync.update_progress(300, 2820)

    entry = context.watch_state.get_continue_watching()[0]
    assert entry.title == "Breaking Bad (2008)"
    assert entry.poster_path == "/ggFHVNu6YYI5L9pCfOacjizRGt.jpg"
    assert entry.next_episode == NextEpisode(season=2, episode=1)
