"""
Tests for the cached catalog service
"""
import pytest
from conftest import FakeClock, FakeResponse
from mavida.core.exceptions import NotFoundError, ValidationError
from mavida.models.catalog import CatalogPage, GenreListing, ItemDetail
from mavida.services.cache import CacheManager, FreshnessPolicy, RetryPolicy
from mavida.services.catalog import OPERATIONS, CatalogService
from mavida.utils.helpers import make_cache_key


@pytest.fixture
def catalog_clock():
    return FakeClock(start=1_700_000_000.0)


@pytest.fixture
def catalog(tmdb_client, fake_redis, catalog_clock):
    async def no_sleep(seconds):
        return None

    cache = CacheManager(
        redis_client=fake_redis,
        retry=RetryPolicy(attempts=0),
        clock=catalog_clock,
        sleep=no_sleep,
    )
    return CatalogService(tmdb_client, cache, FreshnessPolicy())


@pytest.mark.asyncio
async def test_trending_is_fetched_once_per_freshness_window(catalog, tmdb_session, catalog_clock, sample_page):
    """Two reads within the hour hit TMDB once; the first read after it hits again"""
    tmdb_session.routes["/trending/movie/week"] = FakeResponse(payload=sample_page)

    first = await catalog.fetch("movies.trending")
    second = await catalog.fetch("movies.trending")
    assert tmdb_session.count("/trending/movie/week") == 1
    assert first == second
    assert isinstance(first, CatalogPage)
    assert first.items[0].title == "Fight Club"

    catalog_clock.advance(3600)
    await catalog.fetch("movies.trending")
    await catalog.fetch("movies.trending")
    assert tmdb_session.count("/trending/movie/week") == 2
    assert tmdb_session.count("/genre/movie/list") == 1


@pytest.mark.asyncio
async def test_search_uses_the_short_window(catalog, tmdb_session, catalog_clock, sample_page):
    tmdb_session.routes["/search/movie"] = FakeResponse(payload=sample_page)

    await catalog.fetch("movies.search", query="fight")
    catalog_clock.advance(301)
    await catalog.fetch("movies.search", query="fight")

    assert tmdb_session.count("/search/movie") == 2


@pytest.mark.asyncio
async def test_different_parameters_are_cached_separately(catalog, tmdb_session, sample_page):
    tmdb_session.routes["/movie/popular"] = FakeResponse(payload=sample_page)

    await catalog.fetch("movies.popular", page=1)
    await catalog.fetch("movies.popular", page="1")
    await catalog.fetch("movies.popular", page=2)

    assert tmdb_session.count("/movie/popular") == 2


@pytest.mark.asyncio
async def test_detail_operation_returns_item_detail(catalog, tmdb_session):
    tmdb_session.routes.update({
        "/movie/550": FakeResponse(payload={
            "id": 550, "title": "Fight Club", "runtime": 139, "genres": [{"id": 18, "name": "Drama"}],
        }),
        "/movie/550/credits": FakeResponse(payload={"cast": [], "crew": []}),
        "/movie/550/videos": FakeResponse(payload={"results": []}),
    })

    detail = await catalog.get_detail("movie", 550)
    cached = await catalog.fetch("movies.detail", item_id="550")

    assert isinstance(detail, ItemDetail)
    assert detail.runtime == 139
    assert cached == detail
    assert tmdb_session.count("/movie/550") == 1


@pytest.mark.asyncio
async def test_failed_fetch_is_not_cached(catalog, tmdb_session):
    with pytest.raises(NotFoundError):
        await catalog.fetch("tv.detail", item_id=999999)

    key = make_cache_key("tv.detail", {"item_id": 999999})
    value, _ = await catalog.cache.get_with_freshness(key)
    assert value is None


@pytest.mark.asyncio
async def test_genre_listing_round_trips_through_cache(catalog):
    listing = await catalog.fetch("genres.list", kind="series")
    cached = await catalog.fetch("genres.list", kind="series")

    assert isinstance(cached, GenreListing)
    assert cached.genres == {18: "Drama", 80: "Crime"}
    assert cached == listing


@pytest.mark.asyncio
async def test_discover_filters_become_part_of_the_key(catalog, tmdb_session, sample_page):
    tmdb_session.routes["/discover/movie"] = FakeResponse(payload=sample_page)

    await catalog.fetch("movies.discover", with_genres=28)
    await catalog.fetch("movies.discover", filters={"with_genres": "28"})
    await catalog.fetch("movies.discover", with_genres=18)

    assert tmdb_session.count("/discover/movie") == 2
    key = make_cache_key("movies.discover", {"page": 1, "filters": {"with_genres": "28"}})
    assert key == "catalog:movies.discover:filters=with_genres=28:page=1"
    value, is_stale = await catalog.cache.get_with_freshness(key)
    assert value is not None
    assert is_stale is False


@pytest.mark.asyncio
async def test_invalidate_forces_refetch(catalog, tmdb_session, sample_page):
    tmdb_session.routes["/tv/popular"] = FakeResponse(payload={"results": []})

    await catalog.fetch("tv.popular")
    await catalog.invalidate("tv.popular")
    await catalog.fetch("tv.popular")

    assert tmdb_session.count("/tv/popular") == 2


@pytest.mark.asyncio
@pytest.mark.parametrize("operation,params", [
    ("movies.nope", {}),
    ("movies.detail", {}),
    ("movies.detail", {"item_id": "abc"}),
    ("movies.popular", {"query": "x"}),
    ("tv.episode", {"item_id": 1396, "season_number": 1}),
    ("movies.discover", {"filters": "with_genres=28"}),
])
async def test_bad_operation_or_parameters(catalog, tmdb_session, operation, params):
    with pytest.raises(ValidationError):
        await catalog.fetch(operation, **params)

    assert tmdb_session.calls == []


def test_cache_key_is_stable():
    assert make_cache_key("movies.trending", {"time_window": "week", "page": 1}) == (
        "catalog:movies.trending:page=1:time_window=week"
    )
    assert make_cache_key("movies.trending", {"page": 1, "time_window": "week", "year": None}) == (
        "catalog:movies.trending:page=1:time_window=week"
    )


def test_operation_registry():
    names = CatalogService.operation_names()

    for name in (
        "movies.trending", "movies.popular", "movies.top_rated", "movies.now_playing",
        "movies.upcoming", "movies.detail", "movies.similar", "movies.recommendations",
        "movies.search", "movies.discover", "tv.trending", "tv.popular", "tv.top_rated",
        "tv.airing_today", "tv.on_the_air", "tv.detail", "tv.season", "tv.episode",
        "tv.similar", "tv.recommendations", "tv.search", "tv.discover", "search.multi",
        "genres.list",
    ):
        assert name in names

    assert OPERATIONS["movies.trending"].resource == "trending"
    assert OPERATIONS["tv.on_the_air"].resource == "list"
    assert OPERATIONS["tv.season"].resource == "detail"
    assert OPERATIONS["search.multi"].resource == "search"
