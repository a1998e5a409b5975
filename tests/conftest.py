"""
Test configuration and fixtures
"""
import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple
import fakeredis
import pytest
from fakeredis import aioredis
from mavida.core.config import Settings
from mavida.services.storage import RedisStateStorage
from mavida.services.tmdb import TMDBClient
from mavida.utils.rate_limiter import RequestThrottle

TMDB_BASE_URL = "https://api.themoviedb.org/3"

MOVIE_GENRES = {"genres": [{"id": 18, "name": "Drama"}, {"id": 53, "name": "Thriller"}]}
TV_GENRES = {"genres": [{"id": 18, "name": "Drama"}, {"id": 80, "name": "Crime"}]}


class FakeResponse:
    """Stands in for aiohttp.ClientResponse inside ``async with session.get(...)``"""

    def __init__(self, status: int = 200, payload: Any = None, reason: str = "OK", invalid_json: bool = False,
                 headers: Optional[Dict[str, str]] = None, delay: float = 0):
        self.status = status
        self.reason = reason
        self.headers = dict(headers or {})
        self._payload = payload
        self._invalid_json = invalid_json
        self._delay = delay

    async def json(self, content_type=None):
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return False


class FakeSession:
    """
    Minimal aiohttp.ClientSession replacement

    routes maps an endpoint path (e.g. "/movie/550") to a FakeResponse, an
    exception instance to raise, or a list of those consumed in order.
    Unknown paths answer 404.
    """

    def __init__(self, routes: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, Any] = {
            "/genre/movie/list": FakeResponse(payload=MOVIE_GENRES),
            "/genre/tv/list": FakeResponse(payload=TV_GENRES),
        }
        self.routes.update(routes or {})
        self.calls: List[Tuple[str, Dict[str, str], Dict[str, str]]] = []
        self.closed = False

    def get(self, url: str, params=None, headers=None):
        path = url[len(TMDB_BASE_URL):]
        self.calls.append((path, dict(params or {}), dict(headers or {})))

        route = self.routes.get(path)
        if isinstance(route, list):
            route = route.pop(0) if len(route) > 1 else route[0]
        if route is None:
            route = FakeResponse(
                status=404,
                reason="Not Found",
                payload={"status_code": 34, "status_message": "The resource you requested could not be found."},
            )
        if isinstance(route, BaseException):
            raise route
        return route

    def paths(self) -> List[str]:
        return [path for path, _, _ in self.calls]

    def count(self, path: str) -> int:
        return self.paths().count(path)

    async def close(self):
        self.closed = True


class FakeClock:
    """Manually advanced monotonic clock with a matching sleep"""

    def __init__(self, start: float = 0.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        # Let already-dispatched tasks run before time moves on
        await asyncio.sleep(0)
        self.now += seconds


class TickingClock:
    """Wall clock that moves one second forward on every read"""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def test_settings():
    """Settings with a token, no request spacing and no retry backoff"""
    return Settings(
        TMDB_API_TOKEN="test-token",
        TMDB_BASE_URL=TMDB_BASE_URL,
        TMDB_LANGUAGE="en-US",
        TMDB_REGION="US",
        TMDB_INCLUDE_ADULT=False,
        TMDB_RATE_LIMIT=0,
        TMDB_TASK_TIMEOUT=None,
        CACHE_RETRY_ATTEMPTS=0,
    )


@pytest.fixture
def tmdb_session():
    return FakeSession()


@pytest.fixture
def tmdb_client(tmdb_session, test_settings):
    """TMDB client wired to the fake session with an unthrottled queue"""
    return TMDBClient(
        api_token="test-token",
        throttle=RequestThrottle(0),
        session=tmdb_session,
        config=test_settings,
    )


@pytest.fixture
async def fake_redis():
    """Provide fake async Redis client for testing"""
    redis_client = aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield redis_client
    await redis_client.flushall()
    await redis_client.aclose()


@pytest.fixture
def fake_state_redis():
    """Provide fake sync Redis client for state storage"""
    redis_client = fakeredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    yield redis_client
    redis_client.flushall()
    redis_client.close()


@pytest.fixture
def state_storage(fake_state_redis):
    return RedisStateStorage(client=fake_state_redis)


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def sample_tmdb_movie():
    """Sample TMDB movie data"""
    return {
        "id": 550,
        "title": "Fight Club",
        "original_title": "Fight Club",
        "media_type": "movie",
        "poster_path": "/pB8BM7pdSp6B6Ih7QZ4DrQ3PmJK.jpg",
        "backdrop_path": "/fCayJrkfRaCRCTh8GqN30f8oyQF.jpg",
        "overview": "A ticking-time-bomb insomniac...",
        "release_date": "1999-10-15",
        "vote_average": 8.438,
        "vote_count": 29000,
        "popularity": 45.3,
        "genre_ids": [18, 53],
        "original_language": "en",
        "adult": False,
    }


@pytest.fixture
def sample_tmdb_series():
    """Sample TMDB series data"""
    return {
        "id": 1396,
        "name": "Breaking Bad",
        "original_name": "Breaking Bad",
        "media_type": "tv",
        "poster_path": "/ggFHVNu6YYI5L9pCfOacjizRGt.jpg",
        "backdrop_path": "/tsRy63Mu5cu8etL1X7ZLyf7UP1M.jpg",
        "overview": "A high school chemistry teacher...",
        "first_air_date": "2008-01-20",
        "vote_average": 8.9,
        "vote_count": 13000,
        "popularity": 120.5,
        "genre_ids": [18, 80],
        "original_language": "en",
    }


@pytest.fixture
def sample_page(sample_tmdb_movie):
    """One-item page of movie results"""
    return {"page": 1, "results": [sample_tmdb_movie], "total_pages": 3, "total_results": 55}
