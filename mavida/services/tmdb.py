"""
TMDB API Client
Async gateway for The Movie Database API
"""
import aiohttp
import asyncio
import logging
from typing import Any, Dict, List, Optional, Tuple
from mavida.core.config import Settings, settings as default_settings
from mavida.core.exceptions import (
    AuthError,
    CatalogError,
    NetworkError,
    ValidationError,
    classify_status,
    parse_retry_after,
)
from mavida.models.catalog import (
    CatalogPage,
    Credits,
    Episode,
    GenreTable,
    ItemDetail,
    MediaKind,
    SeasonDetail,
    Video,
)
from mavida.services.transformer import (
    transform_credits,
    transform_detail,
    transform_episode,
    transform_multi_page,
    transform_page,
    transform_season,
    transform_videos,
)
from mavida.utils.rate_limiter import RequestThrottle

logger = logging.getLogger(__name__)

MEDIA_PATHS = {"movie": "movie", "series": "tv"}

LIST_NAMES = {
    "movie": ("popular", "top_rated", "now_playing", "upcoming"),
    "series": ("popular", "top_rated", "airing_today", "on_the_air"),
}

# Movie lists are filtered by release region, TV lists are not
REGIONAL_LISTS = {"movie"}

TIME_WINDOWS = ("day", "week")


class TMDBClient:
    """Async gateway for the TMDB API; every request goes through the throttle"""

    def __init__(
        self,
        api_token: Optional[str] = None,
        throttle: Optional[RequestThrottle] = None,
        session: Optional[aiohttp.ClientSession] = None,
        config: Optional[Settings] = None,
    ):
        config = config or default_settings
        self.api_token = api_token or config.TMDB_API_TOKEN
        self.base_url = config.TMDB_BASE_URL.rstrip("/")
        self.language = config.TMDB_LANGUAGE
        self.region = config.TMDB_REGION
        self.include_adult = config.TMDB_INCLUDE_ADULT
        self.timeout = config.TMDB_REQUEST_TIMEOUT
        self.throttle = throttle or RequestThrottle(
            config.TMDB_RATE_LIMIT, task_timeout=config.TMDB_TASK_TIMEOUT
        )
        self.session = session
        self.request_count = 0
        self._genres: Dict[str, GenreTable] = {}
        self._genre_fetches: Dict[str, asyncio.Task] = {}

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create aiohttp session"""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
        return self.session

    async def close(self):
        """Close aiohttp session"""
        if self.session and not self.session.closed:
            await self.session.close()

    # ------------------------------------------------------------------
    # Request plumbing

    def build_request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Tuple[str, Dict[str, str]]:
        """
        URL and query string for an endpoint

        The configured language is always sent; None values are dropped and
        booleans are rendered the way TMDB expects them.
        """
        query: Dict[str, str] = {"language": self.language}
        for key, value in (params or {}).items():
            if value is None:
                continue
            if isinstance(value, bool):
                value = "true" if value else "false"
            query[key] = str(value)
        return f"{self.base_url}{endpoint}", query

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_token}",
            "Accept": "application/json",
        }

    async def _request(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Make a throttled GET request to TMDB

        Raises:
            CatalogError subclass describing the failure
        """
        if not self.api_token:
            logger.error("TMDB API token not configured")
            raise AuthError("TMDB API token not configured")

        url, query = self.build_request(endpoint, params)
        try:
            return await self.throttle.execute(lambda: self._send(url, query))
        except asyncio.TimeoutError as exc:
            # throttle task_timeout fired before _send finished
            logger.error(f"TMDB request exceeded task timeout: {url}")
            raise NetworkError(f"TMDB request timeout: {url}") from exc

    async def _send(self, url: str, query: Dict[str, str]) -> Dict[str, Any]:
        self.request_count += 1
        try:
            session = await self.get_session()
            async with session.get(url, params=query, headers=self._headers()) as response:
                if 200 <= response.status < 300:
                    try:
                        return await response.json(content_type=None)
                    except ValueError as exc:
                        raise NetworkError(
                            f"Invalid JSON from TMDB: {exc}", status_code=response.status
                        ) from exc

                try:
                    payload = await response.json(content_type=None)
                except ValueError:
                    payload = None

                error = classify_status(
                    response.status,
                    payload,
                    response.reason,
                    retry_after=parse_retry_after(response.headers.get("Retry-After")),
                )
                if response.status == 404:
                    logger.debug("TMDB 404 for %s", url)
                else:
                    logger.warning("TMDB API error %s for %s: %s", response.status, url, error.message)
                raise error

        except CatalogError:
            raise
        except asyncio.TimeoutError as exc:
            logger.error(f"TMDB request timeout: {url}")
            raise NetworkError(f"TMDB request timeout: {url}") from exc
        except aiohttp.ClientError as exc:
            logger.error(f"TMDB request error: {exc}")
            raise NetworkError(f"Failed to fetch from TMDB: {exc}") from exc

    # ------------------------------------------------------------------
    # Input checks

    @staticmethod
    def _media_path(kind: str) -> str:
        if kind not in MEDIA_PATHS:
            raise ValidationError(f"Unknown media kind: {kind!r}")
        return MEDIA_PATHS[kind]

    @staticmethod
    def _check_page(page: int) -> int:
        if not isinstance(page, int) or page < 1:
            raise ValidationError(f"Page must be an integer >= 1, got {page!r}")
        return page

    @staticmethod
    def _check_id(item_id: int, name: str = "id") -> int:
        if not isinstance(item_id, int) or item_id < 1:
            raise ValidationError(f"{name} must be a positive integer, got {item_id!r}")
        return item_id

    # ------------------------------------------------------------------
    # Genres

    async def get_genres(self, kind: MediaKind = "movie") -> GenreTable:
        """
        Genre id -> name table, fetched once per client

        Concurrent first calls share a single request; a failed fetch is not
        remembered so the next call tries again.
        """
        media_path = self._media_path(kind)
        if kind in self._genres:
            return self._genres[kind]

        fetch = self._genre_fetches.get(kind)
        if fetch is None:
            fetch = asyncio.ensure_future(self._fetch_genres(kind, media_path))
            self._genre_fetches[kind] = fetch
        return await asyncio.shield(fetch)

    async def _fetch_genres(self, kind: str, media_path: str) -> GenreTable:
        try:
            response = await self._request(f"/genre/{media_path}/list")
            table = {
                int(genre["id"]): genre["name"]
                for genre in response.get("genres") or []
            }
            self._genres[kind] = table
            logger.debug("Loaded %d %s genres", len(table), kind)
            return table
        finally:
            self._genre_fetches.pop(kind, None)

    async def _page(
        self,
        kind: MediaKind,
        endpoint: str,
        params: Dict[str, Any]
    ) -> CatalogPage:
        response, genres = await asyncio.gather(
            self._request(endpoint, params),
            self.get_genres(kind),
        )
        return transform_page(response, kind, genres)

    # ------------------------------------------------------------------
    # Lists

    async def get_trending(
        self,
        kind: MediaKind,
        time_window: str = "week",
        page: int = 1
    ) -> CatalogPage:
        """Trending movies or series for the day or week"""
        media_path = self._media_path(kind)
        if time_window not in TIME_WINDOWS:
            raise ValidationError(f"Unknown time window: {time_window!r}")
        params = {"page": self._check_page(page), "include_adult": self.include_adult}
        return await self._page(kind, f"/trending/{media_path}/{time_window}", params)

    async def get_list(
        self,
        kind: MediaKind,
        list_name: str,
        page: int = 1
    ) -> CatalogPage:
        """
        One of the curated provider lists

        Args:
            kind: "movie" or "series"
            list_name: popular, top_rated, now_playing, upcoming (movies) or
                popular, top_rated, airing_today, on_the_air (series)
            page: Page number

        Returns:
            CatalogPage
        """
        media_path = self._media_path(kind)
        if list_name not in LIST_NAMES[kind]:
            raise ValidationError(f"Unknown {kind} list: {list_name!r}")
        params: Dict[str, Any] = {"page": self._check_page(page)}
        if kind in REGIONAL_LISTS:
            params["region"] = self.region
            params["include_adult"] = self.include_adult
        return await self._page(kind, f"/{media_path}/{list_name}", params)

    async def get_similar(self, kind: MediaKind, item_id: int, page: int = 1) -> CatalogPage:
        """Items similar to the given one"""
        media_path = self._media_path(kind)
        params = {"page": self._check_page(page), "include_adult": self.include_adult}
        return await self._page(kind, f"/{media_path}/{self._check_id(item_id)}/similar", params)

    async def get_recommendations(self, kind: MediaKind, item_id: int, page: int = 1) -> CatalogPage:
        """Provider recommendations for the given item"""
        media_path = self._media_path(kind)
        params = {"page": self._check_page(page), "include_adult": self.include_adult}
        return await self._page(
            kind, f"/{media_path}/{self._check_id(item_id)}/recommendations", params
        )

    # ------------------------------------------------------------------
    # Search and discovery

    async def search(
        self,
        kind: MediaKind,
        query: str,
        page: int = 1,
        year: Optional[int] = None
    ) -> CatalogPage:
        """Free-text search over movies or series"""
        media_path = self._media_path(kind)
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query must not be empty")

        params: Dict[str, Any] = {
            "query": query,
            "page": self._check_page(page),
            "include_adult": self.include_adult,
        }
        if kind == "movie":
            params["region"] = self.region
            params["year"] = year
        else:
            params["first_air_date_year"] = year
        return await self._page(kind, f"/search/{media_path}", params)

    async def search_multi(self, query: str, page: int = 1) -> CatalogPage:
        """Search movies and series together; people are dropped"""
        query = (query or "").strip()
        if not query:
            raise ValidationError("Search query must not be empty")

        params = {
            "query": query,
            "page": self._check_page(page),
            "include_adult": self.include_adult,
        }
        response, movie_genres, series_genres = await asyncio.gather(
            self._request("/search/multi", params),
            self.get_genres("movie"),
            self.get_genres("series"),
        )
        return transform_multi_page(
            response, {"movie": movie_genres, "series": series_genres}
        )

    async def discover(
        self,
        kind: MediaKind,
        filters: Optional[Dict[str, Any]] = None,
        page: int = 1
    ) -> CatalogPage:
        """
        Discover with provider filter predicates

        Args:
            kind: "movie" or "series"
            filters: TMDB discover parameters, e.g. {"with_genres": "28",
                "sort_by": "popularity.desc"}
            page: Page number
        """
        media_path = self._media_path(kind)
        params: Dict[str, Any] = dict(filters or {})
        params["page"] = self._check_page(page)
        params.setdefault("include_adult", self.include_adult)
        if kind == "movie":
            params["region"] = self.region
        return await self._page(kind, f"/discover/{media_path}", params)

    # ------------------------------------------------------------------
    # Details

    async def get_details(self, kind: MediaKind, item_id: int) -> ItemDetail:
        """Item detail without credits or videos"""
        media_path = self._media_path(kind)
        response = await self._request(f"/{media_path}/{self._check_id(item_id)}")
        return transform_detail(response, kind)

    async def get_credits(self, kind: MediaKind, item_id: int) -> Credits:
        media_path = self._media_path(kind)
        response = await self._request(f"/{media_path}/{self._check_id(item_id)}/credits")
        return transform_credits(response)

    async def get_videos(self, kind: MediaKind, item_id: int) -> List[Video]:
        media_path = self._media_path(kind)
        response = await self._request(f"/{media_path}/{self._check_id(item_id)}/videos")
        return transform_videos(response)

    async def get_full_info(self, kind: MediaKind, item_id: int) -> ItemDetail:
        """
        Detail + credits + videos fetched in parallel

        Succeeds only if all three calls succeed; the first failure (in call
        order) is raised and no partial detail is returned.
        """
        media_path = self._media_path(kind)
        item_id = self._check_id(item_id)

        results = await asyncio.gather(
            self._request(f"/{media_path}/{item_id}"),
            self.get_credits(kind, item_id),
            self.get_videos(kind, item_id),
            return_exceptions=True,
        )
        for result in results:
            if isinstance(result, BaseException):
                raise result

        raw_detail, credits, videos = results
        return transform_detail(raw_detail, kind, credits, videos)

    async def get_season(self, tv_id: int, season_number: int) -> SeasonDetail:
        """Season detail with its episode list"""
        tv_id = self._check_id(tv_id, "tv_id")
        if not isinstance(season_number, int) or season_number < 0:
            raise ValidationError(f"Invalid season number: {season_number!r}")
        response = await self._request(f"/tv/{tv_id}/season/{season_number}")
        return transform_season(response)

    async def get_episode(self, tv_id: int, season_number: int, episode_number: int) -> Episode:
        tv_id = self._check_id(tv_id, "tv_id")
        if not isinstance(season_number, int) or season_number < 0:
            raise ValidationError(f"Invalid season number: {season_number!r}")
        episode_number = self._check_id(episode_number, "episode_number")
        response = await self._request(
            f"/tv/{tv_id}/season/{season_number}/episode/{episode_number}"
        )
        return transform_episode(response, season_number)
