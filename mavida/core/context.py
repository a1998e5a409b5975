"""
Application Context
Owns every long-lived component; one instance per app (or per test)
"""
import logging
from dataclasses import dataclass
from typing import Optional
import aiohttp
import redis
import redis.asyncio as aioredis
from mavida.core.config import Settings, settings as default_settings
from mavida.models.catalog import ItemDetail
from mavida.services.cache import CacheManager, FreshnessPolicy, RetryPolicy
from mavida.services.catalog import CatalogService
from mavida.services.progress import ProgressSynchronizer
from mavida.services.search_history import SearchHistory
from mavida.services.storage import RedisStateStorage
from mavida.services.tmdb import TMDBClient
from mavida.services.watch_state import WatchStateStore
from mavida.utils.rate_limiter import RequestThrottle

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    config: Settings
    throttle: RequestThrottle
    tmdb: TMDBClient
    cache: CacheManager
    catalog: CatalogService
    storage: RedisStateStorage
    watch_state: WatchStateStore
    search_history: SearchHistory

    def start_playback(self, item_id: int, kind: str, season: Optional[int] = None,
                       episode: Optional[int] = None, detail: Optional[ItemDetail] = None,
                       **metadata) -> ProgressSynchronizer:
        """
        New progress synchronizer for one playback session

        A detail page, when given, fills in whatever metadata the caller
        left out; the season episode count comes from its season list.
        """
        if detail is not None:
            derived = {
                "title": detail.title,
                "poster_path": detail.poster_path,
                "runtime": detail.runtime,
                "total_seasons": detail.number_of_seasons,
            }
            if season is not None:
                derived["episodes_in_season"] = detail.episodes_in_season(season)
            for key, value in derived.items():
                if value is not None:
                    metadata.setdefault(key, value)

        return ProgressSynchronizer(
            self.watch_state,
            item_id,
            kind,
            season,
            episode,
            save_interval=self.config.PROGRESS_SAVE_INTERVAL,
            **metadata,
        )

    async def aclose(self):
        """Release the HTTP session and Redis connections"""
        await self.tmdb.close()
        await self.throttle.close()
        await self.cache.close()
        self.storage.close()


async def create_context(
    config: Optional[Settings] = None,
    redis_client: Optional[aioredis.Redis] = None,
    state_client: Optional[redis.Redis] = None,
    session: Optional[aiohttp.ClientSession] = None,
    hydrate: bool = True,
) -> AppContext:
    """
    Build an application context

    Args:
        config: Settings to use (module settings by default)
        redis_client: Async Redis client for the response cache
        state_client: Sync Redis client for watch state and recent searches
        session: aiohttp session for the TMDB gateway
        hydrate: Load persisted watch state and recent searches

    Returns:
        AppContext
    """
    config = config or default_settings

    throttle = RequestThrottle(config.TMDB_RATE_LIMIT, task_timeout=config.TMDB_TASK_TIMEOUT)
    tmdb = TMDBClient(throttle=throttle, session=session, config=config)
    cache = CacheManager(
        redis_client=redis_client,
        redis_url=config.REDIS_URL,
        retry=RetryPolicy.from_settings(config),
    )
    catalog = CatalogService(tmdb, cache, FreshnessPolicy.from_settings(config))

    storage = RedisStateStorage(
        client=state_client,
        url=config.state_redis_url,
        timeout=config.STATE_REDIS_TIMEOUT,
    )
    watch_state = WatchStateStore(storage)
    search_history = SearchHistory(storage)

    context = AppContext(
        config=config,
        throttle=throttle,
        tmdb=tmdb,
        cache=cache,
        catalog=catalog,
        storage=storage,
        watch_state=watch_state,
        search_history=search_history,
    )

    if hydrate:
        watch_state.hydrate()
        search_history.hydrate()

    logger.info(
        f"Context ready: {config.TMDB_RATE_LIMIT} req/s to {config.TMDB_BASE_URL}, "
        f"{len(catalog.operation_names())} catalog operations"
    )
    return context
