"""
Redis Cache Manager
Freshness-window cache with retry for catalog responses
"""
import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple
import redis.asyncio as redis
from mavida.core.config import Settings, settings as default_settings
from mavida.core.exceptions import is_retryable

logger = logging.getLogger(__name__)

RESOURCE_KINDS = ("trending", "list", "detail", "search")


@dataclass
class FreshnessPolicy:
    """Staleness window per resource kind, in seconds"""
    trending: int = 3600
    list: int = 3600
    detail: int = 86400
    search: int = 300
    default: int = 300
    retention_factor: int = 5

    @classmethod
    def from_settings(cls, config: Settings) -> "FreshnessPolicy":
        return cls(
            trending=config.CACHE_TTL_TRENDING,
            list=config.CACHE_TTL_LIST,
            detail=config.CACHE_TTL_DETAIL,
            search=config.CACHE_TTL_SEARCH,
            default=config.CACHE_TTL_DEFAULT,
            retention_factor=config.CACHE_RETENTION_FACTOR,
        )

    def ttl_for(self, resource: str) -> int:
        if resource in RESOURCE_KINDS:
            return getattr(self, resource)
        return self.default

    def retention_for(self, ttl: int) -> int:
        return max(ttl * self.retention_factor, ttl)


@dataclass
class RetryPolicy:
    """Exponential backoff for transient failures"""
    attempts: int = 3  # retries after the first call
    base_delay: float = 1.0
    max_delay: float = 30.0

    @classmethod
    def from_settings(cls, config: Settings) -> "RetryPolicy":
        return cls(
            attempts=config.CACHE_RETRY_ATTEMPTS,
            base_delay=config.CACHE_RETRY_BASE_DELAY,
            max_delay=config.CACHE_RETRY_MAX_DELAY,
        )

    def delay(self, attempt: int) -> float:
        return min(self.base_delay * (2 ** attempt), self.max_delay)


class CacheManager:
    """Redis cache manager with async support"""

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        redis_url: Optional[str] = None,
        retry: Optional[RetryPolicy] = None,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self._redis_client = redis_client
        self._redis_url = redis_url or default_settings.REDIS_URL
        self.retry = retry or RetryPolicy()
        self._clock = clock
        self._sleep = sleep
        self._inflight: Dict[str, asyncio.Task] = {}
        self._metrics: Dict[str, int] = {
            "fresh_hit": 0,
            "stale_refetch": 0,
            "miss_fetch": 0,
            "retry": 0,
            "fetch_failed": 0,
            "coalesced": 0,
        }

    def _bump(self, key: str):
        if key in self._metrics:
            self._metrics[key] += 1

    def get_metrics_snapshot(self) -> Dict[str, int]:
        """Return a shallow copy of cache metrics counters."""
        return dict(self._metrics)

    async def get_client(self) -> redis.Redis:
        """Get or create Redis client"""
        if self._redis_client is None:
            self._redis_client = redis.from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True
            )
        return self._redis_client

    async def get_with_freshness(self, key: str) -> Tuple[Optional[Any], bool]:
        """
        Get value along with freshness metadata.
        Returns (value, is_stale). If key is missing, (None, False).
        """
        try:
            client = await self.get_client()
            value = await client.get(key)
            if not value:
                return None, False
            parsed = json.loads(value)
            if isinstance(parsed, dict) and "value" in parsed and "fresh_until" in parsed:
                is_stale = self._clock() >= parsed.get("fresh_until", 0)
                return parsed.get("value"), is_stale
            return parsed, False
        except Exception as e:
            logger.error(f"Cache get_with_freshness error for key {key}: {e}")
            return None, False

    async def set_with_freshness(
        self,
        key: str,
        value: Any,
        ttl: int,
        retention: Optional[int] = None
    ) -> bool:
        """
        Set value with freshness metadata.
        ttl defines the fresh window; retention controls how long the entry is kept.
        """
        try:
            client = await self.get_client()
            payload = {
                "value": value,
                "fresh_until": self._clock() + ttl,
            }
            serialized = json.dumps(payload)
            await client.setex(key, retention or ttl, serialized)
            return True
        except Exception as e:
            logger.error(f"Cache set_with_freshness error for key {key}: {e}")
            return False

    async def delete(self, key: str) -> bool:
        """
        Delete value from cache

        Args:
            key: Cache key

        Returns:
            True if successful, False otherwise
        """
        try:
            client = await self.get_client()
            await client.delete(key)
            return True

        except Exception as e:
            logger.error(f"Cache delete error for key {key}: {e}")
            return False

    async def close(self):
        """Close Redis connection"""
        if self._redis_client:
            await self._redis_client.aclose()
            self._redis_client = None

    async def call_with_retry(self, fetch_fn: Callable[[], Awaitable[Any]]) -> Any:
        """
        Run fetch_fn, retrying transient catalog failures with backoff

        Permanent failures and the last transient failure propagate.
        """
        attempt = 0
        while True:
            try:
                return await fetch_fn()
            except Exception as exc:
                if not is_retryable(exc) or attempt >= self.retry.attempts:
                    self._bump("fetch_failed")
                    raise
                delay = self.retry.delay(attempt)
                retry_after = getattr(exc, "retry_after", None)
                if retry_after is not None:
                    delay = min(retry_after, self.retry.max_delay)
                attempt += 1
                self._bump("retry")
                logger.warning(
                    "Retrying after %r (attempt %d/%d, backoff %.2fs)",
                    exc, attempt, self.retry.attempts, delay,
                )
                await self._sleep(delay)

    async def get_or_fetch(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: int,
        retention: Optional[int] = None,
    ) -> Any:
        """
        Serve a fresh cached value, otherwise fetch and replace it.

        A stale entry is not served; the fetch happens inline and its failure
        propagates. Concurrent callers for the same key share one fetch.
        """
        value, is_stale = await self.get_with_freshness(key)
        if value is not None and not is_stale:
            self._bump("fresh_hit")
            return value

        task = self._inflight.get(key)
        if task is not None:
            self._bump("coalesced")
        else:
            self._bump("stale_refetch" if value is not None else "miss_fetch")
            task = asyncio.ensure_future(self._fetch_and_store(key, fetch_fn, ttl, retention))
            self._inflight[key] = task
            task.add_done_callback(lambda _: self._inflight.pop(key, None))
        return await asyncio.shield(task)

    async def _fetch_and_store(
        self,
        key: str,
        fetch_fn: Callable[[], Awaitable[Any]],
        ttl: int,
        retention: Optional[int],
    ) -> Any:
        fresh_value = await self.call_with_retry(fetch_fn)
        await self.set_with_freshness(key, fresh_value, ttl, retention)
        return fresh_value
