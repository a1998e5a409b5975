"""
State Storage
Key-value persistence for client-local state (watch state, recent searches)
"""
import json
import logging
from typing import Any, Optional
import redis
from mavida.core.config import settings
from mavida.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class RedisStateStorage:
    """
    JSON blobs under fixed keys in Redis

    Uses the synchronous client so that a store mutation and its write are a
    single step with no suspension point in between.
    """

    def __init__(
        self,
        client: Optional[redis.Redis] = None,
        url: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self._client = client
        self._url = url or settings.state_redis_url
        self._timeout = timeout if timeout is not None else settings.STATE_REDIS_TIMEOUT

    def get_client(self) -> redis.Redis:
        """Get or create Redis client"""
        if self._client is None:
            self._client = redis.Redis.from_url(
                self._url,
                encoding="utf-8",
                decode_responses=True,
                socket_timeout=self._timeout,
                socket_connect_timeout=self._timeout,
            )
        return self._client

    def load(self, key: str) -> Optional[Any]:
        """
        Read and decode the blob under key

        Returns:
            Decoded value, or None if the key is absent or unreadable JSON

        Raises:
            StorageError: Redis could not be reached
        """
        try:
            raw = self.get_client().get(key)
        except redis.RedisError as e:
            raise StorageError(f"Failed to read {key}: {e}") from e

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.error(f"Discarding unreadable state blob {key}: {e}")
            return None

    def save(self, key: str, value: Any):
        try:
            self.get_client().set(key, json.dumps(value))
        except (redis.RedisError, TypeError, ValueError) as e:
            raise StorageError(f"Failed to write {key}: {e}") from e

    def delete(self, key: str):
        try:
            self.get_client().delete(key)
        except redis.RedisError as e:
            raise StorageError(f"Failed to delete {key}: {e}") from e

    def close(self):
        """Close Redis connection"""
        if self._client is not None:
            self._client.close()
            self._client = None
