"""
Recent Searches
Most-recent-first list of search queries
"""
import logging
from typing import List, Optional
from mavida.core.exceptions import StorageError
from mavida.services.storage import RedisStateStorage

logger = logging.getLogger(__name__)

SEARCH_HISTORY_KEY = "mavida:search-history"
SEARCH_HISTORY_LIMIT = 10


class SearchHistory:
    """Recent search queries, de-duplicated and capped"""

    def __init__(self, storage: Optional[RedisStateStorage] = None, limit: int = SEARCH_HISTORY_LIMIT):
        self._storage = storage
        self.limit = limit
        self._queries: List[str] = []
        self.hydrated = False
        self.last_persist_error: Optional[StorageError] = None

    def add(self, query: str) -> List[str]:
        """
        Put query at the front of the list

        Args:
            query: Raw search input; surrounding whitespace is ignored

        Returns:
            The updated list of recent searches
        """
        query = (query or "").strip()
        if not query:
            return self.get_recent()

        self._queries = [query] + [q for q in self._queries if q != query]
        del self._queries[self.limit:]
        self._persist()
        return self.get_recent()

    def remove(self, query: str) -> bool:
        query = (query or "").strip()
        if query not in self._queries:
            return False
        self._queries.remove(query)
        self._persist()
        return True

    def clear(self):
        self._queries = []
        self._persist()

    def get_recent(self) -> List[str]:
        return list(self._queries)

    def hydrate(self) -> bool:
        """Load persisted searches once"""
        if self.hydrated:
            return False
        self.hydrated = True
        if self._storage is None:
            return False

        try:
            stored = self._storage.load(SEARCH_HISTORY_KEY)
        except StorageError as e:
            self.last_persist_error = e
            logger.error(f"Failed to load search history: {e}")
            return False

        if not isinstance(stored, list):
            return False
        self._queries = [q for q in stored if isinstance(q, str) and q.strip()][:self.limit]
        return True

    def _persist(self):
        if self._storage is None:
            return
        try:
            self._storage.save(SEARCH_HISTORY_KEY, self._queries)
            self.last_persist_error = None
        except StorageError as e:
            self.last_persist_error = e
            logger.error(f"Failed to persist search history: {e}")
