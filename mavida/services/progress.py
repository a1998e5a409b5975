"""
Progress Synchronizer
Rate-limited forwarding of player position to the watch-state store
"""
import logging
import time
from typing import Callable, Optional
from mavida.core.config import settings
from mavida.models.watch import WatchHistoryEntry
from mavida.services.watch_state import WatchStateStore

logger = logging.getLogger(__name__)


class ProgressSynchronizer:
    """
    One playback session of a movie or a single episode

    Player updates arrive several times a second; only one write per
    save interval reaches the store. Holds nothing but the last write time.
    """

    def __init__(
        self,
        store: WatchStateStore,
        item_id: int,
        kind: str,
        season: Optional[int] = None,
        episode: Optional[int] = None,
        save_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        **metadata,
    ):
        self.store = store
        self.item_id = item_id
        self.kind = kind
        self.season = season
        self.episode = episode
        self.save_interval = settings.PROGRESS_SAVE_INTERVAL if save_interval is None else save_interval
        self.metadata = metadata  # title, poster_path, runtime, episode_title, ...
        self._clock = clock
        self._last_save: Optional[float] = None

    def update_progress(self, current_time: float, duration: float) -> bool:
        """
        Forward the player position if the save interval has elapsed

        Args:
            current_time: Position in seconds
            duration: Length in seconds; non-positive values are ignored

        Returns:
            True if the store was written
        """
        if not duration or duration <= 0:
            return False

        now = self._clock()
        if self._last_save is not None and now - self._last_save < self.save_interval:
            return False

        self.save_progress(min(current_time / duration * 100, 100.0))
        return True

    def save_progress(self, progress: float) -> WatchHistoryEntry:
        """Write progress immediately, e.g. on pause or when the player closes"""
        self._last_save = self._clock()
        return self.store.record_progress(
            self.item_id,
            self.kind,
            progress,
            self.season,
            self.episode,
            **self.metadata,
        )

    def mark_complete(self) -> WatchHistoryEntry:
        return self.save_progress(100.0)
