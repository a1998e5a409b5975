"""
Watch-State Store
Favorites, per-episode watch history and the continue-watching row,
persisted as one snapshot after every mutation
"""
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Set
from pydantic import ValidationError as PydanticValidationError
from mavida.core.exceptions import StorageError, ValidationError
from mavida.models.watch import (
    ContinueWatchingEntry,
    FavoriteEntry,
    ItemKey,
    NextEpisode,
    WatchHistoryEntry,
    WatchStateSnapshot,
)
from mavida.services.migrations import migrate_legacy_state
from mavida.services.storage import RedisStateStorage
from mavida.utils.helpers import clamp_progress, compute_next_episode

logger = logging.getLogger(__name__)

STORAGE_KEY = "mavida:user-preferences"
LEGACY_STORAGE_KEY = "mavida-user-preferences"

HISTORY_LIMIT = 100
CONTINUE_WATCHING_LIMIT = 20
COMPLETION_THRESHOLD = 90.0

MEDIA_KINDS = ("movie", "series")

Listener = Callable[["WatchStateStore"], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _dedupe(entries: List, limit: int) -> List:
    """Keep the first entry per key, at most limit entries"""
    seen = set()
    kept = []
    for entry in entries:
        if entry.key in seen:
            continue
        seen.add(entry.key)
        kept.append(entry)
        if len(kept) >= limit:
            break
    return kept


class WatchStateStore:
    """
    In-memory watch state with write-through persistence

    Every mutation is a synchronous read-modify-write followed by a save of
    the whole snapshot. A failed save is logged and recorded in
    ``last_persist_error``; the in-memory change is kept.
    """

    def __init__(
        self,
        storage: Optional[RedisStateStorage] = None,
        clock: Callable[[], datetime] = _utcnow,
        history_limit: int = HISTORY_LIMIT,
        continue_watching_limit: int = CONTINUE_WATCHING_LIMIT,
        completion_threshold: float = COMPLETION_THRESHOLD,
    ):
        self._storage = storage
        self._clock = clock
        self.history_limit = history_limit
        self.continue_watching_limit = continue_watching_limit
        self.completion_threshold = completion_threshold

        self._favorites: List[FavoriteEntry] = []
        self._favorite_keys: Set[ItemKey] = set()
        self._history: List[WatchHistoryEntry] = []
        self._continue_watching: List[ContinueWatchingEntry] = []
        self._listeners: List[Listener] = []

        self.hydrated = False
        self.last_persist_error: Optional[StorageError] = None

    # Validation

    @staticmethod
    def _check_item(item_id: int, kind: str):
        if isinstance(item_id, bool) or not isinstance(item_id, int) or item_id < 1:
            raise ValidationError(f"Item id must be a positive integer, got {item_id!r}")
        if kind not in MEDIA_KINDS:
            raise ValidationError(f"Unknown media kind: {kind!r}")

    @staticmethod
    def _check_episode(kind: str, season: Optional[int], episode: Optional[int]):
        if kind == "movie":
            if season is not None or episode is not None:
                raise ValidationError("Movies do not have seasons or episodes")
            return
        if season is None or episode is None:
            raise ValidationError("Series progress needs both season and episode")
        if season < 0 or episode < 1:
            raise ValidationError(f"Invalid episode S{season}E{episode}")

    # Favorites

    def set_favorite(self, item_id: int, kind: str, on: bool = True) -> bool:
        """
        Add or remove a favorite. Repeating the same call is a no-op.

        Returns:
            The favorite state after the call
        """
        self._check_item(item_id, kind)
        key = (item_id, kind)

        if on == (key in self._favorite_keys):
            return on

        if on:
            self._favorites.insert(0, FavoriteEntry(item_id=item_id, kind=kind, added_at=self._clock()))
            self._favorite_keys.add(key)
        else:
            self._favorites = [entry for entry in self._favorites if entry.key != key]
            self._favorite_keys.discard(key)

        self._commit()
        return on

    def toggle_favorite(self, item_id: int, kind: str) -> bool:
        return self.set_favorite(item_id, kind, not self.is_favorite(item_id, kind))

    def is_favorite(self, item_id: int, kind: str) -> bool:
        return (item_id, kind) in self._favorite_keys

    def get_favorites(self, kind: Optional[str] = None) -> List[FavoriteEntry]:
        """Favorites, most recently added first"""
        return [entry for entry in self._favorites if kind is None or entry.kind == kind]

    # Progress

    def record_progress(
        self,
        item_id: int,
        kind: str,
        progress: float,
        season: Optional[int] = None,
        episode: Optional[int] = None,
        *,
        title: Optional[str] = None,
        poster_path: Optional[str] = None,
        runtime: Optional[int] = None,
        episode_title: Optional[str] = None,
        total_seasons: Optional[int] = None,
        episodes_in_season: Optional[int] = None,
    ) -> WatchHistoryEntry:
        """
        Record playback progress for a movie or an episode

        Args:
            item_id: Catalog id of the movie or series
            kind: "movie" or "series"
            progress: Percentage watched, clamped to [0, 100]
            season: Season number (series only)
            episode: Episode number (series only)
            title: Display title for the continue-watching row
            poster_path: Poster path for the continue-watching row
            runtime: Runtime in minutes
            episode_title: Episode name (series only)
            total_seasons: Number of seasons, used for the next-episode pointer
            episodes_in_season: Episodes in this season, used for the next-episode pointer

        Returns:
            The upserted history entry
        """
        self._check_item(item_id, kind)
        self._check_episode(kind, season, episode)

        progress = clamp_progress(progress)
        now = self._clock()

        entry = WatchHistoryEntry(
            item_id=item_id,
            kind=kind,
            season=season,
            episode=episode,
            progress=progress,
            last_watched=now,
            episode_title=episode_title,
            runtime=runtime,
        )
        self._history = [entry] + [e for e in self._history if e.key != entry.key]
        del self._history[self.history_limit:]

        item_key = (item_id, kind)
        previous = next((e for e in self._continue_watching if e.key == item_key), None)
        remaining = [e for e in self._continue_watching if e.key != item_key]

        if progress >= self.completion_threshold:
            self._continue_watching = remaining
        else:
            next_episode = None
            if kind == "series":
                pointer = compute_next_episode(season, episode, total_seasons, episodes_in_season)
                if pointer is not None:
                    next_episode = NextEpisode(season=pointer[0], episode=pointer[1])

            self._continue_watching = [
                ContinueWatchingEntry(
                    item_id=item_id,
                    kind=kind,
                    progress=progress,
                    last_watched=now,
                    title=title or (previous.title if previous else None),
                    poster_path=poster_path or (previous.poster_path if previous else None),
                    runtime=runtime,
                    season=season,
                    episode=episode,
                    episode_title=episode_title,
                    next_episode=next_episode,
                )
            ] + remaining
            del self._continue_watching[self.continue_watching_limit:]

        self._commit()
        return entry

    def get_progress(
        self,
        item_id: int,
        kind: str,
        season: Optional[int] = None,
        episode: Optional[int] = None,
    ) -> Optional[WatchHistoryEntry]:
        """
        History entry for an item, or for one episode of a series.
        Without season/episode a series returns its most recently watched episode.
        """
        for entry in self._history:
            if entry.item_id != item_id or entry.kind != kind:
                continue
            if season is None and episode is None:
                return entry
            if entry.season == season and entry.episode == episode:
                return entry
        return None

    def get_history(self, limit: Optional[int] = None) -> List[WatchHistoryEntry]:
        """History, most recent first"""
        return list(self._history[:limit])

    def get_continue_watching(self) -> List[ContinueWatchingEntry]:
        return list(self._continue_watching)

    def remove_from_history(self, item_id: int, kind: str) -> int:
        """Remove every history entry of an item. Returns how many were removed."""
        before = len(self._history)
        self._history = [e for e in self._history if (e.item_id, e.kind) != (item_id, kind)]
        removed = before - len(self._history)
        if removed:
            self._commit()
        return removed

    def remove_from_continue_watching(self, item_id: int, kind: str) -> bool:
        before = len(self._continue_watching)
        self._continue_watching = [e for e in self._continue_watching if e.key != (item_id, kind)]
        if len(self._continue_watching) == before:
            return False
        self._commit()
        return True

    def clear(self):
        """Forget all favorites and watch activity"""
        self._favorites = []
        self._favorite_keys = set()
        self._history = []
        self._continue_watching = []
        self._commit()

    # Subscriptions

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Call listener after every mutation

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self):
        for listener in list(self._listeners):
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Watch-state listener {listener!r} failed: {e}", exc_info=True)

    # Snapshot / persistence

    def to_snapshot(self) -> WatchStateSnapshot:
        return WatchStateSnapshot(
            favorites=list(self._favorites),
            watch_history=list(self._history),
            continue_watching=list(self._continue_watching),
        )

    def load_snapshot(self, snapshot: WatchStateSnapshot, persist: bool = True):
        """Replace the in-memory state with a snapshot"""
        self._apply(snapshot)
        if persist:
            self._commit()
        else:
            self._notify()

    def _apply(self, snapshot: WatchStateSnapshot):
        self._favorites = _dedupe(snapshot.favorites, len(snapshot.favorites))
        self._favorite_keys = {entry.key for entry in self._favorites}
        self._history = _dedupe(snapshot.watch_history, self.history_limit)
        self._continue_watching = _dedupe(
            [e for e in snapshot.continue_watching if e.progress < self.completion_threshold],
            self.continue_watching_limit,
        )

    def _commit(self):
        self._persist()
        self._notify()

    def _persist(self):
        if self._storage is None:
            return
        try:
            self._storage.save(STORAGE_KEY, self.to_snapshot().model_dump(mode="json"))
            self.last_persist_error = None
        except StorageError as e:
            self.last_persist_error = e
            logger.error(f"Failed to persist watch state: {e}")

    def hydrate(self) -> bool:
        """
        Load persisted state once; later calls are no-ops

        Imports the legacy layout when only the legacy key exists, saves it
        under the current key and deletes the legacy key.

        Returns:
            True if state was loaded
        """
        if self.hydrated:
            return False
        self.hydrated = True
        if self._storage is None:
            return False

        try:
            payload = self._storage.load(STORAGE_KEY)
            legacy = self._storage.load(LEGACY_STORAGE_KEY) if payload is None else None
        except StorageError as e:
            self.last_persist_error = e
            logger.error(f"Failed to load watch state: {e}")
            return False

        if payload is not None:
            try:
                snapshot = WatchStateSnapshot.model_validate(payload)
            except PydanticValidationError as e:
                logger.error(f"Discarding invalid watch-state snapshot: {e}")
                return False
            self.load_snapshot(snapshot, persist=False)
            logger.info(
                f"Hydrated watch state: {len(self._favorites)} favorites, "
                f"{len(self._history)} history entries"
            )
            return True

        if legacy is None:
            return False

        self.load_snapshot(migrate_legacy_state(legacy, self._clock()))
        if self.last_persist_error is None:
            try:
                self._storage.delete(LEGACY_STORAGE_KEY)
            except StorageError as e:
                logger.warning(f"Could not remove legacy watch state: {e}")
        logger.info(
            f"Imported legacy watch state: {len(self._favorites)} favorites, "
            f"{len(self._history)} history entries"
        )
        return True

    def counts(self) -> Dict[str, int]:
        return {
            "favorites": len(self._favorites),
            "history": len(self._history),
            "continue_watching": len(self._continue_watching),
        }
