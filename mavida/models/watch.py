"""
Watch-State Models
Favorites, watch history and continue-watching entries
"""
from datetime import datetime
from pydantic import BaseModel, Field
from typing import List, Optional, Tuple
from mavida.models.catalog import MediaKind

SNAPSHOT_VERSION = 2

ItemKey = Tuple[int, str]
HistoryKey = Tuple[int, str, Optional[int], Optional[int]]


class NextEpisode(BaseModel):
    season: int
    episode: int


class FavoriteEntry(BaseModel):
    item_id: int
    kind: MediaKind
    added_at: datetime

    @property
    def key(self) -> ItemKey:
        return (self.item_id, self.kind)


class WatchHistoryEntry(BaseModel):
    """Progress for one movie or one episode of a series"""
    item_id: int
    kind: MediaKind
    season: Optional[int] = None
    episode: Optional[int] = None
    progress: float = Field(0.0, ge=0.0, le=100.0)
    last_watched: datetime
    episode_title: Optional[str] = None
    runtime: Optional[int] = None

    @property
    def key(self) -> HistoryKey:
        return (self.item_id, self.kind, self.season, self.episode)


class ContinueWatchingEntry(BaseModel):
    """In-progress title, one per (item_id, kind)"""
    item_id: int
    kind: MediaKind
    progress: float = Field(0.0, ge=0.0, le=100.0)
    last_watched: datetime
    title: Optional[str] = None
    poster_path: Optional[str] = None
    runtime: Optional[int] = None
    season: Optional[int] = None
    episode: Optional[int] = None
    episode_title: Optional[str] = None
    next_episode: Optional[NextEpisode] = None

    @property
    def key(self) -> ItemKey:
        return (self.item_id, self.kind)


class WatchStateSnapshot(BaseModel):
    """Persisted form of the watch-state store"""
    version: int = SNAPSHOT_VERSION
    favorites: List[FavoriteEntry] = Field(default_factory=list)
    watch_history: List[WatchHistoryEntry] = Field(default_factory=list)
    continue_watching: List[ContinueWatchingEntry] = Field(default_factory=list)
