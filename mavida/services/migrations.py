"""
Legacy State Migration
One-time import of the pre-unification watch-state layout
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from mavida.models.watch import (
    ContinueWatchingEntry,
    FavoriteEntry,
    NextEpisode,
    WatchHistoryEntry,
    WatchStateSnapshot,
)
from mavida.utils.helpers import clamp_progress

logger = logging.getLogger(__name__)

LEGACY_KINDS = {"movie": "movie", "tv": "series", "series": "series"}


def parse_timestamp(value: Any, default: datetime) -> datetime:
    """
    Accept epoch milliseconds or ISO-8601 strings; anything else -> default
    """
    if isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return default
    if isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return default
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return default


def _legacy_kind(value: Any) -> str:
    kind = LEGACY_KINDS.get(value or "movie")
    if kind is None:
        raise ValueError(f"Unknown legacy media type: {value!r}")
    return kind


def _convert(rows: Iterable[Any], convert, label: str) -> List[Any]:
    converted = []
    for row in rows or []:
        try:
            converted.append(convert(row))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed legacy {label} record {row!r}: {e}")
    return converted


def migrate_legacy_state(payload: Any, now: datetime) -> WatchStateSnapshot:
    """
    Convert a legacy persisted payload into the current snapshot shape

    Handles the zustand ``{"state": ..., "version": n}`` wrapper, the old
    movie-only ``favorites``/``watchHistory`` lists and the intermediate
    ``favoriteItems``/``watchHistoryItems``/``continueWatching`` lists. When
    both generations are present the newer one wins.
    """
    state: Dict[str, Any] = {}
    if isinstance(payload, dict):
        state = payload.get("state") if isinstance(payload.get("state"), dict) else payload

    # Favorites
    if state.get("favoriteItems"):
        favorites = _convert(
            state["favoriteItems"],
            lambda row: FavoriteEntry(
                item_id=row["id"],
                kind=_legacy_kind(row.get("type")),
                added_at=parse_timestamp(row.get("addedAt"), now),
            ),
            "favorite",
        )
    else:
        favorites = _convert(
            state.get("favorites"),
            lambda row: FavoriteEntry(item_id=row["id"], kind="movie", added_at=now),
            "favorite",
        )

    # History
    titles: Dict[int, Dict[str, Optional[str]]] = {}
    if state.get("watchHistoryItems"):
        history = _convert(
            state["watchHistoryItems"],
            lambda row: WatchHistoryEntry(
                item_id=row["id"],
                kind=_legacy_kind(row.get("type")),
                season=row.get("season"),
                episode=row.get("episode"),
                progress=clamp_progress(row.get("progress") or 0),
                last_watched=parse_timestamp(row.get("lastWatched") or row.get("timestamp"), now),
                episode_title=row.get("episodeTitle"),
                runtime=row.get("runtime"),
            ),
            "history",
        )
    else:
        def from_movie_row(row: Dict[str, Any]) -> WatchHistoryEntry:
            titles[row["movieId"]] = {"title": row.get("title"), "poster_path": row.get("posterPath")}
            return WatchHistoryEntry(
                item_id=row["movieId"],
                kind="movie",
                progress=clamp_progress(row.get("progress") or 0),
                last_watched=parse_timestamp(row.get("timestamp"), now),
            )

        history = _convert(state.get("watchHistory"), from_movie_row, "history")
    history.sort(key=lambda entry: entry.last_watched, reverse=True)

    # Continue watching
    if state.get("continueWatching"):
        def from_continue_row(row: Dict[str, Any]) -> ContinueWatchingEntry:
            next_episode = row.get("nextEpisode")
            return ContinueWatchingEntry(
                item_id=row["id"],
                kind=_legacy_kind(row.get("type")),
                progress=clamp_progress(row.get("progress") or 0),
                last_watched=parse_timestamp(row.get("lastWatched"), now),
                title=row.get("title") or row.get("name"),
                poster_path=row.get("posterPath"),
                runtime=row.get("runtime"),
                season=row.get("season"),
                episode=row.get("episode"),
                episode_title=row.get("episodeTitle"),
                next_episode=NextEpisode(**next_episode) if isinstance(next_episode, dict) else None,
            )

        continue_watching = _convert(state["continueWatching"], from_continue_row, "continue-watching")
    else:
        continue_watching = [
            ContinueWatchingEntry(
                item_id=entry.item_id,
                kind=entry.kind,
                progress=entry.progress,
                last_watched=entry.last_watched,
                season=entry.season,
                episode=entry.episode,
                episode_title=entry.episode_title,
                runtime=entry.runtime,
                **titles.get(entry.item_id, {}),
            )
            for entry in history
        ]
    continue_watching.sort(key=lambda entry: entry.last_watched, reverse=True)

    return WatchStateSnapshot(
        favorites=favorites,
        watch_history=history,
        continue_watching=continue_watching,
    )
