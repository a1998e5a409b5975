"""
Watch-State Endpoints
Favorites, progress, history and the continue-watching row
"""
from typing import Literal, Optional
from fastapi import APIRouter, Depends, Path, Query
from pydantic import BaseModel, Field
from mavida.api.deps import get_context
from mavida.core.context import AppContext

router = APIRouter(prefix="/watch")

Kind = Literal["movie", "series"]


class FavoriteRequest(BaseModel):
    on: bool = True


class ProgressRequest(BaseModel):
    item_id: int
    kind: Kind
    progress: float
    season: Optional[int] = None
    episode: Optional[int] = None
    title: Optional[str] = None
    poster_path: Optional[str] = None
    runtime: Optional[int] = None
    episode_title: Optional[str] = None
    total_seasons: Optional[int] = Field(None, ge=1)
    episodes_in_season: Optional[int] = Field(None, ge=1)


def _persist_status(context: AppContext) -> dict:
    error = context.watch_state.last_persist_error
    return {"persisted": error is None}


@router.get("/favorites")
async def get_favorites(
    kind: Optional[Kind] = Query(None),
    context: AppContext = Depends(get_context),
):
    favorites = context.watch_state.get_favorites(kind)
    return {"favorites": [entry.model_dump(mode="json") for entry in favorites]}


@router.put("/favorites/{kind}/{item_id}")
async def set_favorite(
    body: FavoriteRequest,
    kind: Kind = Path(...),
    item_id: int = Path(...),
    context: AppContext = Depends(get_context),
):
    on = context.watch_state.set_favorite(item_id, kind, body.on)
    return {"item_id": item_id, "kind": kind, "favorite": on, **_persist_status(context)}


@router.get("/continue-watching")
async def get_continue_watching(context: AppContext = Depends(get_context)):
    entries = context.watch_state.get_continue_watching()
    return {"items": [entry.model_dump(mode="json") for entry in entries]}


@router.get("/history")
async def get_history(
    limit: Optional[int] = Query(None, ge=1),
    context: AppContext = Depends(get_context),
):
    entries = context.watch_state.get_history(limit)
    return {"items": [entry.model_dump(mode="json") for entry in entries]}


@router.post("/progress")
async def record_progress(body: ProgressRequest, context: AppContext = Depends(get_context)):
    """
    Record playback progress

    For series, total_seasons and episodes_in_season let the store work out
    the next episode; without them no next-episode pointer is kept.
    """
    entry = context.watch_state.record_progress(
        body.item_id,
        body.kind,
        body.progress,
        body.season,
        body.episode,
        title=body.title,
        poster_path=body.poster_path,
        runtime=body.runtime,
        episode_title=body.episode_title,
        total_seasons=body.total_seasons,
        episodes_in_season=body.episodes_in_season,
    )
    return {"entry": entry.model_dump(mode="json"), **_persist_status(context)}


@router.delete("/history/{kind}/{item_id}")
async def remove_from_history(
    kind: Kind = Path(...),
    item_id: int = Path(...),
    context: AppContext = Depends(get_context),
):
    removed = context.watch_state.remove_from_history(item_id, kind)
    return {"removed": removed}


@router.delete("/continue-watching/{kind}/{item_id}")
async def remove_from_continue_watching(
    kind: Kind = Path(...),
    item_id: int = Path(...),
    context: AppContext = Depends(get_context),
):
    removed = context.watch_state.remove_from_continue_watching(item_id, kind)
    return {"removed": removed}


@router.delete("")
async def clear_watch_state(context: AppContext = Depends(get_context)):
    context.watch_state.clear()
    return {"cleared": True, **_persist_status(context)}
