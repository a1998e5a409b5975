"""
Recent Searches Endpoint
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from mavida.api.deps import get_context
from mavida.core.context import AppContext

router = APIRouter(prefix="/search")


class SearchRequest(BaseModel):
    query: str


@router.get("/recent")
async def get_recent(context: AppContext = Depends(get_context)):
    return {"queries": context.search_history.get_recent()}


@router.post("/recent")
async def add_recent(body: SearchRequest, context: AppContext = Depends(get_context)):
    return {"queries": context.search_history.add(body.query)}


@router.delete("/recent")
async def clear_recent(
    query: Optional[str] = Query(None, description="Remove only this query"),
    context: AppContext = Depends(get_context),
):
    """Remove one query, or all of them when no query is given"""
    if query is None:
        context.search_history.clear()
    else:
        context.search_history.remove(query)
    return {"queries": context.search_history.get_recent()}
