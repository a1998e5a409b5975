"""
Health Check Endpoint
"""
from fastapi import APIRouter, Depends, Query
from mavida.api.deps import get_context
from mavida.core.config import VERSION
from mavida.core.context import AppContext

router = APIRouter()


@router.get("/health")
async def health_check(
    include_metrics: bool = Query(False, description="Include cache metrics"),
    context: AppContext = Depends(get_context),
):
    """Health check endpoint for monitoring"""
    payload = {
        "status": "healthy",
        "version": VERSION,
        "app": context.config.APP_NAME,
    }

    if include_metrics:
        payload["cache_metrics"] = context.cache.get_metrics_snapshot()
        payload["tmdb"] = {
            "requests": context.tmdb.request_count,
            "queued": context.throttle.pending,
            "in_flight": context.throttle.in_flight,
        }
        payload["watch_state"] = context.watch_state.counts()

    return payload
