"""
Catalog Endpoint
Cached catalog operations: lists, search, discover and details
"""
from fastapi import APIRouter, Depends, Path, Request
from mavida.api.deps import get_context
from mavida.core.context import AppContext
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/catalog")


@router.get("")
async def list_operations(context: AppContext = Depends(get_context)):
    return {"operations": context.catalog.operation_names()}


@router.get("/{operation}")
async def get_catalog(
    request: Request,
    operation: str = Path(..., description="Operation name, e.g. movies.trending or tv.detail"),
    context: AppContext = Depends(get_context),
):
    """
    Run a catalog operation

    Query parameters are passed through as operation parameters, e.g.
    ``/catalog/movies.search?query=heat&page=2`` or
    ``/catalog/movies.discover?with_genres=28&sort_by=popularity.desc``.
    """
    params = dict(request.query_params)
    result = await context.catalog.fetch(operation, **params)
    return result.model_dump(mode="json")
