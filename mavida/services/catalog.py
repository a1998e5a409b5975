"""
Catalog Service
Cached request/response contract over the TMDB gateway, keyed by
operation name + parameters
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Type
from pydantic import BaseModel
from mavida.core.exceptions import ValidationError
from mavida.models.catalog import (
    CatalogPage,
    Episode,
    GenreListing,
    ItemDetail,
    SeasonDetail,
)
from mavida.services.cache import CacheManager, FreshnessPolicy
from mavida.services.tmdb import LIST_NAMES, TMDBClient
from mavida.utils.helpers import make_cache_key

logger = logging.getLogger(__name__)

Handler = Callable[..., Awaitable[BaseModel]]

KIND_PREFIXES = {"movie": "movies", "series": "tv"}


@dataclass(frozen=True)
class Operation:
    """A named gateway call with its cache class and accepted parameters"""
    name: str
    resource: str
    model: Type[BaseModel]
    handler: Handler
    params: Dict[str, type] = field(default_factory=dict)
    defaults: Dict[str, Any] = field(default_factory=dict)
    required: Tuple[str, ...] = ()
    accepts_filters: bool = False

    def bind(self, params: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and coerce caller parameters into handler kwargs"""
        bound = dict(self.defaults)
        filters: Dict[str, Any] = {}

        for name, value in params.items():
            if value is None:
                continue
            if name in self.params:
                bound[name] = _coerce(self.name, name, value, self.params[name])
            elif self.accepts_filters and name == "filters":
                if not isinstance(value, dict):
                    raise ValidationError(f"{self.name}: filters must be a mapping")
                filters.update(value)
            elif self.accepts_filters:
                filters[name] = value
            else:
                raise ValidationError(f"{self.name}: unexpected parameter {name!r}")

        missing = [name for name in self.required if name not in bound]
        if missing:
            raise ValidationError(f"{self.name}: missing required parameter(s) {', '.join(missing)}")

        if filters:
            bound["filters"] = {key: str(value) for key, value in filters.items()}
        return bound


def _coerce(operation: str, name: str, value: Any, expected: type) -> Any:
    if expected is int:
        if isinstance(value, bool):
            raise ValidationError(f"{operation}: {name} must be an integer")
        try:
            return int(value)
        except (TypeError, ValueError):
            raise ValidationError(f"{operation}: {name} must be an integer, got {value!r}")
    return str(value)


def _build_operations() -> Dict[str, Operation]:
    operations: Dict[str, Operation] = {}

    def add(op: Operation):
        operations[op.name] = op

    for kind, prefix in KIND_PREFIXES.items():

        def trending(client: TMDBClient, time_window: str, page: int, kind=kind):
            return client.get_trending(kind, time_window, page)

        add(Operation(
            name=f"{prefix}.trending",
            resource="trending",
            model=CatalogPage,
            handler=trending,
            params={"time_window": str, "page": int},
            defaults={"time_window": "week", "page": 1},
        ))

        for list_name in LIST_NAMES[kind]:

            def curated(client: TMDBClient, page: int, kind=kind, list_name=list_name):
                return client.get_list(kind, list_name, page)

            add(Operation(
                name=f"{prefix}.{list_name}",
                resource="list",
                model=CatalogPage,
                handler=curated,
                params={"page": int},
                defaults={"page": 1},
            ))

        def detail(client: TMDBClient, item_id: int, kind=kind):
            return client.get_full_info(kind, item_id)

        add(Operation(
            name=f"{prefix}.detail",
            resource="detail",
            model=ItemDetail,
            handler=detail,
            params={"item_id": int},
            required=("item_id",),
        ))

        def similar(client: TMDBClient, item_id: int, page: int, kind=kind):
            return client.get_similar(kind, item_id, page)

        def recommendations(client: TMDBClient, item_id: int, page: int, kind=kind):
            return client.get_recommendations(kind, item_id, page)

        for name, handler in (("similar", similar), ("recommendations", recommendations)):
            add(Operation(
                name=f"{prefix}.{name}",
                resource="default",
                model=CatalogPage,
                handler=handler,
                params={"item_id": int, "page": int},
                defaults={"page": 1},
                required=("item_id",),
            ))

        def search(client: TMDBClient, query: str, page: int, year: Optional[int] = None, kind=kind):
            return client.search(kind, query, page, year)

        add(Operation(
            name=f"{prefix}.search",
            resource="search",
            model=CatalogPage,
            handler=search,
            params={"query": str, "page": int, "year": int},
            defaults={"page": 1},
            required=("query",),
        ))

        def discover(client: TMDBClient, page: int, filters: Optional[Dict[str, Any]] = None, kind=kind):
            return client.discover(kind, filters, page)

        add(Operation(
            name=f"{prefix}.discover",
            resource="default",
            model=CatalogPage,
            handler=discover,
            params={"page": int},
            defaults={"page": 1},
            accepts_filters=True,
        ))

    def season(client: TMDBClient, item_id: int, season_number: int):
        return client.get_season(item_id, season_number)

    add(Operation(
        name="tv.season",
        resource="detail",
        model=SeasonDetail,
        handler=season,
        params={"item_id": int, "season_number": int},
        required=("item_id", "season_number"),
    ))

    def episode(client: TMDBClient, item_id: int, season_number: int, episode_number: int):
        return client.get_episode(item_id, season_number, episode_number)

    add(Operation(
        name="tv.episode",
        resource="detail",
        model=Episode,
        handler=episode,
        params={"item_id": int, "season_number": int, "episode_number": int},
        required=("item_id", "season_number", "episode_number"),
    ))

    def search_multi(client: TMDBClient, query: str, page: int):
        return client.search_multi(query, page)

    add(Operation(
        name="search.multi",
        resource="search",
        model=CatalogPage,
        handler=search_multi,
        params={"query": str, "page": int},
        defaults={"page": 1},
        required=("query",),
    ))

    async def genres(client: TMDBClient, kind: str):
        table = await client.get_genres(kind)
        return GenreListing(kind=kind, genres=table)

    add(Operation(
        name="genres.list",
        resource="detail",
        model=GenreListing,
        handler=genres,
        params={"kind": str},
        defaults={"kind": "movie"},
    ))

    return operations


OPERATIONS = _build_operations()


class CatalogService:
    """Wraps every gateway call with the freshness policy and retry"""

    def __init__(
        self,
        client: TMDBClient,
        cache: CacheManager,
        policy: Optional[FreshnessPolicy] = None,
    ):
        self.client = client
        self.cache = cache
        self.policy = policy or FreshnessPolicy()

    @staticmethod
    def operation_names() -> List[str]:
        return sorted(OPERATIONS)

    def _resolve(self, operation: str, params: Dict[str, Any]) -> Tuple[Operation, Dict[str, Any], str]:
        op = OPERATIONS.get(operation)
        if op is None:
            raise ValidationError(f"Unknown catalog operation: {operation!r}")
        bound = op.bind(params)
        return op, bound, make_cache_key(operation, bound)

    async def fetch(self, operation: str, **params: Any) -> BaseModel:
        """
        Run a catalog operation through the cache

        Args:
            operation: Operation name, e.g. "movies.trending" or "tv.detail"
            **params: Operation parameters (page, item_id, query, filters, ...)

        Returns:
            The operation's model (CatalogPage, ItemDetail, SeasonDetail, ...)

        Raises:
            ValidationError: Unknown operation or bad parameters
            CatalogError: Gateway failure after the retry policy gave up
        """
        op, bound, key = self._resolve(operation, params)
        ttl = self.policy.ttl_for(op.resource)

        async def build() -> Dict[str, Any]:
            logger.debug("Fetching %s from TMDB", key)
            result = await op.handler(self.client, **bound)
            return result.model_dump(mode="json")

        payload = await self.cache.get_or_fetch(
            key, build, ttl=ttl, retention=self.policy.retention_for(ttl)
        )
        return op.model.model_validate(payload)

    async def invalidate(self, operation: str, **params: Any) -> bool:
        """Drop the cached response for an operation + parameters"""
        _, _, key = self._resolve(operation, params)
        return await self.cache.delete(key)

    async def get_detail(self, kind: str, item_id: int) -> ItemDetail:
        prefix = KIND_PREFIXES.get(kind)
        if prefix is None:
            raise ValidationError(f"Unknown media kind: {kind!r}")
        return await self.fetch(f"{prefix}.detail", item_id=item_id)
