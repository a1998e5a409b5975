"""
TMDB Transformers
Convert raw TMDB payloads into catalog models
"""
from typing import Any, Dict, List, Optional
from mavida.models.catalog import (
    CastMember,
    CatalogItem,
    CatalogPage,
    CrewMember,
    Credits,
    Episode,
    GenreTable,
    ItemDetail,
    MediaKind,
    SeasonDetail,
    SeasonSummary,
    Video,
)
from mavida.utils.helpers import deduplicate_items, extract_year, round_rating, sanitize_title


def _base_fields(raw: Dict[str, Any], kind: MediaKind) -> Dict[str, Any]:
    # Movies use title/release_date, series use name/first_air_date
    if kind == "movie":
        title = raw.get("title") or raw.get("name")
        original_title = raw.get("original_title")
        release_date = raw.get("release_date")
    else:
        title = raw.get("name") or raw.get("title")
        original_title = raw.get("original_name")
        release_date = raw.get("first_air_date")

    return {
        "id": int(raw["id"]),
        "kind": kind,
        "title": sanitize_title(title) or "Unknown",
        "original_title": original_title,
        "overview": raw.get("overview") or "",
        "poster_path": raw.get("poster_path"),
        "backdrop_path": raw.get("backdrop_path"),
        "rating": round_rating(raw.get("vote_average")),
        "vote_count": int(raw.get("vote_count") or 0),
        "popularity": float(raw.get("popularity") or 0.0),
        "release_date": release_date or None,
        "release_year": extract_year(release_date),
        "is_adult": bool(raw.get("adult", False)),
        "language": raw.get("original_language"),
    }


def transform_item(
    raw: Dict[str, Any],
    kind: MediaKind,
    genres: Optional[GenreTable] = None
) -> CatalogItem:
    """
    Convert a list/search result into a CatalogItem

    Args:
        raw: TMDB result object
        kind: "movie" or "series"
        genres: Genre id -> name table used to resolve genre_ids

    Returns:
        CatalogItem with genre names in provider order
    """
    genres = genres or {}
    genre_names = [
        genres[genre_id]
        for genre_id in raw.get("genre_ids") or []
        if genre_id in genres
    ]
    return CatalogItem(genres=genre_names, **_base_fields(raw, kind))


def transform_page(
    raw: Dict[str, Any],
    kind: MediaKind,
    genres: Optional[GenreTable] = None
) -> CatalogPage:
    """Convert a paginated TMDB response into a CatalogPage"""
    results = deduplicate_items(raw.get("results") or [])
    return CatalogPage(
        items=[transform_item(item, kind, genres) for item in results],
        page=int(raw.get("page") or 1),
        total_pages=int(raw.get("total_pages") or 0),
        total_results=int(raw.get("total_results") or 0),
    )


def transform_multi_page(
    raw: Dict[str, Any],
    genres_by_kind: Dict[str, GenreTable]
) -> CatalogPage:
    """Convert /search/multi results, dropping people"""
    items = []
    for result in deduplicate_items(raw.get("results") or []):
        media_type = result.get("media_type")
        if media_type == "movie":
            items.append(transform_item(result, "movie", genres_by_kind.get("movie")))
        elif media_type == "tv":
            items.append(transform_item(result, "series", genres_by_kind.get("series")))
    return CatalogPage(
        items=items,
        page=int(raw.get("page") or 1),
        total_pages=int(raw.get("total_pages") or 0),
        total_results=int(raw.get("total_results") or 0),
    )


def transform_credits(raw: Dict[str, Any]) -> Credits:
    cast = [
        CastMember(
            id=member["id"],
            name=member.get("name", ""),
            character=member.get("character"),
            profile_path=member.get("profile_path"),
            order=member.get("order") or 0,
        )
        for member in raw.get("cast") or []
    ]
    crew = [
        CrewMember(
            id=member["id"],
            name=member.get("name", ""),
            job=member.get("job"),
            department=member.get("department"),
            profile_path=member.get("profile_path"),
        )
        for member in raw.get("crew") or []
    ]
    return Credits(cast=cast, crew=crew)


def transform_videos(raw: Dict[str, Any]) -> List[Video]:
    return [
        Video(
            id=str(video["id"]),
            key=video.get("key", ""),
            name=video.get("name", ""),
            site=video.get("site", ""),
            type=video.get("type", ""),
            official=bool(video.get("official", False)),
            published_at=video.get("published_at"),
        )
        for video in raw.get("results") or []
    ]


def transform_detail(
    raw: Dict[str, Any],
    kind: MediaKind,
    credits: Optional[Credits] = None,
    videos: Optional[List[Video]] = None
) -> ItemDetail:
    """
    Convert a detail payload, optionally merged with credits and videos

    Detail responses embed full genre objects, so no genre table is needed.
    """
    runtime = raw.get("runtime")
    if runtime is None and raw.get("episode_run_time"):
        runtime = raw["episode_run_time"][0]

    seasons = [
        SeasonSummary(
            season_number=season["season_number"],
            name=season.get("name"),
            episode_count=season.get("episode_count") or 0,
            air_date=season.get("air_date"),
            poster_path=season.get("poster_path"),
        )
        for season in raw.get("seasons") or []
    ]
    credits = credits or Credits()

    return ItemDetail(
        genres=[genre["name"] for genre in raw.get("genres") or [] if genre.get("name")],
        runtime=runtime,
        status=raw.get("status"),
        tagline=raw.get("tagline") or None,
        homepage=raw.get("homepage") or None,
        imdb_id=raw.get("imdb_id") or (raw.get("external_ids") or {}).get("imdb_id"),
        number_of_seasons=raw.get("number_of_seasons"),
        number_of_episodes=raw.get("number_of_episodes"),
        seasons=seasons,
        cast=list(credits.cast),
        crew=list(credits.crew),
        videos=list(videos or []),
        **_base_fields(raw, kind),
    )


def transform_episode(raw: Dict[str, Any], season_number: Optional[int] = None) -> Episode:
    return Episode(
        episode_number=raw["episode_number"],
        season_number=raw.get("season_number", season_number or 0),
        name=raw.get("name") or "",
        overview=raw.get("overview") or "",
        runtime=raw.get("runtime"),
        still_path=raw.get("still_path"),
        air_date=raw.get("air_date"),
        rating=round_rating(raw.get("vote_average")),
    )


def transform_season(raw: Dict[str, Any]) -> SeasonDetail:
    season_number = raw["season_number"]
    return SeasonDetail(
        id=raw.get("id"),
        season_number=season_number,
        name=raw.get("name") or "",
        overview=raw.get("overview") or "",
        air_date=raw.get("air_date"),
        poster_path=raw.get("poster_path"),
        episodes=[transform_episode(ep, season_number) for ep in raw.get("episodes") or []],
    )
