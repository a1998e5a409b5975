"""
Helper Utilities
General purpose utility functions
"""
from typing import Any, Dict, List, Mapping, Optional, Tuple

IMAGE_BASE_URL = "https://image.tmdb.org/t/p/"


def deduplicate_items(
    items: List[Dict[str, Any]],
    key: str = "id"
) -> List[Dict[str, Any]]:
    """
    Remove duplicate raw items from a provider result list

    Args:
        items: List of raw items
        key: Key to use for deduplication

    Returns:
        Deduplicated list maintaining original order
    """
    seen = set()
    result = []

    for item in items:
        item_key = item.get(key)
        if item_key and item_key not in seen:
            seen.add(item_key)
            result.append(item)

    return result


def clamp_progress(progress: float) -> float:
    """Clamp a watch percentage to [0, 100]"""
    if progress != progress:  # NaN
        return 0.0
    return max(0.0, min(100.0, float(progress)))


def compute_next_episode(
    season: int,
    episode: int,
    total_seasons: Optional[int] = None,
    episodes_in_season: Optional[int] = None
) -> Optional[Tuple[int, int]]:
    """
    Work out which episode follows the current one

    Args:
        season: Current season number
        episode: Current episode number
        total_seasons: Number of seasons in the series, if known
        episodes_in_season: Number of episodes in the current season, if known

    Returns:
        (season, episode) of the next episode, or None for the series finale
        or when the season length is unknown
    """
    if not episodes_in_season:
        return None

    if episode < episodes_in_season:
        return (season, episode + 1)

    if total_seasons and season < total_seasons:
        return (season + 1, 1)

    return None


def extract_year(date_string: Optional[str]) -> Optional[int]:
    """Year from a YYYY-MM-DD date string"""
    if not date_string or len(date_string) < 4:
        return None
    try:
        return int(date_string.split("-")[0])
    except ValueError:
        return None


def round_rating(rating: Any) -> float:
    """Vote average rounded to one decimal"""
    try:
        return round(float(rating or 0.0), 1)
    except (TypeError, ValueError):
        return 0.0


def build_image_url(path: Optional[str], size: str = "w500") -> Optional[str]:
    """Full TMDB image URL for a poster/backdrop/profile path"""
    if not path:
        return None
    if path.startswith("http"):
        return path
    return f"{IMAGE_BASE_URL}{size}{path}"


def make_cache_key(operation: str, params: Mapping[str, Any]) -> str:
    """
    Composite cache key from an operation name and its parameters

    None values are dropped and parameters are sorted so that the same
    request always maps to the same key.
    """
    parts = []
    for name in sorted(params):
        value = params[name]
        if value is None:
            continue
        if isinstance(value, Mapping):
            value = ",".join(f"{k}={value[k]}" for k in sorted(value))
        parts.append(f"{name}={value}")
    suffix = ":".join(parts)
    return f"catalog:{operation}:{suffix}" if suffix else f"catalog:{operation}"


def sanitize_title(title: Optional[str]) -> str:
    """
    Sanitize title for safe display

    Args:
        title: Original title

    Returns:
        Sanitized title
    """
    if not title:
        return ""

    return title.strip()[:200]  # Limit length
