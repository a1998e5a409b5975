"""
Catalog Models
Internal shapes for items mapped from the TMDB API
"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Dict, List, Literal, Optional
from mavida.utils.helpers import build_image_url

MediaKind = Literal["movie", "series"]

GenreTable = Dict[int, str]


class CatalogModel(BaseModel):
    """Base for catalog shapes: immutable once fetched"""
    model_config = ConfigDict(frozen=True)


class CatalogItem(CatalogModel):
    """Movie or series as shown in rows and grids"""
    id: int
    kind: MediaKind
    title: str
    original_title: Optional[str] = None
    overview: str = ""
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    rating: float = 0.0
    vote_count: int = 0
    popularity: float = 0.0
    release_date: Optional[str] = None
    release_year: Optional[int] = None
    genres: List[str] = Field(default_factory=list)
    is_adult: bool = False
    language: Optional[str] = None

    @property
    def poster_url(self) -> Optional[str]:
        return build_image_url(self.poster_path, "w500")

    @property
    def backdrop_url(self) -> Optional[str]:
        return build_image_url(self.backdrop_path, "w1280")


class CatalogPage(CatalogModel):
    """One page of a list, search or discover response"""
    items: List[CatalogItem] = Field(default_factory=list)
    page: int = 1
    total_pages: int = 0
    total_results: int = 0


class CastMember(CatalogModel):
    id: int
    name: str
    character: Optional[str] = None
    profile_path: Optional[str] = None
    order: int = 0


class CrewMember(CatalogModel):
    id: int
    name: str
    job: Optional[str] = None
    department: Optional[str] = None
    profile_path: Optional[str] = None


class Credits(CatalogModel):
    cast: List[CastMember] = Field(default_factory=list)
    crew: List[CrewMember] = Field(default_factory=list)


class Video(CatalogModel):
    """Trailer, teaser or clip hosted on a third-party site"""
    id: str
    key: str
    name: str
    site: str
    type: str
    official: bool = False
    published_at: Optional[str] = None


class SeasonSummary(CatalogModel):
    season_number: int
    name: Optional[str] = None
    episode_count: int = 0
    air_date: Optional[str] = None
    poster_path: Optional[str] = None


class ItemDetail(CatalogItem):
    """Detail page payload: item fields plus credits and videos"""
    runtime: Optional[int] = None
    status: Optional[str] = None
    tagline: Optional[str] = None
    homepage: Optional[str] = None
    imdb_id: Optional[str] = None
    number_of_seasons: Optional[int] = None
    number_of_episodes: Optional[int] = None
    seasons: List[SeasonSummary] = Field(default_factory=list)
    cast: List[CastMember] = Field(default_factory=list)
    crew: List[CrewMember] = Field(default_factory=list)
    videos: List[Video] = Field(default_factory=list)

    def episodes_in_season(self, season_number: int) -> Optional[int]:
        """Episode count for a season, if the provider listed it"""
        for season in self.seasons:
            if season.season_number == season_number:
                return season.episode_count
        return None


class Episode(CatalogModel):
    episode_number: int
    season_number: int
    name: str = ""
    overview: str = ""
    runtime: Optional[int] = None
    still_path: Optional[str] = None
    air_date: Optional[str] = None
    rating: float = 0.0


class SeasonDetail(CatalogModel):
    id: Optional[int] = None
    season_number: int
    name: str = ""
    overview: str = ""
    air_date: Optional[str] = None
    poster_path: Optional[str] = None
    episodes: List[Episode] = Field(default_factory=list)


class GenreListing(CatalogModel):
    kind: MediaKind
    genres: GenreTable = Field(default_factory=dict)
