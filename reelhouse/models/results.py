from datetime import datetime

from pydantic import BaseModel, Field

from reelhouse.models.movie import ProviderAvailability, ProviderEntry


class MovieRef(BaseModel):
    tmdb_id: int
    title: str
    year: int | None = None
    poster_path: str | None = None


class SearchCandidate(BaseModel):
    tmdb_id: int
    title: str
    year: int | None = None
    poster_path: str | None = None
    overview: str | None = None
    certification: str | None = None
    runtime: int | None = None
    genres: list[str] = Field(default_factory=list)
    directors: list[str] = Field(default_factory=list)
    cast: list[str] = Field(default_factory=list)


class AddToQueueResult(BaseModel):
    success: bool = True
    movie: MovieRef
    already_queued: bool = False
    queue_item_id: int | None = None
    message: str


class ProviderLists(BaseModel):
    flatrate: list[ProviderEntry] = Field(default_factory=list)
    rent: list[ProviderEntry] = Field(default_factory=list)
    buy: list[ProviderEntry] = Field(default_factory=list)

    @classmethod
    def from_availability(cls, availability: ProviderAvailability | None) -> "ProviderLists | None":
        if availability is None:
            return None
        return cls(flatrate=availability.flatrate, rent=availability.rent, buy=availability.buy)


class RecommendationResult(BaseModel):
    tmdb_id: int
    title: str
    year: int | None = None
    poster_path: str | None = None
    certification: str | None = None
    runtime: int | None = None
    genres: list[str] = Field(default_factory=list)
    overview: str | None = None
    popularity: float | None = None
    vote_average: float | None = None
    distance: float | None = Field(default=None, description="Similarity distance (lower is more similar)")
    reason: str | None = None
    providers: ProviderLists | None = None


class MarkWatchedResult(BaseModel):
    success: bool = True
    duplicate: bool = False
    movie: MovieRef
    rating: int | None = None
    watch_id: int | None = None
    rewatch: bool = False
    taste_refresh_scheduled: bool = False
    message: str


class UpdateRatingResult(BaseModel):
    success: bool = True
    movie: MovieRef
    rating: int
    taste_refresh_scheduled: bool = False
    message: str


class WatchSummary(BaseModel):
    id: int
    tmdb_id: int
    watched_at: datetime
    notes: str | None = None
    rewatch: bool = False


class UpdateWatchResult(BaseModel):
    success: bool = True
    watch: WatchSummary
    message: str


class RemoveWatchResult(BaseModel):
    success: bool = True
    watch_id: int
    rating_removed: bool = False


class StreamingResult(BaseModel):
    success: bool = True
    tmdb_id: int
    region: str
    available: bool
    message: str
    providers: ProviderLists | None = None


class QueueEntry(BaseModel):
    item_id: int
    added_by: str | None = None
    created_at: datetime
    movie: MovieRef


class HistoryEntry(BaseModel):
    watch: WatchSummary
    title: str
    year: int | None = None
    rating: int | None = None
