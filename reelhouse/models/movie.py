from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, Field

from reelhouse.core.constants import TMDB_IMAGE_BASE


class MovieRecord(BaseModel):
    """
    Canonical movie record shared by every household (the corpus).

    Created on first reference and refreshed in place; never deleted.
    """

    tmdb_id: int
    title: str
    year: int | None = None
    poster_path: str | None = None
    overview: str | None = None
    runtime: int | None = None
    certification: str | None = None
    genres: list[str] = Field(default_factory=list)
    keywords: list[str] = Field(default_factory=list)
    popularity: float | None = None
    vote_average: float | None = None
    vote_count: int | None = None
    embedding: list[float] | None = None
    last_fetched_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def poster_url(self) -> str | None:
        return f"{TMDB_IMAGE_BASE}/w500{self.poster_path}" if self.poster_path else None

    def display_title(self) -> str:
        return f"{self.title} ({self.year})" if self.year else self.title


class ProviderEntry(BaseModel):
    provider_id: int | None = None
    provider_name: str
    logo_path: str | None = None


class ProviderAvailability(BaseModel):
    """Where a movie can be watched in one region. Superseded on the next fetch."""

    tmdb_id: int
    region: str
    flatrate: list[ProviderEntry] = Field(default_factory=list)
    rent: list[ProviderEntry] = Field(default_factory=list)
    buy: list[ProviderEntry] = Field(default_factory=list)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_empty(self) -> bool:
        return not (self.flatrate or self.rent or self.buy)

    def subscription_names(self) -> list[str]:
        return [p.provider_name for p in self.flatrate]

    def has_any_subscription(self, names: list[str] | set[str]) -> bool:
        wanted = set(names)
        return any(p.provider_name in wanted for p in self.flatrate)


class CompleteMovieData(BaseModel):
    """Joined result of the five catalog sub-requests for one movie."""

    details: dict[str, Any]
    release_dates: dict[str, Any]
    certification: str | None = None
    keywords: list[str] = Field(default_factory=list)
    watch_providers: dict[str, Any] = Field(default_factory=dict)
    credits: dict[str, Any] = Field(default_factory=dict)
