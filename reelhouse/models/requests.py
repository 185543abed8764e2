"""
Typed request models for every household action.

Callers (the chat tool layer or the HTTP routes) hand over loosely-typed
payloads; these models are the only shape that enters the core.
"""

from datetime import datetime, timezone
from typing import Annotated

from pydantic import BaseModel, Field, field_validator, model_validator

from reelhouse.core.constants import NOTES_MAX_LENGTH, RECOMMEND_DEFAULT_LIMIT, RECOMMEND_MAX_LIMIT

TmdbId = Annotated[int, Field(gt=0, description="TMDB ID must be a positive number")]


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SearchRequest(BaseModel):
    query: str = Field(min_length=1, description="Search query is required")
    year: int | None = Field(default=None, ge=1900, le=2100)

    @field_validator("query")
    @classmethod
    def _query_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Search query is required")
        return value.strip()


class AddToQueueRequest(BaseModel):
    tmdb_id: TmdbId


class RecommendRequest(BaseModel):
    limit: int = Field(default=RECOMMEND_DEFAULT_LIMIT, ge=1, le=RECOMMEND_MAX_LIMIT)
    year_min: int | None = None
    year_max: int | None = None
    genres: list[str] | None = None
    min_popularity: float | None = None
    min_vote_average: float | None = Field(default=None, ge=0, le=10)
    streaming_only: bool | None = None
    query_description: str | None = Field(
        default=None,
        min_length=1,
        max_length=2000,
        description="Free-form natural language describing the desired recommendations (advisory only)",
    )

    @model_validator(mode="after")
    def _check_year_range(self) -> "RecommendRequest":
        if self.year_min is not None and self.year_max is not None and self.year_min > self.year_max:
            raise ValueError("year_min must not be greater than year_max")
        return self

    @property
    def has_explicit_filters(self) -> bool:
        return bool(
            self.year_min is not None
            or self.year_max is not None
            or self.genres
            or self.min_popularity is not None
            or self.min_vote_average is not None
            or self.streaming_only
        )


class MarkWatchedRequest(BaseModel):
    tmdb_id: TmdbId
    rating: int | None = Field(default=None, ge=1, le=10, description="Rating out of 10 stars")
    watched_at: datetime | None = Field(default=None, description="When the movie was watched (defaults to now)")
    notes: str | None = Field(default=None, max_length=NOTES_MAX_LENGTH)

    @field_validator("watched_at")
    @classmethod
    def _watched_at_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)


class UpdateRatingRequest(BaseModel):
    tmdb_id: TmdbId
    rating: int = Field(ge=1, le=10, description="Rating out of 10 stars")


class UpdateWatchRequest(BaseModel):
    tmdb_id: TmdbId
    watch_id: int | None = Field(default=None, gt=0)
    original_watched_at: datetime | None = None
    watched_at: datetime | None = None
    notes: str | None = Field(default=None, max_length=NOTES_MAX_LENGTH)
    rewatch: bool | None = None

    @field_validator("watched_at", "original_watched_at")
    @classmethod
    def _timestamps_utc(cls, value: datetime | None) -> datetime | None:
        return _as_utc(value)

    @model_validator(mode="after")
    def _require_one_update(self) -> "UpdateWatchRequest":
        if not ({"watched_at", "notes", "rewatch"} & self.model_fields_set):
            raise ValueError("Provide at least one field to update (watched_at, notes, or rewatch).")
        return self


class GetStreamingRequest(BaseModel):
    tmdb_id: TmdbId
    region: str | None = Field(default=None, min_length=2, max_length=2)

    @field_validator("region")
    @classmethod
    def _upper_region(cls, value: str | None) -> str | None:
        return value.upper() if value else value


class RemoveWatchRequest(BaseModel):
    watch_id: int = Field(gt=0)
    remove_rating: bool = False


class DequeueRequest(BaseModel):
    item_id: int = Field(gt=0)


class QueueStateRequest(BaseModel):
    tmdb_ids: list[int] = Field(min_length=1)


class WatchFromQueueRequest(BaseModel):
    item_id: int = Field(gt=0)
    rating: int | None = Field(default=None, ge=1, le=10)


class WatchHistoryRequest(BaseModel):
    limit: int = Field(default=50, ge=1, le=500)
