from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator

from reelhouse.core.constants import (
    DEFAULT_ALLOWED_RATINGS,
    DEFAULT_MAX_RUNTIME,
    DEFAULT_REWATCH_COOLDOWN_DAYS,
    QUEUE_LIST_TYPE,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class HouseholdPolicy(BaseModel):
    """Content policy for one household. Owned by the settings layer, read-only here."""

    household_id: str
    allowed_ratings: list[str] = Field(default_factory=lambda: list(DEFAULT_ALLOWED_RATINGS))
    max_runtime: int = DEFAULT_MAX_RUNTIME
    blocked_keywords: list[str] = Field(default_factory=list)
    preferred_streaming_services: list[str] = Field(default_factory=list)
    rewatch_cooldown_days: int | None = DEFAULT_REWATCH_COOLDOWN_DAYS
    region: str = "US"

    @field_validator("blocked_keywords")
    @classmethod
    def _strip_blank_keywords(cls, value: list[str]) -> list[str]:
        return [k.strip() for k in value if k and k.strip()]


class WatchEvent(BaseModel):
    """One viewing. Append-only; a household may watch the same movie many times."""

    id: int
    household_id: str
    tmdb_id: int
    profile_id: str | None = None
    watched_at: datetime = Field(default_factory=_utcnow)
    notes: str | None = None
    rewatch: bool = False


class Rating(BaseModel):
    """The current rating of a movie for a household. Updates overwrite."""

    household_id: str
    tmdb_id: int
    rating: int = Field(ge=1, le=10)
    profile_id: str | None = None
    rated_at: datetime = Field(default_factory=_utcnow)


class QueueItem(BaseModel):
    id: int
    household_id: str
    tmdb_id: int
    list_type: str = QUEUE_LIST_TYPE
    added_by: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class HouseholdTasteVector(BaseModel):
    """Derived summary of highly rated movies, used only to order the similarity query."""

    household_id: str
    vector: list[float]
    source_count: int = 0
    updated_at: datetime = Field(default_factory=_utcnow)
