from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from loguru import logger

from reelhouse.core.constants import (
    MARK_WATCHED_TASTE_THRESHOLD,
    UPDATE_RATING_TASTE_THRESHOLD,
    WATCH_DEBOUNCE_HOURS,
)
from reelhouse.core.exceptions import NotFoundError, ValidationError
from reelhouse.core.tasks import BackgroundTaskRunner
from reelhouse.models.household import Rating, WatchEvent
from reelhouse.models.movie import MovieRecord
from reelhouse.models.requests import (
    MarkWatchedRequest,
    RemoveWatchRequest,
    UpdateRatingRequest,
    UpdateWatchRequest,
    WatchHistoryRequest,
)
from reelhouse.models.results import (
    HistoryEntry,
    MarkWatchedResult,
    MovieRef,
    RemoveWatchResult,
    UpdateRatingResult,
    UpdateWatchResult,
    WatchSummary,
)
from reelhouse.services.catalog import CatalogService
from reelhouse.services.stores.household_store import HouseholdStore
from reelhouse.services.taste import TasteService


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _stars(rating: int) -> str:
    return f"{rating} star{'s' if rating != 1 else ''}"


def _long_date(value: datetime) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def movie_ref(movie: MovieRecord) -> MovieRef:
    return MovieRef(tmdb_id=movie.tmdb_id, title=movie.title, year=movie.year, poster_path=movie.poster_path)


def watch_summary(event: WatchEvent) -> WatchSummary:
    return WatchSummary(
        id=event.id, tmdb_id=event.tmdb_id, watched_at=event.watched_at, notes=event.notes, rewatch=event.rewatch
    )


class WatchHistoryService:
    """
    Watch events and ratings for a household.

    Ratings require a watch. High ratings schedule a taste-vector refresh in the
    background; refresh failures are logged by the runner and never reach the caller.
    """

    def __init__(
        self,
        households: HouseholdStore,
        catalog: CatalogService,
        taste: TasteService,
        tasks: BackgroundTaskRunner,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.households = households
        self.catalog = catalog
        self.taste = taste
        self.tasks = tasks
        self.clock = clock

    def _schedule_taste_refresh(self, household_id: str, rating: int | None, threshold: int) -> bool:
        if rating is None or rating < threshold:
            return False
        self.tasks.submit(self.taste.refresh(household_id), label=f"taste:{household_id}")
        logger.info(f"[watch] Scheduled taste refresh for household {household_id} (rating {rating})")
        return True

    async def mark_watched(
        self,
        household_id: str,
        request: MarkWatchedRequest,
        profile_id: str | None = None,
        deadline: float | None = None,
    ) -> MarkWatchedResult:
        now = self.clock()
        watched_at = request.watched_at or now

        recent = await self.households.watches_since(
            household_id, request.tmdb_id, now - timedelta(hours=WATCH_DEBOUNCE_HOURS)
        )
        if recent:
            logger.info(f"[watch] Movie {request.tmdb_id} was already marked as watched recently, skipping duplicate")
            stored = await self.catalog.store.get_movie(request.tmdb_id)
            return MarkWatchedResult(
                duplicate=True,
                movie=movie_ref(stored) if stored else MovieRef(tmdb_id=request.tmdb_id, title="Movie"),
                rating=request.rating,
                watch_id=recent[0].id,
                message="This movie was already marked as watched recently",
            )

        movie = await self.catalog.ensure_movie(request.tmdb_id, deadline=deadline)
        rewatch = await self.households.count_movie_watches(household_id, movie.tmdb_id) > 0

        notes = request.notes.strip() if request.notes and request.notes.strip() else None
        event = await self.households.add_watch(
            household_id, movie.tmdb_id, watched_at, profile_id=profile_id, notes=notes, rewatch=rewatch
        )
        logger.info(f"[watch] Recorded watch {event.id} of {movie.tmdb_id} for household {household_id}")

        if request.rating is not None:
            await self.households.upsert_rating(
                Rating(household_id=household_id, tmdb_id=movie.tmdb_id, rating=request.rating, profile_id=profile_id)
            )

        scheduled = self._schedule_taste_refresh(household_id, request.rating, MARK_WATCHED_TASTE_THRESHOLD)

        message = f'I\'ve marked "{movie.display_title()}" as watched on {_long_date(watched_at)}'
        if request.rating is not None:
            message += f", with a rating of {_stars(request.rating)}"
        message += "."

        return MarkWatchedResult(
            movie=movie_ref(movie),
            rating=request.rating,
            watch_id=event.id,
            rewatch=rewatch,
            taste_refresh_scheduled=scheduled,
            message=message,
        )

    async def update_rating(
        self, household_id: str, request: UpdateRatingRequest, profile_id: str | None = None
    ) -> UpdateRatingResult:
        movie = await self.catalog.store.get_movie(request.tmdb_id)
        if movie is None:
            raise NotFoundError(
                f"Movie with TMDB ID {request.tmdb_id} not found. "
                "The movie must be watched first before you can rate it."
            )
        if await self.households.count_movie_watches(household_id, request.tmdb_id) == 0:
            raise NotFoundError(
                f'"{movie.display_title()}" has not been marked as watched yet. Mark it as watched before rating it.'
            )

        await self.households.upsert_rating(
            Rating(household_id=household_id, tmdb_id=movie.tmdb_id, rating=request.rating, profile_id=profile_id)
        )
        scheduled = self._schedule_taste_refresh(household_id, request.rating, UPDATE_RATING_TASTE_THRESHOLD)
        logger.info(f"[watch] Rating for {movie.tmdb_id} set to {request.rating} in household {household_id}")

        return UpdateRatingResult(
            movie=movie_ref(movie),
            rating=request.rating,
            taste_refresh_scheduled=scheduled,
            message=f'Updated rating for "{movie.display_title()}" to {_stars(request.rating)}',
        )

    async def _find_watch(self, household_id: str, request: UpdateWatchRequest) -> WatchEvent:
        if request.watch_id is not None:
            event = await self.households.get_watch(request.watch_id)
            if event is None or event.household_id != household_id:
                raise NotFoundError("Watch entry not found for this household")
            if event.tmdb_id != request.tmdb_id:
                raise ValidationError("The specified watch entry does not belong to that movie")
            return event

        watches = await self.households.list_movie_watches(household_id, request.tmdb_id)
        if request.original_watched_at is not None:
            watches = [w for w in watches if w.watched_at == request.original_watched_at]
        if not watches:
            raise NotFoundError("No watch history found for that movie")
        return watches[0]

    async def update_watch(self, household_id: str, request: UpdateWatchRequest) -> UpdateWatchResult:
        event = await self._find_watch(household_id, request)
        fields = request.model_fields_set
        applied: list[str] = []

        if "watched_at" in fields and request.watched_at is not None:
            event.watched_at = request.watched_at
            applied.append(f"set the watch date to {_long_date(event.watched_at)}")
        if "notes" in fields:
            event.notes = request.notes.strip() if request.notes and request.notes.strip() else None
            applied.append(f'updated the note to "{event.notes}"' if event.notes else "cleared the note")
        if "rewatch" in fields and request.rewatch is not None:
            event.rewatch = request.rewatch
            applied.append(
                "marked this entry as a rewatch" if event.rewatch else "marked this entry as the first watch"
            )

        if not applied:
            return UpdateWatchResult(watch=watch_summary(event), message="No changes were applied to the watch entry.")

        await self.households.save_watch(event)
        movie = await self.catalog.store.get_movie(event.tmdb_id)
        title = f'"{movie.display_title()}"' if movie else "the movie"
        logger.info(f"[watch] Updated watch {event.id} for household {household_id}: {'; '.join(applied)}")
        return UpdateWatchResult(
            watch=watch_summary(event),
            message=f"Updated your watch entry for {title}: {'; '.join(applied)}.",
        )

    async def remove_watch(self, household_id: str, request: RemoveWatchRequest) -> RemoveWatchResult:
        event = await self.households.get_watch(request.watch_id)
        if event is None or event.household_id != household_id:
            raise NotFoundError("Watch entry not found for this household")

        await self.households.delete_watch(event)
        logger.info(f"[watch] Removed watch {event.id} of {event.tmdb_id} for household {household_id}")

        rating_removed = False
        if request.remove_rating and await self.households.count_movie_watches(household_id, event.tmdb_id) == 0:
            rating_removed = await self.households.delete_rating(household_id, event.tmdb_id)
            if rating_removed:
                logger.info(f"[watch] Removed rating of {event.tmdb_id} with its last watch")
        return RemoveWatchResult(watch_id=event.id, rating_removed=rating_removed)

    async def history(self, household_id: str, request: WatchHistoryRequest) -> list[HistoryEntry]:
        watches = await self.households.list_watches(household_id, limit=request.limit)
        movies = await self.catalog.store.get_movies(list({w.tmdb_id for w in watches}))
        ratings = {r.tmdb_id: r.rating for r in await self.households.list_ratings(household_id)}

        entries = []
        for watch in watches:
            movie = movies.get(watch.tmdb_id)
            entries.append(
                HistoryEntry(
                    watch=watch_summary(watch),
                    title=movie.title if movie else f"TMDB {watch.tmdb_id}",
                    year=movie.year if movie else None,
                    rating=ratings.get(watch.tmdb_id),
                )
            )
        return entries
