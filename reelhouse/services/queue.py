from loguru import logger

from reelhouse.core.exceptions import MovieServiceError, NotFoundError
from reelhouse.models.requests import (
    AddToQueueRequest,
    DequeueRequest,
    MarkWatchedRequest,
    QueueStateRequest,
    WatchFromQueueRequest,
)
from reelhouse.models.results import AddToQueueResult, MarkWatchedResult, MovieRef, QueueEntry
from reelhouse.services.catalog import CatalogService
from reelhouse.services.stores.household_store import HouseholdStore
from reelhouse.services.watch_history import WatchHistoryService, movie_ref


class QueueManager:
    """Household watch-list membership. Independent of watch history."""

    def __init__(self, households: HouseholdStore, catalog: CatalogService, watches: WatchHistoryService):
        self.households = households
        self.catalog = catalog
        self.watches = watches

    async def enqueue(
        self,
        household_id: str,
        request: AddToQueueRequest,
        profile_id: str | None = None,
        deadline: float | None = None,
    ) -> AddToQueueResult:
        movie = await self.catalog.ensure_movie(request.tmdb_id, deadline=deadline)
        item, created = await self.households.add_queue_item(household_id, movie.tmdb_id, added_by=profile_id)

        if not created:
            logger.info(f"[queue] {movie.tmdb_id} already queued for household {household_id}")
            return AddToQueueResult(
                movie=movie_ref(movie),
                already_queued=True,
                queue_item_id=item.id,
                message=f'"{movie.display_title()}" is already in your queue.',
            )

        logger.info(f"[queue] Added {movie.tmdb_id} to queue of household {household_id}")
        return AddToQueueResult(
            movie=movie_ref(movie),
            queue_item_id=item.id,
            message=f'Added "{movie.display_title()}" to your queue.',
        )

    async def dequeue(self, request: DequeueRequest) -> bool:
        """Delete by id. Ownership is checked by the caller's access-control layer."""
        removed = await self.households.delete_queue_item(request.item_id)
        if removed:
            logger.info(f"[queue] Removed queue item {request.item_id} ({removed.tmdb_id})")
        return removed is not None

    async def queue_state(self, household_id: str, request: QueueStateRequest) -> list[int]:
        """The subset of the given ids that are currently queued, in request order."""
        queued = await self.households.queued_movie_ids(household_id, request.tmdb_ids)
        return [tmdb_id for tmdb_id in dict.fromkeys(request.tmdb_ids) if tmdb_id in queued]

    async def list_queue(self, household_id: str) -> list[QueueEntry]:
        items = await self.households.list_queue(household_id)
        movies = await self.catalog.store.get_movies([item.tmdb_id for item in items])
        return [
            QueueEntry(
                item_id=item.id,
                added_by=item.added_by,
                created_at=item.created_at,
                movie=movie_ref(movies[item.tmdb_id])
                if item.tmdb_id in movies
                else MovieRef(tmdb_id=item.tmdb_id, title=f"TMDB {item.tmdb_id}"),
            )
            for item in items
        ]

    async def watch_from_queue(
        self,
        household_id: str,
        request: WatchFromQueueRequest,
        profile_id: str | None = None,
        deadline: float | None = None,
    ) -> MarkWatchedResult:
        """Mark a queued movie as watched, then take it off the queue."""
        item = await self.households.get_queue_item(request.item_id)
        if item is None or item.household_id != household_id:
            raise NotFoundError("Queue item not found for this household")

        result = await self.watches.mark_watched(
            household_id,
            MarkWatchedRequest(tmdb_id=item.tmdb_id, rating=request.rating),
            profile_id=profile_id,
            deadline=deadline,
        )
        try:
            await self.households.delete_queue_item(item.id)
        except MovieServiceError as e:
            logger.warning(f"[queue] Watch recorded but failed to remove queue item {item.id}: {e}")
        return result
