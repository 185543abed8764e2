from datetime import datetime

from loguru import logger

from reelhouse.core.constants import (
    HOUSEHOLD_WATCHES_KEY,
    MOVIE_WATCHES_KEY,
    POLICY_KEY,
    QUEUE_ID_COUNTER,
    QUEUE_INDEX_KEY,
    QUEUE_ITEM_KEY,
    QUEUE_LIST_TYPE,
    RATINGS_KEY,
    TASTE_KEY,
    WATCH_ID_COUNTER,
    WATCH_KEY,
)
from reelhouse.core.exceptions import DatabaseError
from reelhouse.models.household import HouseholdPolicy, HouseholdTasteVector, QueueItem, Rating, WatchEvent
from reelhouse.services.redis_service import RedisService


class HouseholdStore:
    """
    Household-owned records: policy, watch events, ratings, queue items and taste vectors.

    Layout:
      watch:{id}                                  WatchEvent JSON
      household:{hid}:watches                     sorted set of watch ids scored by watched_at
      household:{hid}:watches:{movie}             same, per movie
      household:{hid}:ratings                     hash movie id -> Rating JSON
      queue_item:{id}                             QueueItem JSON
      household:{hid}:list:{list_type}            hash movie id -> queue item id
    """

    def __init__(self, redis_service: RedisService):
        self.redis = redis_service

    # Policy

    async def get_policy(self, household_id: str) -> HouseholdPolicy:
        """Stored policy, or the household defaults when none has been saved."""
        client = await self.redis.get_client()
        with self.redis.errors(f"load policy for household {household_id}"):
            raw = await client.get(self.redis.key(POLICY_KEY, household_id=household_id))
        if not raw:
            return HouseholdPolicy(household_id=household_id)
        return HouseholdPolicy.model_validate_json(raw)

    async def save_policy(self, policy: HouseholdPolicy) -> None:
        client = await self.redis.get_client()
        with self.redis.errors(f"save policy for household {policy.household_id}"):
            await client.set(self.redis.key(POLICY_KEY, household_id=policy.household_id), policy.model_dump_json())

    # Watch events

    def _watch_indexes(self, household_id: str, movie_id: int) -> tuple[str, str]:
        return (
            self.redis.key(HOUSEHOLD_WATCHES_KEY, household_id=household_id),
            self.redis.key(MOVIE_WATCHES_KEY, household_id=household_id, movie_id=movie_id),
        )

    async def add_watch(
        self,
        household_id: str,
        tmdb_id: int,
        watched_at: datetime,
        profile_id: str | None = None,
        notes: str | None = None,
        rewatch: bool = False,
    ) -> WatchEvent:
        client = await self.redis.get_client()
        with self.redis.errors(f"record watch of {tmdb_id}"):
            watch_id = int(await client.incr(self.redis.key(WATCH_ID_COUNTER)))
            event = WatchEvent(
                id=watch_id,
                household_id=household_id,
                tmdb_id=tmdb_id,
                profile_id=profile_id,
                watched_at=watched_at,
                notes=notes,
                rewatch=rewatch,
            )
            score = event.watched_at.timestamp()
            household_index, movie_index = self._watch_indexes(household_id, tmdb_id)
            await client.set(self.redis.key(WATCH_KEY, watch_id=watch_id), event.model_dump_json())
            await client.zadd(household_index, {str(watch_id): score})
            await client.zadd(movie_index, {str(watch_id): score})
        return event

    async def get_watch(self, watch_id: int) -> WatchEvent | None:
        client = await self.redis.get_client()
        with self.redis.errors(f"load watch {watch_id}"):
            raw = await client.get(self.redis.key(WATCH_KEY, watch_id=watch_id))
        return WatchEvent.model_validate_json(raw) if raw else None

    async def _load_watches(self, watch_ids: list[str]) -> list[WatchEvent]:
        if not watch_ids:
            return []
        client = await self.redis.get_client()
        with self.redis.errors("load watches"):
            raws = await client.mget([self.redis.key(WATCH_KEY, watch_id=wid) for wid in watch_ids])
        return [WatchEvent.model_validate_json(raw) for raw in raws if raw]

    async def watches_since(self, household_id: str, tmdb_id: int, since: datetime) -> list[WatchEvent]:
        """Watch events for one movie with watched_at at or after `since`, newest first."""
        client = await self.redis.get_client()
        _, movie_index = self._watch_indexes(household_id, tmdb_id)
        with self.redis.errors(f"query recent watches of {tmdb_id}"):
            ids = await client.zrevrangebyscore(movie_index, "+inf", since.timestamp())
        return await self._load_watches(ids)

    async def list_movie_watches(self, household_id: str, tmdb_id: int) -> list[WatchEvent]:
        """All watch events for one movie, newest first."""
        client = await self.redis.get_client()
        _, movie_index = self._watch_indexes(household_id, tmdb_id)
        with self.redis.errors(f"list watches of {tmdb_id}"):
            ids = await client.zrevrange(movie_index, 0, -1)
        return await self._load_watches(ids)

    async def count_movie_watches(self, household_id: str, tmdb_id: int) -> int:
        client = await self.redis.get_client()
        _, movie_index = self._watch_indexes(household_id, tmdb_id)
        with self.redis.errors(f"count watches of {tmdb_id}"):
            return int(await client.zcard(movie_index))

    async def list_watches(self, household_id: str, limit: int = 50) -> list[WatchEvent]:
        """The household's most recent watch events across all movies."""
        client = await self.redis.get_client()
        household_index, _ = self._watch_indexes(household_id, 0)
        with self.redis.errors(f"list watches for household {household_id}"):
            ids = await client.zrevrange(household_index, 0, limit - 1)
        return await self._load_watches(ids)

    async def movies_watched_since(self, household_id: str, since: datetime) -> set[int]:
        """Ids of every movie the household watched at or after `since`."""
        client = await self.redis.get_client()
        household_index, _ = self._watch_indexes(household_id, 0)
        with self.redis.errors(f"query watch history for household {household_id}"):
            ids = await client.zrangebyscore(household_index, since.timestamp(), "+inf")
        return {event.tmdb_id for event in await self._load_watches(ids)}

    async def save_watch(self, event: WatchEvent) -> WatchEvent:
        """Overwrite an existing watch event and re-score its indexes."""
        client = await self.redis.get_client()
        household_index, movie_index = self._watch_indexes(event.household_id, event.tmdb_id)
        score = event.watched_at.timestamp()
        with self.redis.errors(f"update watch {event.id}"):
            await client.set(self.redis.key(WATCH_KEY, watch_id=event.id), event.model_dump_json())
            await client.zadd(household_index, {str(event.id): score})
            await client.zadd(movie_index, {str(event.id): score})
        return event

    async def delete_watch(self, event: WatchEvent) -> None:
        client = await self.redis.get_client()
        household_index, movie_index = self._watch_indexes(event.household_id, event.tmdb_id)
        with self.redis.errors(f"delete watch {event.id}"):
            await client.delete(self.redis.key(WATCH_KEY, watch_id=event.id))
            await client.zrem(household_index, str(event.id))
            await client.zrem(movie_index, str(event.id))

    # Ratings

    async def get_rating(self, household_id: str, tmdb_id: int) -> Rating | None:
        client = await self.redis.get_client()
        with self.redis.errors(f"load rating of {tmdb_id}"):
            raw = await client.hget(self.redis.key(RATINGS_KEY, household_id=household_id), str(tmdb_id))
        return Rating.model_validate_json(raw) if raw else None

    async def list_ratings(self, household_id: str) -> list[Rating]:
        client = await self.redis.get_client()
        with self.redis.errors(f"list ratings for household {household_id}"):
            raws = await client.hvals(self.redis.key(RATINGS_KEY, household_id=household_id))
        return [Rating.model_validate_json(raw) for raw in raws]

    async def upsert_rating(self, rating: Rating) -> Rating:
        client = await self.redis.get_client()
        with self.redis.errors(f"save rating of {rating.tmdb_id}"):
            await client.hset(
                self.redis.key(RATINGS_KEY, household_id=rating.household_id),
                str(rating.tmdb_id),
                rating.model_dump_json(),
            )
        return rating

    async def delete_rating(self, household_id: str, tmdb_id: int) -> bool:
        client = await self.redis.get_client()
        with self.redis.errors(f"delete rating of {tmdb_id}"):
            removed = await client.hdel(self.redis.key(RATINGS_KEY, household_id=household_id), str(tmdb_id))
        return bool(removed)

    # Queue

    def _queue_index(self, household_id: str, list_type: str) -> str:
        return self.redis.key(QUEUE_INDEX_KEY, household_id=household_id, list_type=list_type)

    async def get_queue_item(self, item_id: int) -> QueueItem | None:
        client = await self.redis.get_client()
        with self.redis.errors(f"load queue item {item_id}"):
            raw = await client.get(self.redis.key(QUEUE_ITEM_KEY, item_id=item_id))
        return QueueItem.model_validate_json(raw) if raw else None

    async def find_queue_item(
        self, household_id: str, tmdb_id: int, list_type: str = QUEUE_LIST_TYPE
    ) -> QueueItem | None:
        client = await self.redis.get_client()
        with self.redis.errors(f"check queue for {tmdb_id}"):
            item_id = await client.hget(self._queue_index(household_id, list_type), str(tmdb_id))
        return await self.get_queue_item(int(item_id)) if item_id else None

    async def add_queue_item(
        self, household_id: str, tmdb_id: int, added_by: str | None = None, list_type: str = QUEUE_LIST_TYPE
    ) -> tuple[QueueItem, bool]:
        """
        Insert a queue item unless one exists for (household, movie, list type).

        Returns (item, created). The index slot is claimed with HSETNX, so two
        concurrent adds still leave a single item.
        """
        client = await self.redis.get_client()
        index = self._queue_index(household_id, list_type)
        with self.redis.errors(f"add {tmdb_id} to {list_type}"):
            item_id = int(await client.incr(self.redis.key(QUEUE_ID_COUNTER)))
            item = QueueItem(
                id=item_id, household_id=household_id, tmdb_id=tmdb_id, list_type=list_type, added_by=added_by
            )
            await client.set(self.redis.key(QUEUE_ITEM_KEY, item_id=item_id), item.model_dump_json())
            claimed = await client.hsetnx(index, str(tmdb_id), str(item_id))
            if not claimed:
                await client.delete(self.redis.key(QUEUE_ITEM_KEY, item_id=item_id))

        if claimed:
            return item, True
        existing = await self.find_queue_item(household_id, tmdb_id, list_type)
        if existing is None:
            logger.warning(f"[household-store] Queue slot for {tmdb_id} claimed but item missing in {household_id}")
            raise DatabaseError(f"Queue index for movie {tmdb_id} points at a missing item")
        return existing, False

    async def delete_queue_item(self, item_id: int) -> QueueItem | None:
        """Delete by id. Returns the removed item, or None when it did not exist."""
        item = await self.get_queue_item(item_id)
        if item is None:
            return None
        client = await self.redis.get_client()
        index = self._queue_index(item.household_id, item.list_type)
        with self.redis.errors(f"delete queue item {item_id}"):
            await client.delete(self.redis.key(QUEUE_ITEM_KEY, item_id=item_id))
            if await client.hget(index, str(item.tmdb_id)) == str(item_id):
                await client.hdel(index, str(item.tmdb_id))
        return item

    async def queued_movie_ids(
        self, household_id: str, tmdb_ids: list[int], list_type: str = QUEUE_LIST_TYPE
    ) -> set[int]:
        if not tmdb_ids:
            return set()
        client = await self.redis.get_client()
        with self.redis.errors("check queue membership"):
            hits = await client.hmget(self._queue_index(household_id, list_type), [str(t) for t in tmdb_ids])
        return {tmdb_id for tmdb_id, hit in zip(tmdb_ids, hits) if hit}

    async def list_queue(self, household_id: str, list_type: str = QUEUE_LIST_TYPE) -> list[QueueItem]:
        """Queue items, newest first."""
        client = await self.redis.get_client()
        with self.redis.errors(f"list {list_type} for household {household_id}"):
            item_ids = await client.hvals(self._queue_index(household_id, list_type))
            raws = await client.mget([self.redis.key(QUEUE_ITEM_KEY, item_id=i) for i in item_ids]) if item_ids else []
        items = [QueueItem.model_validate_json(raw) for raw in raws if raw]
        return sorted(items, key=lambda it: (it.created_at, it.id), reverse=True)

    # Taste vector

    async def get_taste(self, household_id: str) -> HouseholdTasteVector | None:
        client = await self.redis.get_client()
        with self.redis.errors(f"load taste vector for household {household_id}"):
            raw = await client.get(self.redis.key(TASTE_KEY, household_id=household_id))
        return HouseholdTasteVector.model_validate_json(raw) if raw else None

    async def save_taste(self, taste: HouseholdTasteVector) -> None:
        client = await self.redis.get_client()
        with self.redis.errors(f"save taste vector for household {taste.household_id}"):
            await client.set(self.redis.key(TASTE_KEY, household_id=taste.household_id), taste.model_dump_json())

    async def delete_taste(self, household_id: str) -> None:
        client = await self.redis.get_client()
        with self.redis.errors(f"clear taste vector for household {household_id}"):
            await client.delete(self.redis.key(TASTE_KEY, household_id=household_id))
