from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from reelhouse.core.config import Settings, settings
from reelhouse.core.exceptions import ValidationError
from reelhouse.core.tasks import BackgroundTaskRunner
from reelhouse.models.requests import (
    AddToQueueRequest,
    DequeueRequest,
    GetStreamingRequest,
    MarkWatchedRequest,
    QueueStateRequest,
    RecommendRequest,
    RemoveWatchRequest,
    SearchRequest,
    UpdateRatingRequest,
    UpdateWatchRequest,
    WatchFromQueueRequest,
    WatchHistoryRequest,
)
from reelhouse.models.results import (
    AddToQueueResult,
    HistoryEntry,
    MarkWatchedResult,
    QueueEntry,
    RecommendationResult,
    RemoveWatchResult,
    SearchCandidate,
    StreamingResult,
    UpdateRatingResult,
    UpdateWatchResult,
)
from reelhouse.services.catalog import CatalogService
from reelhouse.services.corpus import CorpusMaintainer
from reelhouse.services.embeddings.service import EmbeddingService, build_embedding_service
from reelhouse.services.queue import QueueManager
from reelhouse.services.recommendation import RecommendationEngine
from reelhouse.services.redis_service import RedisService
from reelhouse.services.search import SearchService
from reelhouse.services.similarity_index import SimilarityIndex, build_similarity_index
from reelhouse.services.stores.corpus_store import CorpusStore
from reelhouse.services.stores.household_store import HouseholdStore
from reelhouse.services.streaming import StreamingService
from reelhouse.services.taste import TasteService
from reelhouse.services.tmdb.service import TMDBService, build_tmdb_service
from reelhouse.services.watch_history import WatchHistoryService

RequestT = TypeVar("RequestT", bound=BaseModel)

Payload = dict[str, Any] | BaseModel | None


def validate_request(model: type[RequestT], payload: Payload) -> RequestT:
    """Turn a loosely-typed payload into a request model, or raise ValidationError."""
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    try:
        return model.model_validate(payload or {})
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ()))
        message = f"Invalid {model.__name__} parameters: {location + ': ' if location else ''}{first.get('msg')}"
        raise ValidationError(message, details=e.errors(include_url=False)) from e


class MovieIntelligenceService:
    """
    Entry points used by the chat tool layer and the HTTP routes.

    Identity is always passed in: the household id on every call and the acting
    profile where one exists. Payloads are validated here before reaching the core.
    """

    def __init__(
        self,
        tmdb: TMDBService,
        embeddings: EmbeddingService,
        redis_service: RedisService,
        index: SimilarityIndex,
        tasks: BackgroundTaskRunner | None = None,
        corpus_expansion: bool = True,
    ):
        self.tmdb = tmdb
        self.embeddings = embeddings
        self.redis = redis_service
        self.index = index
        self.tasks = tasks or BackgroundTaskRunner(name="taste")

        self.corpus_store = CorpusStore(redis_service)
        self.households = HouseholdStore(redis_service)
        self.catalog = CatalogService(tmdb, embeddings, self.corpus_store, index)
        self.corpus = CorpusMaintainer(self.catalog) if corpus_expansion else None
        self.taste = TasteService(self.households, self.corpus_store)
        self.watches = WatchHistoryService(self.households, self.catalog, self.taste, self.tasks)
        self.queue = QueueManager(self.households, self.catalog, self.watches)
        self.recommender = RecommendationEngine(index, self.catalog, self.households, corpus=self.corpus)
        self.searcher = SearchService(self.catalog, self.households)
        self.streaming = StreamingService(self.catalog, self.households)

    async def search(
        self, household_id: str, payload: Payload, deadline: float | None = None
    ) -> list[SearchCandidate]:
        return await self.searcher.search(household_id, validate_request(SearchRequest, payload), deadline=deadline)

    async def add_to_queue(
        self, household_id: str, payload: Payload, profile_id: str | None = None, deadline: float | None = None
    ) -> AddToQueueResult:
        return await self.queue.enqueue(
            household_id, validate_request(AddToQueueRequest, payload), profile_id, deadline=deadline
        )

    async def recommend(
        self, household_id: str, payload: Payload = None, deadline: float | None = None
    ) -> list[RecommendationResult]:
        return await self.recommender.recommend(
            household_id, validate_request(RecommendRequest, payload), deadline=deadline
        )

    async def mark_watched(
        self, household_id: str, payload: Payload, profile_id: str | None = None, deadline: float | None = None
    ) -> MarkWatchedResult:
        return await self.watches.mark_watched(
            household_id, validate_request(MarkWatchedRequest, payload), profile_id, deadline=deadline
        )

    async def update_rating(
        self, household_id: str, payload: Payload, profile_id: str | None = None
    ) -> UpdateRatingResult:
        return await self.watches.update_rating(
            household_id, validate_request(UpdateRatingRequest, payload), profile_id
        )

    async def update_watch(self, household_id: str, payload: Payload) -> UpdateWatchResult:
        return await self.watches.update_watch(household_id, validate_request(UpdateWatchRequest, payload))

    async def remove_watch(self, household_id: str, payload: Payload) -> RemoveWatchResult:
        return await self.watches.remove_watch(household_id, validate_request(RemoveWatchRequest, payload))

    async def watch_history(self, household_id: str, payload: Payload = None) -> list[HistoryEntry]:
        return await self.watches.history(household_id, validate_request(WatchHistoryRequest, payload))

    async def get_streaming(
        self, household_id: str, payload: Payload, deadline: float | None = None
    ) -> StreamingResult:
        return await self.streaming.get_streaming(
            household_id, validate_request(GetStreamingRequest, payload), deadline=deadline
        )

    async def dequeue(self, payload: Payload) -> bool:
        return await self.queue.dequeue(validate_request(DequeueRequest, payload))

    async def queue_state(self, household_id: str, payload: Payload) -> list[int]:
        return await self.queue.queue_state(household_id, validate_request(QueueStateRequest, payload))

    async def list_queue(self, household_id: str) -> list[QueueEntry]:
        return await self.queue.list_queue(household_id)

    async def watch_from_queue(
        self, household_id: str, payload: Payload, profile_id: str | None = None, deadline: float | None = None
    ) -> MarkWatchedResult:
        return await self.queue.watch_from_queue(
            household_id, validate_request(WatchFromQueueRequest, payload), profile_id, deadline=deadline
        )

    async def close(self) -> None:
        await self.tasks.drain()
        for name, closer in (
            ("tmdb", self.tmdb.close),
            ("embeddings", self.embeddings.close),
            ("similarity index", self.index.close),
            ("redis", self.redis.close),
        ):
            try:
                await closer()
            except Exception as exc:
                logger.warning(f"Failed to close {name} client: {exc}")


def build_movie_service(config: Settings = settings) -> MovieIntelligenceService:
    """Wire the production service. Fails fast when a provider credential is missing."""
    config.require_credentials()
    return MovieIntelligenceService(
        tmdb=build_tmdb_service(config),
        embeddings=build_embedding_service(config),
        redis_service=RedisService(url=config.REDIS_URL, key_prefix=config.REDIS_KEY_PREFIX),
        index=build_similarity_index(config),
    )


_movie_service: MovieIntelligenceService | None = None


def get_movie_service() -> MovieIntelligenceService:
    global _movie_service
    if _movie_service is None:
        _movie_service = build_movie_service()
    return _movie_service


async def shutdown_movie_service() -> None:
    global _movie_service
    if _movie_service is not None:
        await _movie_service.close()
        _movie_service = None
