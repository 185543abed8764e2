from abc import ABC, abstractmethod
from collections.abc import Iterable

from loguru import logger
from pydantic import BaseModel
from qdrant_client import AsyncQdrantClient
from qdrant_client.http.exceptions import ResponseHandlingException, UnexpectedResponse
from qdrant_client.models import (
    Direction,
    Distance,
    FieldCondition,
    Filter,
    HasIdCondition,
    IsEmptyCondition,
    IsNullCondition,
    MatchAny,
    OrderBy,
    PayloadField,
    PayloadSchemaType,
    PointStruct,
    Range,
    VectorParams,
)

from reelhouse.core.config import Settings, settings
from reelhouse.core.exceptions import UpstreamError
from reelhouse.models.household import HouseholdPolicy
from reelhouse.models.movie import MovieRecord

QDRANT_ERRORS = (UnexpectedResponse, ResponseHandlingException, OSError)


class SimilarityHit(BaseModel):
    tmdb_id: int
    distance: float | None = None


class SimilarityIndex(ABC):
    """
    Approximate nearest-neighbour lookup over the corpus embeddings.

    `query` returns movies that pass the household's certification and runtime
    policy (unknown values pass), ordered by distance to the taste vector when
    one is given, otherwise by popularity.
    """

    @abstractmethod
    async def query(
        self,
        policy: HouseholdPolicy,
        limit: int,
        taste_vector: list[float] | None = None,
        exclude_ids: Iterable[int] = (),
    ) -> list[SimilarityHit]: ...

    @abstractmethod
    async def upsert(self, movie: MovieRecord) -> None: ...

    async def close(self) -> None:
        return None


def _unknown(key: str) -> list:
    return [IsNullCondition(is_null=PayloadField(key=key)), IsEmptyCondition(is_empty=PayloadField(key=key))]


def build_policy_filter(policy: HouseholdPolicy, exclude_ids: Iterable[int] = ()) -> Filter:
    """Qdrant filter for the household policy and the rewatch exclusion list."""
    certification_ok: list = _unknown("certification")
    if policy.allowed_ratings:
        certification_ok.append(FieldCondition(key="certification", match=MatchAny(any=list(policy.allowed_ratings))))

    runtime_ok = [FieldCondition(key="runtime", range=Range(lte=policy.max_runtime)), *_unknown("runtime")]

    excluded = sorted(set(exclude_ids))
    return Filter(
        must=[Filter(should=certification_ok), Filter(should=runtime_ok)],
        must_not=[HasIdCondition(has_id=excluded)] if excluded else None,
    )


class QdrantSimilarityIndex(SimilarityIndex):
    """SimilarityIndex backed by a Qdrant collection (one point per movie, id = TMDB id)."""

    def __init__(self, client: AsyncQdrantClient, collection_name: str, dimensions: int):
        self.client = client
        self.collection_name = collection_name
        self.dimensions = dimensions
        self._collection_ready = False

    async def ensure_collection(self) -> None:
        if self._collection_ready:
            return
        try:
            if not await self.client.collection_exists(self.collection_name):
                logger.info(f"[similarity] Creating collection: {self.collection_name}")
                await self.client.create_collection(
                    collection_name=self.collection_name,
                    vectors_config=VectorParams(size=self.dimensions, distance=Distance.COSINE),
                )
                await self.client.create_payload_index(
                    collection_name=self.collection_name,
                    field_name="popularity",
                    field_schema=PayloadSchemaType.FLOAT,
                )
        except QDRANT_ERRORS as e:
            raise UpstreamError(f"Similarity index unavailable: {e}") from e
        self._collection_ready = True

    @staticmethod
    def payload_for(movie: MovieRecord) -> dict:
        return {
            "tmdb_id": movie.tmdb_id,
            "certification": movie.certification,
            "runtime": movie.runtime,
            "popularity": movie.popularity or 0.0,
            "year": movie.year,
        }

    async def upsert(self, movie: MovieRecord) -> None:
        if not movie.embedding:
            logger.warning(f"[similarity] Skipping index upsert for {movie.tmdb_id}: no embedding")
            return
        await self.ensure_collection()
        try:
            await self.client.upsert(
                collection_name=self.collection_name,
                points=[PointStruct(id=movie.tmdb_id, vector=movie.embedding, payload=self.payload_for(movie))],
            )
        except QDRANT_ERRORS as e:
            raise UpstreamError(f"Failed to index movie {movie.tmdb_id}: {e}") from e

    async def query(
        self,
        policy: HouseholdPolicy,
        limit: int,
        taste_vector: list[float] | None = None,
        exclude_ids: Iterable[int] = (),
    ) -> list[SimilarityHit]:
        await self.ensure_collection()
        query_filter = build_policy_filter(policy, exclude_ids)
        try:
            if taste_vector:
                response = await self.client.query_points(
                    collection_name=self.collection_name,
                    query=taste_vector,
                    query_filter=query_filter,
                    limit=limit,
                    with_payload=False,
                )
                # cosine score is a similarity; report it as a distance
                return [SimilarityHit(tmdb_id=int(p.id), distance=1.0 - p.score) for p in response.points]

            points, _ = await self.client.scroll(
                collection_name=self.collection_name,
                scroll_filter=query_filter,
                limit=limit,
                order_by=OrderBy(key="popularity", direction=Direction.DESC),
                with_payload=False,
                with_vectors=False,
            )
            return [SimilarityHit(tmdb_id=int(p.id)) for p in points]
        except QDRANT_ERRORS as e:
            logger.error(f"[similarity] Query failed for household {policy.household_id}: {e}")
            raise UpstreamError(f"Similarity query failed: {e}") from e

    async def close(self) -> None:
        await self.client.close()


def build_similarity_index(config: Settings = settings) -> QdrantSimilarityIndex:
    client = AsyncQdrantClient(url=config.QDRANT_URL, api_key=config.QDRANT_API_KEY or None)
    return QdrantSimilarityIndex(client, config.QDRANT_COLLECTION, config.EMBEDDING_DIMENSIONS)
