import math
from collections.abc import Sequence

from loguru import logger

from reelhouse.core.config import Settings, settings
from reelhouse.core.constants import EMBEDDING_MAX_KEYWORDS
from reelhouse.core.exceptions import DimensionMismatchError, EmptyInputError, UpstreamError
from reelhouse.core.rate_limiter import SlidingWindowRateLimiter
from reelhouse.models.movie import MovieRecord
from reelhouse.services.embeddings.client import OpenAIEmbeddingClient


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1]. Vectors must have the same length."""
    if len(a) != len(b):
        raise DimensionMismatchError(f"Embeddings must have same dimensions ({len(a)} != {len(b)})")

    dot = sum(x * y for x, y in zip(a, b))
    sq_a = sum(x * x for x in a)
    sq_b = sum(y * y for y in b)
    if sq_a == 0 or sq_b == 0:
        return 0.0
    return max(-1.0, min(1.0, dot / math.sqrt(sq_a * sq_b)))


def build_movie_text(movie: MovieRecord) -> str:
    """
    Text blob embedded for a movie.

    Title twice (weight by repetition), then synopsis, genres, and the top
    keywords as themes. Field order matters as much as the repetition.
    """
    parts: list[str] = []
    if movie.title:
        parts.extend([movie.title, movie.title])
    if movie.overview:
        parts.append(movie.overview)
    if movie.genres:
        parts.append(f"Genres: {', '.join(movie.genres)}")
    if movie.keywords:
        parts.append(f"Themes: {', '.join(movie.keywords[:EMBEDDING_MAX_KEYWORDS])}")
    return "\n\n".join(parts)


class EmbeddingService:
    """Turns text and movie metadata into fixed-length vectors."""

    def __init__(self, client: OpenAIEmbeddingClient, model: str, dimensions: int):
        self.client = client
        self.model = model
        self.dimensions = dimensions

    async def close(self):
        await self.client.close()

    async def embed_text(self, text: str, deadline: float | None = None) -> list[float]:
        if not text or not text.strip():
            raise EmptyInputError("Cannot generate embedding for empty text")

        data = await self.client.post(
            "/embeddings",
            json={"input": text, "model": self.model, "dimensions": self.dimensions},
            deadline=deadline,
        )
        items = data.get("data") or []
        if not items:
            raise UpstreamError("Embedding provider returned no embeddings")

        embedding = items[0].get("embedding") or []
        if len(embedding) != self.dimensions:
            logger.warning(f"[embeddings] Expected {self.dimensions} dimensions, got {len(embedding)}")
        return embedding

    async def embed_movie(self, movie: MovieRecord, deadline: float | None = None) -> list[float]:
        text = build_movie_text(movie)
        if not text.strip():
            raise EmptyInputError(f"Cannot generate movie embedding for {movie.tmdb_id}: no text content available")
        return await self.embed_text(text, deadline=deadline)

    @staticmethod
    def similarity(a: Sequence[float], b: Sequence[float]) -> float:
        return cosine_similarity(a, b)


def build_embedding_service(config: Settings = settings, **client_kwargs) -> EmbeddingService:
    """Construct the gateway with its own rate limiter. Call once per process."""
    limiter = SlidingWindowRateLimiter(
        max_requests=config.EMBEDDING_MAX_REQUESTS_PER_WINDOW,
        window_seconds=config.EMBEDDING_RATE_WINDOW_SECONDS,
        name="openai",
    )
    client = OpenAIEmbeddingClient(
        api_key=config.OPENAI_API_KEY or "",
        max_retries=config.API_MAX_RETRIES,
        rate_limiter=limiter,
        retry_base_delay=config.API_RETRY_BASE_DELAY_SECONDS,
        deadline=config.REQUEST_DEADLINE_SECONDS,
        **client_kwargs,
    )
    return EmbeddingService(client, model=config.EMBEDDING_MODEL, dimensions=config.EMBEDDING_DIMENSIONS)
