from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from reelhouse.core.constants import MOVIE_KEY, MOVIES_INDEX_KEY, PROVIDERS_KEY
from reelhouse.models.movie import MovieRecord, ProviderAvailability
from reelhouse.services.redis_service import RedisService


class CorpusStore:
    """
    Corpus-level records shared by all households: movies and provider availability.

    Writes are plain overwrites (last write wins), so concurrent refreshes of the
    same movie need no locking.
    """

    def __init__(self, redis_service: RedisService):
        self.redis = redis_service

    def _movie_key(self, movie_id: int) -> str:
        return self.redis.key(MOVIE_KEY, movie_id=movie_id)

    def _providers_key(self, movie_id: int, region: str) -> str:
        return self.redis.key(PROVIDERS_KEY, movie_id=movie_id, region=region)

    @staticmethod
    def _decode_movie(raw: str | None) -> MovieRecord | None:
        if not raw:
            return None
        try:
            return MovieRecord.model_validate_json(raw)
        except PydanticValidationError as e:
            logger.warning(f"[corpus-store] Discarding undecodable movie record: {e}")
            return None

    async def get_movie(self, movie_id: int) -> MovieRecord | None:
        client = await self.redis.get_client()
        with self.redis.errors(f"load movie {movie_id}"):
            raw = await client.get(self._movie_key(movie_id))
        return self._decode_movie(raw)

    async def get_movies(self, movie_ids: list[int]) -> dict[int, MovieRecord]:
        if not movie_ids:
            return {}
        client = await self.redis.get_client()
        with self.redis.errors("load movies"):
            raws = await client.mget([self._movie_key(mid) for mid in movie_ids])
        movies = {}
        for raw in raws:
            movie = self._decode_movie(raw)
            if movie:
                movies[movie.tmdb_id] = movie
        return movies

    async def movie_exists(self, movie_id: int) -> bool:
        client = await self.redis.get_client()
        with self.redis.errors(f"check movie {movie_id}"):
            return bool(await client.exists(self._movie_key(movie_id)))

    async def save_movie(self, movie: MovieRecord) -> MovieRecord:
        client = await self.redis.get_client()
        with self.redis.errors(f"save movie {movie.tmdb_id}"):
            await client.set(self._movie_key(movie.tmdb_id), movie.model_dump_json())
            await client.sadd(self.redis.key(MOVIES_INDEX_KEY), movie.tmdb_id)
        return movie

    async def corpus_size(self) -> int:
        client = await self.redis.get_client()
        with self.redis.errors("count movies"):
            return int(await client.scard(self.redis.key(MOVIES_INDEX_KEY)))

    async def get_providers(self, movie_id: int, region: str) -> ProviderAvailability | None:
        client = await self.redis.get_client()
        with self.redis.errors(f"load providers for {movie_id}"):
            raw = await client.get(self._providers_key(movie_id, region))
        return ProviderAvailability.model_validate_json(raw) if raw else None

    async def get_providers_many(self, movie_ids: list[int], region: str) -> dict[int, ProviderAvailability]:
        if not movie_ids:
            return {}
        client = await self.redis.get_client()
        with self.redis.errors("load providers"):
            raws = await client.mget([self._providers_key(mid, region) for mid in movie_ids])
        return {
            availability.tmdb_id: availability
            for availability in (ProviderAvailability.model_validate_json(raw) for raw in raws if raw)
        }

    async def save_providers(self, availability: ProviderAvailability) -> None:
        client = await self.redis.get_client()
        with self.redis.errors(f"save providers for {availability.tmdb_id}"):
            key = self._providers_key(availability.tmdb_id, availability.region)
            await client.set(key, availability.model_dump_json())
