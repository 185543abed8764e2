from loguru import logger

from reelhouse.core.exceptions import UpstreamError
from reelhouse.models.movie import CompleteMovieData, MovieRecord, ProviderAvailability
from reelhouse.services.embeddings.service import EmbeddingService
from reelhouse.services.similarity_index import SimilarityIndex
from reelhouse.services.stores.corpus_store import CorpusStore
from reelhouse.services.tmdb.normalize import MALFORMED_PAYLOAD_ERRORS, normalize_movie, normalize_providers
from reelhouse.services.tmdb.service import TMDBService


class CatalogService:
    """
    The single ensure-exists path for corpus movies.

    fetch complete data -> normalize -> embed -> persist record and providers
    -> index. Search, queue-add, watch and corpus backfill all go through here.
    """

    def __init__(
        self,
        tmdb: TMDBService,
        embeddings: EmbeddingService,
        store: CorpusStore,
        index: SimilarityIndex,
    ):
        self.tmdb = tmdb
        self.embeddings = embeddings
        self.store = store
        self.index = index

    @property
    def region(self) -> str:
        return self.tmdb.region

    def to_record(self, data: CompleteMovieData) -> tuple[MovieRecord, ProviderAvailability | None]:
        """Normalize fetched data. A payload that does not map onto a record is an UpstreamError."""
        try:
            movie = normalize_movie(data.details, data.certification, data.keywords)
            providers = normalize_providers(movie.tmdb_id, self.region, data.watch_providers)
        except MALFORMED_PAYLOAD_ERRORS as e:
            logger.warning(f"[catalog] Malformed catalog payload for {data.details.get('id')}: {e!r}")
            raise UpstreamError(f"Catalog returned a malformed payload for movie {data.details.get('id')}") from e
        return movie, providers

    async def ingest(
        self, data: CompleteMovieData, existing: MovieRecord | None = None, deadline: float | None = None
    ) -> MovieRecord:
        """Persist already-fetched catalog data, embedding it unless the stored record has a vector."""
        movie, providers = self.to_record(data)
        if existing and existing.embedding:
            movie.embedding = existing.embedding
        else:
            movie.embedding = await self.embeddings.embed_movie(movie, deadline=deadline)

        await self.store.save_movie(movie)
        if providers:
            await self.store.save_providers(providers)
        await self.index.upsert(movie)
        logger.info(f"[catalog] Stored movie {movie.tmdb_id} '{movie.display_title()}'")
        return movie

    async def ensure_movie(self, tmdb_id: int, deadline: float | None = None) -> MovieRecord:
        """Return the stored record, creating it from the catalog on first reference."""
        movie = await self.store.get_movie(tmdb_id)
        if movie:
            return movie
        logger.info(f"[catalog] Movie {tmdb_id} not in corpus, fetching")
        data = await self.tmdb.fetch_complete(tmdb_id, deadline=deadline)
        return await self.ingest(data, deadline=deadline)

    async def refresh_movie(self, movie: MovieRecord, deadline: float | None = None) -> MovieRecord:
        """Re-fetch metadata and providers in place. The stored embedding is kept."""
        data = await self.tmdb.fetch_complete(movie.tmdb_id, deadline=deadline)
        return await self.ingest(data, existing=movie, deadline=deadline)

    async def get_or_fetch_providers(
        self, tmdb_id: int, region: str | None = None, deadline: float | None = None
    ) -> ProviderAvailability | None:
        """Cached availability, fetched and stored on a miss."""
        region = region or self.region
        cached = await self.store.get_providers(tmdb_id, region)
        if cached:
            return cached
        providers = await self.tmdb.get_providers(tmdb_id, region=region, deadline=deadline)
        if providers:
            await self.store.save_providers(providers)
        return providers
