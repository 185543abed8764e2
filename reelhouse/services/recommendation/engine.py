from collections.abc import Callable
from datetime import datetime, timedelta, timezone

from loguru import logger

from reelhouse.core.constants import BACKFILL_FACTOR, FILTERED_OVERFETCH_FACTOR, FILTERED_OVERFETCH_FLOOR
from reelhouse.core.exceptions import MovieServiceError
from reelhouse.models.household import HouseholdPolicy
from reelhouse.models.movie import MovieRecord, ProviderAvailability
from reelhouse.models.requests import RecommendRequest
from reelhouse.models.results import ProviderLists, RecommendationResult
from reelhouse.services.catalog import CatalogService
from reelhouse.services.corpus import CorpusMaintainer
from reelhouse.services.policy import ContentPolicyFilter, PolicyMode, content_policy
from reelhouse.services.recommendation.filters import RecommendationFilters
from reelhouse.services.recommendation.reasons import build_reason
from reelhouse.services.similarity_index import SimilarityHit, SimilarityIndex
from reelhouse.services.stores.household_store import HouseholdStore


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def candidate_limit(request: RecommendRequest) -> int:
    """How many hits to ask the index for. Explicit filters discard most hits, so over-fetch."""
    if request.has_explicit_filters:
        return max(request.limit * FILTERED_OVERFETCH_FACTOR, FILTERED_OVERFETCH_FLOOR)
    return request.limit


def partition_preferred(
    candidates: list[tuple[MovieRecord, ProviderAvailability | None, float | None]], preferred: list[str]
) -> list[tuple[MovieRecord, ProviderAvailability | None, float | None]]:
    """Stable partition: candidates on a preferred subscription first, relative order kept."""
    if not preferred:
        return candidates
    wanted = set(preferred)
    on_preferred = [c for c in candidates if c[1] and c[1].has_any_subscription(wanted)]
    others = [c for c in candidates if not (c[1] and c[1].has_any_subscription(wanted))]
    return on_preferred + others


class RecommendationEngine:
    """
    Similarity retrieval, corpus backfill, filtering, ranking and reason annotation.

    Pipeline:
      1. size the candidate pool
      2. query the similarity index (taste vector, else popularity)
      3. backfill the corpus on a shortfall and re-query once
      4. explicit filters: year -> genre -> popularity/vote -> streaming-only
      5. best-effort refresh of the final candidates
      6. stable partition on preferred services
      7. reasons
      8. truncate
    """

    def __init__(
        self,
        index: SimilarityIndex,
        catalog: CatalogService,
        households: HouseholdStore,
        corpus: CorpusMaintainer | None = None,
        policy_filter: ContentPolicyFilter = content_policy,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.index = index
        self.catalog = catalog
        self.households = households
        self.corpus = corpus
        self.policy_filter = policy_filter
        self.clock = clock

    async def _rewatch_exclusions(self, household_id: str, policy: HouseholdPolicy) -> set[int]:
        if not policy.rewatch_cooldown_days:
            return set()
        since = self.clock() - timedelta(days=policy.rewatch_cooldown_days)
        return await self.households.movies_watched_since(household_id, since)

    async def _query(
        self, policy: HouseholdPolicy, limit: int, taste_vector: list[float] | None, exclude: set[int]
    ) -> list[SimilarityHit]:
        # failures here are fatal to the whole call
        return await self.index.query(policy, limit, taste_vector=taste_vector, exclude_ids=exclude)

    async def _backfill(self, policy: HouseholdPolicy, shortfall: int, deadline: float | None = None) -> int:
        if self.corpus is None:
            return 0
        try:
            return await self.corpus.expand(policy, shortfall * BACKFILL_FACTOR, deadline=deadline)
        except MovieServiceError as e:
            logger.warning(f"[recommend] Corpus expansion failed, continuing with current corpus: {e}")
            return 0

    async def _providers_for(
        self, movies: list[MovieRecord], region: str, fetch_missing: bool, deadline: float | None = None
    ) -> dict[int, ProviderAvailability]:
        providers = await self.catalog.store.get_providers_many([m.tmdb_id for m in movies], region)
        if not fetch_missing:
            return providers
        for movie in movies:
            if movie.tmdb_id in providers:
                continue
            try:
                fetched = await self.catalog.get_or_fetch_providers(movie.tmdb_id, region=region, deadline=deadline)
            except MovieServiceError as e:
                logger.warning(f"[recommend] Provider lookup failed for {movie.tmdb_id}, treating as none: {e}")
                continue
            if fetched:
                providers[movie.tmdb_id] = fetched
        return providers

    async def _refresh(
        self, movie: MovieRecord, region: str, deadline: float | None = None
    ) -> tuple[MovieRecord, ProviderAvailability | None]:
        try:
            movie = await self.catalog.refresh_movie(movie, deadline=deadline)
        except MovieServiceError as e:
            logger.warning(f"[recommend] Refresh failed for {movie.tmdb_id}, using cached data: {e}")
        return movie, await self.catalog.store.get_providers(movie.tmdb_id, region)

    async def recommend(
        self, household_id: str, request: RecommendRequest, deadline: float | None = None
    ) -> list[RecommendationResult]:
        """`deadline` bounds each catalog and embedding call (backfill, provider lookups, refresh), in seconds."""
        policy = await self.households.get_policy(household_id)
        taste = await self.households.get_taste(household_id)
        taste_vector = taste.vector if taste and taste.vector else None
        exclude = await self._rewatch_exclusions(household_id, policy)
        filters = RecommendationFilters(request)

        limit = candidate_limit(request)
        hits = await self._query(policy, limit, taste_vector, exclude)
        logger.info(
            f"[recommend] Household {household_id}: {len(hits)} hits for limit {limit} "
            f"({'taste' if taste_vector else 'popularity'} ordering)"
        )

        if len(hits) < request.limit:
            shortfall = request.limit - len(hits)
            added = await self._backfill(policy, shortfall, deadline)
            if added:
                hits = await self._query(policy, limit, taste_vector, exclude)
                logger.info(f"[recommend] Re-queried after adding {added} movies: {len(hits)} hits")

        distances = {hit.tmdb_id: hit.distance for hit in hits}
        stored = await self.catalog.store.get_movies(list(distances))
        movies = [stored[hit.tmdb_id] for hit in hits if hit.tmdb_id in stored]

        movies = [m for m in movies if self.policy_filter.accepts(m, policy, mode=PolicyMode.PERMISSIVE)]
        movies = [m for m in movies if filters.passes_year(m)]
        movies = [m for m in movies if filters.passes_genres(m)]
        movies = [m for m in movies if filters.passes_popularity(m) and filters.passes_vote_average(m)]
        providers = await self._providers_for(
            movies, policy.region, fetch_missing=bool(request.streaming_only), deadline=deadline
        )
        movies = [m for m in movies if filters.passes_streaming(providers.get(m.tmdb_id))]

        # refresh in rank order until `limit` candidates survive the policy re-check
        candidates = []
        for movie in movies:
            if len(candidates) >= request.limit:
                break
            refreshed, availability = await self._refresh(movie, policy.region, deadline)
            decision = self.policy_filter.accepts(refreshed, policy, mode=PolicyMode.PERMISSIVE)
            if not decision:
                logger.info(f"[recommend] Dropping {movie.tmdb_id} after refresh: {decision.reason}")
                continue
            candidates.append((refreshed, availability or providers.get(movie.tmdb_id), distances.get(movie.tmdb_id)))

        ranked = partition_preferred(candidates, policy.preferred_streaming_services)

        results = [
            RecommendationResult(
                tmdb_id=movie.tmdb_id,
                title=movie.title,
                year=movie.year,
                poster_path=movie.poster_path,
                certification=movie.certification,
                runtime=movie.runtime,
                genres=movie.genres,
                overview=movie.overview,
                popularity=movie.popularity,
                vote_average=movie.vote_average,
                distance=distance,
                reason=build_reason(movie, policy, filters, availability),
                providers=ProviderLists.from_availability(availability),
            )
            for movie, availability, distance in ranked
        ]
        logger.info(f"[recommend] Returning {min(len(results), request.limit)} recommendations for {household_id}")
        return results[: request.limit]
