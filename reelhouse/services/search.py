from loguru import logger

from reelhouse.core.constants import SEARCH_MAX_ATTEMPTS, SEARCH_MAX_CANDIDATES
from reelhouse.core.exceptions import MovieServiceError, NotFoundError
from reelhouse.models.movie import CompleteMovieData
from reelhouse.models.requests import SearchRequest
from reelhouse.models.results import SearchCandidate
from reelhouse.services.catalog import CatalogService
from reelhouse.services.policy import ContentPolicyFilter, PolicyMode, content_policy
from reelhouse.services.stores.household_store import HouseholdStore
from reelhouse.services.tmdb.normalize import extract_directors, extract_main_cast


class SearchService:
    """
    Title search filtered by the household policy.

    Unknown certifications are rejected here (strict mode). Accepted candidates
    are stored in the corpus on a best-effort basis.
    """

    def __init__(
        self,
        catalog: CatalogService,
        households: HouseholdStore,
        policy_filter: ContentPolicyFilter = content_policy,
        max_attempts: int = SEARCH_MAX_ATTEMPTS,
        max_candidates: int = SEARCH_MAX_CANDIDATES,
    ):
        self.catalog = catalog
        self.households = households
        self.policy_filter = policy_filter
        self.max_attempts = max_attempts
        self.max_candidates = max_candidates

    async def search(
        self, household_id: str, request: SearchRequest, deadline: float | None = None
    ) -> list[SearchCandidate]:
        """The title search itself is fatal on failure; a candidate that fails to load is skipped."""
        label = f'"{request.query}"' + (f" ({request.year})" if request.year else "")
        response = await self.catalog.tmdb.search_movies(request.query, request.year, deadline=deadline)
        results = [r for r in response.get("results") or [] if isinstance(r, dict) and r.get("id")]
        if not results:
            raise NotFoundError(f"No movies found matching {label}")

        policy = await self.households.get_policy(household_id)
        candidates: list[SearchCandidate] = []
        rejections: list[dict] = []

        for result in results[: self.max_attempts]:
            if len(candidates) >= self.max_candidates:
                break
            try:
                data = await self.catalog.tmdb.fetch_complete(result["id"], deadline=deadline)
                movie, _ = self.catalog.to_record(data)
            except MovieServiceError as e:
                logger.warning(f"[search] Failed to fetch details for TMDB ID {result['id']}: {e}")
                continue

            decision = self.policy_filter.accepts(movie, policy, mode=PolicyMode.STRICT)
            if not decision:
                rejections.append({"tmdb_id": movie.tmdb_id, "title": movie.title, "reason": decision.reason})
                continue

            candidates.append(
                SearchCandidate(
                    tmdb_id=movie.tmdb_id,
                    title=movie.title,
                    year=movie.year,
                    poster_path=movie.poster_path,
                    overview=movie.overview,
                    certification=movie.certification,
                    runtime=movie.runtime,
                    genres=movie.genres,
                    directors=extract_directors(data.credits),
                    cast=extract_main_cast(data.credits),
                )
            )
            await self._remember(data, deadline)

        if not candidates:
            allowed = ", ".join(policy.allowed_ratings) or "none"
            raise NotFoundError(
                f"No movies found matching {label} that meet your household's content filters "
                f"(ratings: {allowed}, max runtime: {policy.max_runtime} min)",
                details=rejections,
            )

        logger.info(f"[search] {len(candidates)} candidates for {label} ({len(rejections)} filtered out)")
        return candidates

    async def _remember(self, data: CompleteMovieData, deadline: float | None = None) -> None:
        tmdb_id = data.details.get("id")
        try:
            if not await self.catalog.store.movie_exists(tmdb_id):
                await self.catalog.ingest(data, deadline=deadline)
        except MovieServiceError as e:
            logger.warning(f"[search] Could not store movie {tmdb_id} in the corpus: {e}")
