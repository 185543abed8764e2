from loguru import logger

from reelhouse.core.constants import CORPUS_RESULTS_PER_TERM, CORPUS_SEARCH_TERMS
from reelhouse.core.exceptions import MovieServiceError
from reelhouse.models.household import HouseholdPolicy
from reelhouse.services.catalog import CatalogService
from reelhouse.services.policy import ContentPolicyFilter, PolicyMode, content_policy


class CorpusMaintainer:
    """
    Grows the shared corpus on demand when a household runs short of candidates.

    Candidates are processed one at a time so the provider rate windows see a
    steady stream and the loop can stop as soon as the target is met.
    """

    def __init__(
        self,
        catalog: CatalogService,
        policy_filter: ContentPolicyFilter = content_policy,
        search_terms: list[str] | None = None,
        results_per_term: int = CORPUS_RESULTS_PER_TERM,
    ):
        self.catalog = catalog
        self.policy_filter = policy_filter
        self.search_terms = list(CORPUS_SEARCH_TERMS if search_terms is None else search_terms)
        self.results_per_term = results_per_term

    async def _search_term(self, term: str, deadline: float | None = None) -> list[int]:
        try:
            response = await self.catalog.tmdb.search_movies(term, deadline=deadline)
        except MovieServiceError as e:
            logger.warning(f"[corpus] Search for '{term}' failed, skipping term: {e}")
            return []
        results = (response.get("results") or [])[: self.results_per_term]
        return [r["id"] for r in results if isinstance(r, dict) and r.get("id")]

    async def _try_add(self, tmdb_id: int, policy: HouseholdPolicy, deadline: float | None = None) -> bool:
        try:
            if await self.catalog.store.movie_exists(tmdb_id):
                return False
            data = await self.catalog.tmdb.fetch_complete(tmdb_id, deadline=deadline)
            movie, _ = self.catalog.to_record(data)
            decision = self.policy_filter.accepts(movie, policy, mode=PolicyMode.PERMISSIVE)
            if not decision:
                logger.debug(f"[corpus] Skipping {tmdb_id}: {decision.reason}")
                return False
            await self.catalog.ingest(data, deadline=deadline)
            return True
        except MovieServiceError as e:
            logger.warning(f"[corpus] Failed to add movie {tmdb_id}, skipping: {e}")
            return False

    async def expand(self, policy: HouseholdPolicy, target_count: int, deadline: float | None = None) -> int:
        """
        Add up to `target_count` new policy-compliant movies. Returns how many were added.

        `deadline` bounds each catalog and embedding call, in seconds.
        """
        if target_count <= 0:
            return 0

        added = 0
        seen: set[int] = set()
        for term in self.search_terms:
            for tmdb_id in await self._search_term(term, deadline):
                if tmdb_id in seen:
                    continue
                seen.add(tmdb_id)
                if await self._try_add(tmdb_id, policy, deadline):
                    added += 1
                    if added >= target_count:
                        logger.info(f"[corpus] Reached target of {target_count} new movies")
                        return added

        logger.info(f"[corpus] Search terms exhausted after adding {added}/{target_count} movies")
        return added
