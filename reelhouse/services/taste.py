import math

from loguru import logger

from reelhouse.core.config import settings
from reelhouse.models.household import HouseholdTasteVector
from reelhouse.services.stores.corpus_store import CorpusStore
from reelhouse.services.stores.household_store import HouseholdStore


def weighted_mean_vector(weighted: list[tuple[list[float], float]]) -> list[float] | None:
    """Weighted mean of equal-length vectors, scaled to unit length. None when there is nothing to average."""
    weighted = [(vec, w) for vec, w in weighted if vec and w > 0]
    if not weighted:
        return None

    dims = len(weighted[0][0])
    total = [0.0] * dims
    weight_sum = 0.0
    for vec, weight in weighted:
        if len(vec) != dims:
            logger.warning(f"[taste] Skipping embedding with {len(vec)} dimensions (expected {dims})")
            continue
        for i, value in enumerate(vec):
            total[i] += value * weight
        weight_sum += weight

    if weight_sum == 0:
        return None
    mean = [v / weight_sum for v in total]
    norm = math.sqrt(sum(v * v for v in mean))
    if norm == 0:
        return None
    return [v / norm for v in mean]


class TasteService:
    """Recomputes a household's taste vector from its highly rated movies."""

    def __init__(self, households: HouseholdStore, corpus: CorpusStore, min_rating: int | None = None):
        self.households = households
        self.corpus = corpus
        self.min_rating = settings.TASTE_MIN_RATING if min_rating is None else min_rating

    async def refresh(self, household_id: str) -> HouseholdTasteVector | None:
        ratings = [r for r in await self.households.list_ratings(household_id) if r.rating >= self.min_rating]
        movies = await self.corpus.get_movies([r.tmdb_id for r in ratings])

        weighted = [
            (movies[r.tmdb_id].embedding, float(r.rating))
            for r in ratings
            if r.tmdb_id in movies and movies[r.tmdb_id].embedding
        ]
        vector = weighted_mean_vector(weighted)
        if vector is None:
            await self.households.delete_taste(household_id)
            logger.info(f"[taste] No qualifying ratings for household {household_id}, taste vector cleared")
            return None

        taste = HouseholdTasteVector(household_id=household_id, vector=vector, source_count=len(weighted))
        await self.households.save_taste(taste)
        logger.info(f"[taste] Refreshed taste vector for household {household_id} from {len(weighted)} movies")
        return taste
