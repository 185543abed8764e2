"""
Recommendation pipeline: similarity retrieval, backfill, explicit filters, ranking and reasons.
"""

from reelhouse.services.recommendation.engine import RecommendationEngine, candidate_limit, partition_preferred
from reelhouse.services.recommendation.filters import RecommendationFilters
from reelhouse.services.recommendation.reasons import build_reason

__all__ = [
    "RecommendationEngine",
    "RecommendationFilters",
    "build_reason",
    "candidate_limit",
    "partition_preferred",
]
