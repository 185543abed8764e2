from typing import Any

from fastapi import APIRouter, Body, Depends

from reelhouse.api.deps import get_household_id, get_service
from reelhouse.models.results import RecommendationResult
from reelhouse.services.movie_service import MovieIntelligenceService

router = APIRouter(prefix="/recommend", tags=["recommendations"])


@router.post("", response_model=list[RecommendationResult])
async def recommend(
    payload: dict[str, Any] | None = Body(default=None),
    household_id: str = Depends(get_household_id),
    service: MovieIntelligenceService = Depends(get_service),
):
    return await service.recommend(household_id, payload)
