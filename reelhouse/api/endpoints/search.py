from typing import Any

from fastapi import APIRouter, Body, Depends

from reelhouse.api.deps import get_household_id, get_service
from reelhouse.models.results import SearchCandidate
from reelhouse.services.movie_service import MovieIntelligenceService

router = APIRouter(prefix="/search", tags=["search"])


@router.post("", response_model=list[SearchCandidate])
async def search_movies(
    payload: dict[str, Any] | None = Body(default=None),
    household_id: str = Depends(get_household_id),
    service: MovieIntelligenceService = Depends(get_service),
):
    """Title search filtered by the household's content policy (3-8 candidates)."""
    return await service.search(household_id, payload)
