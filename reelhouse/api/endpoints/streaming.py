from fastapi import APIRouter, Depends, Query

from reelhouse.api.deps import get_household_id, get_service
from reelhouse.models.results import StreamingResult
from reelhouse.services.movie_service import MovieIntelligenceService

router = APIRouter(prefix="/streaming", tags=["streaming"])


@router.get("/{tmdb_id}", response_model=StreamingResult)
async def get_streaming(
    tmdb_id: int,
    region: str | None = Query(default=None),
    household_id: str = Depends(get_household_id),
    service: MovieIntelligenceService = Depends(get_service),
):
    return await service.get_streaming(household_id, {"tmdb_id": tmdb_id, "region": region})
