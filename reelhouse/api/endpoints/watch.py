from typing import Any

from fastapi import APIRouter, Body, Depends, Query

from reelhouse.api.deps import get_household_id, get_profile_id, get_service
from reelhouse.models.results import (
    HistoryEntry,
    MarkWatchedResult,
    RemoveWatchResult,
    UpdateRatingResult,
    UpdateWatchResult,
)
from reelhouse.services.movie_service import MovieIntelligenceService

router = APIRouter(prefix="/watch", tags=["watch"])


@router.get("/history", response_model=list[HistoryEntry])
async def watch_history(
    limit: int = Query(default=50),
    household_id: str = Depends(get_household_id),
    service: MovieIntelligenceService = Depends(get_service),
):
    return await service.watch_history(household_id, {"limit": limit})


@router.post("", response_model=MarkWatchedResult)
async def mark_watched(
    payload: dict[str, Any] | None = Body(default=None),
    household_id: str = Depends(get_household_id),
    profile_id: str | None = Depends(get_profile_id),
    service: MovieIntelligenceService = Depends(get_service),
):
    return await service.mark_watched(household_id, payload, profile_id=profile_id)


@router.put("/rating", response_model=UpdateRatingResult)
async def update_rating(
    payload: dict[str, Any] | None = Body(default=None),
    household_id: str = Depends(get_household_id),
    profile_id: str | None = Depends(get_profile_id),
    service: MovieIntelligenceService = Depends(get_service),
):
    return await service.update_rating(household_id, payload, profile_id=profile_id)


@router.patch("", response_model=UpdateWatchResult)
async def update_watch(
    payload: dict[str, Any] | None = Body(default=None),
    household_id: str = Depends(get_household_id),
    service: MovieIntelligenceService = Depends(get_service),
):
    return await service.update_watch(household_id, payload)


@router.delete("/{watch_id}", response_model=RemoveWatchResult)
async def remove_watch(
    watch_id: int,
    remove_rating: bool = Query(default=False),
    household_id: str = Depends(get_household_id),
    service: MovieIntelligenceService = Depends(get_service),
):
    return await service.remove_watch(household_id, {"watch_id": watch_id, "remove_rating": remove_rating})
