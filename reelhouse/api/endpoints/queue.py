from typing import Any

from fastapi import APIRouter, Body, Depends

from reelhouse.api.deps import get_household_id, get_profile_id, get_service
from reelhouse.models.results import AddToQueueResult, MarkWatchedResult, QueueEntry
from reelhouse.services.movie_service import MovieIntelligenceService

router = APIRouter(prefix="/queue", tags=["queue"])


@router.get("", response_model=list[QueueEntry])
async def list_queue(
    household_id: str = Depends(get_household_id),
    service: MovieIntelligenceService = Depends(get_service),
):
    return await service.list_queue(household_id)


@router.post("", response_model=AddToQueueResult)
async def add_to_queue(
    payload: dict[str, Any] | None = Body(default=None),
    household_id: str = Depends(get_household_id),
    profile_id: str | None = Depends(get_profile_id),
    service: MovieIntelligenceService = Depends(get_service),
):
    return await service.add_to_queue(household_id, payload, profile_id=profile_id)


@router.post("/state")
async def queue_state(
    payload: dict[str, Any] | None = Body(default=None),
    household_id: str = Depends(get_household_id),
    service: MovieIntelligenceService = Depends(get_service),
) -> dict[str, list[int]]:
    """Which of the given movie ids are queued for the household."""
    return {"queued": await service.queue_state(household_id, payload)}


@router.delete("/{item_id}")
async def remove_from_queue(
    item_id: int,
    household_id: str = Depends(get_household_id),
    service: MovieIntelligenceService = Depends(get_service),
) -> dict[str, bool]:
    removed = await service.dequeue({"item_id": item_id})
    return {"success": True, "removed": removed}


@router.post("/{item_id}/watched", response_model=MarkWatchedResult)
async def mark_queue_item_watched(
    item_id: int,
    payload: dict[str, Any] | None = Body(default=None),
    household_id: str = Depends(get_household_id),
    profile_id: str | None = Depends(get_profile_id),
    service: MovieIntelligenceService = Depends(get_service),
):
    body = {**(payload or {}), "item_id": item_id}
    return await service.watch_from_queue(household_id, body, profile_id=profile_id)
