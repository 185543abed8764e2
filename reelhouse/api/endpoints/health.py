from fastapi import APIRouter, Depends

from reelhouse.api.deps import get_service
from reelhouse.core.version import __version__
from reelhouse.services.movie_service import MovieIntelligenceService

router = APIRouter(tags=["health"])


@router.get("/health", summary="Simple readiness probe")
async def health_check(service: MovieIntelligenceService = Depends(get_service)) -> dict[str, str]:
    redis_ok = await service.redis.ping()
    return {
        "status": "ok" if redis_ok else "degraded",
        "redis": "ok" if redis_ok else "unavailable",
        "version": __version__,
    }
