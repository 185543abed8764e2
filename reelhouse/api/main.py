from fastapi import APIRouter

from .endpoints.health import router as health_router
from .endpoints.queue import router as queue_router
from .endpoints.recommend import router as recommend_router
from .endpoints.search import router as search_router
from .endpoints.streaming import router as streaming_router
from .endpoints.watch import router as watch_router

api_router = APIRouter()


@api_router.get("/")
async def root():
    return {"message": "Reelhouse API is running"}


api_router.include_router(health_router)
api_router.include_router(search_router)
api_router.include_router(queue_router)
api_router.include_router(recommend_router)
api_router.include_router(watch_router)
api_router.include_router(streaming_router)
