from fastapi import APIRouter

from .health import router as health_router
from .sessions import router as sessions_router
from .emotions import router as emotions_router
from .cache import router as cache_router

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(sessions_router, tags=["sessions"])
api_router.include_router(emotions_router, tags=["emotions"])
api_router.include_router(cache_router, tags=["cache"])
