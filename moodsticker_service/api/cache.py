from fastapi import APIRouter, Request, HTTPException

from ..models.cache import CacheStatusResponse

router = APIRouter(prefix="/api/cache")


def _get_cache(request: Request):
    cache = request.app.state.cache
    if not cache:
        raise HTTPException(status_code=503, detail="Result cache not available")
    return cache


@router.get("/status", response_model=CacheStatusResponse)
async def cache_status(request: Request):
    return _get_cache(request).stats()


@router.delete("")
async def clear_cache(request: Request):
    cache = _get_cache(request)
    before = cache.stats()["persisted_count"]
    cache.clear()
    return {"cleared": before}
