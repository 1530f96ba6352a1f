from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/api/health")
async def health(request: Request):
    state = request.app.state
    cache = state.cache
    matcher = state.matcher
    broker = state.broker

    cache_info = {"hot_count": 0, "persisted_count": 0, "version": None, "persistent": False}
    if cache:
        cache_info = cache.stats()

    library_info = {"images": 0, "embeddings": 0}
    if matcher:
        library_info = {
            "images": len(matcher.library),
            "embeddings": matcher.embedding_count,
        }

    return {
        "status": "ok",
        "cache": cache_info,
        "library": library_info,
        "session_active": broker.is_active() if broker else False,
        "connector": {
            "configured": state.connector is not None,
            "model": state.settings.llm_model,
            "embedding_model": state.settings.llm_embedding_model,
        },
    }
