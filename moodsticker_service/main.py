import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .config import MoodstickerSettings
from .services.connector import OpenAIConnector
from .services.display_coordinator import DisplayCoordinator
from .services.emotion_resolver import EmotionResolver
from .services.label_store import collect_allowed_labels, load_allowed_labels, load_label_store
from .services.mood import MoodState
from .services.result_cache import ResultCache
from .services.semantic_matcher import SemanticMatcher
from .services.session_broker import SessionBroker
from .api import api_router

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def build_services(settings: MoodstickerSettings, connector=None) -> dict:
    """Wire the resolution pipeline from settings. Does no network I/O."""
    cache = ResultCache(
        cache_path=settings.cache_path,
        version_path=settings.version_path(),
        hot_capacity=settings.hot_cache_capacity,
        persisted_capacity=settings.persisted_cache_capacity,
        ttl=settings.cache_ttl,
    )
    cache.load()

    if connector is None and settings.connector_enabled:
        connector = OpenAIConnector(settings)
    if connector is None:
        logger.warning("No classifier endpoint configured, resolution will use fallback labels")

    library = load_label_store(settings.label_store_path)
    matcher = SemanticMatcher(connector)
    matcher.load_library(library)

    allowed_labels = load_allowed_labels(settings.allowed_labels_path) or collect_allowed_labels(library)

    mood_state = MoodState()
    broker = SessionBroker(timeout_ms=settings.session_timeout_ms)
    resolver = EmotionResolver(cache, connector, mood_state, settings, allowed_labels=allowed_labels)
    coordinator = DisplayCoordinator(broker, resolver, matcher, mood_source=mood_state,
                                     top_k=settings.match_top_k)
    return {
        "cache": cache,
        "connector": connector,
        "matcher": matcher,
        "mood_state": mood_state,
        "broker": broker,
        "resolver": resolver,
        "coordinator": coordinator,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = MoodstickerSettings()
    app.state.settings = settings

    services = build_services(settings)
    for name, service in services.items():
        setattr(app.state, name, service)
    logger.info("Result cache loaded: %s", services["cache"].stats())

    matcher = services["matcher"]
    if settings.precompute_on_startup and services["connector"] and matcher.library:
        try:
            await matcher.precompute_embeddings()
        except Exception as e:
            logger.warning("Embedding precompute deferred: %s", e)

    yield

    # Shutdown
    services["cache"].save()
    logger.info("Result cache saved")
    connector = services["connector"]
    if connector is not None and hasattr(connector, "close"):
        await connector.close()
        logger.info("Classifier connector closed")


app = FastAPI(
    title="Moodsticker Service",
    version="0.1.0",
    description="Resolves short utterances into emotion labels and matching sticker images",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


class BearerTokenMiddleware(BaseHTTPMiddleware):
    """Optional bearer token authentication.

    When SERVICE_TOKEN is set, all requests must include
    a matching Authorization: Bearer <token> header.
    When not set, all requests are allowed (local dev mode).
    """

    async def dispatch(self, request: Request, call_next):
        token = request.app.state.settings.service_token
        if token:
            auth = request.headers.get("authorization", "")
            if not auth.startswith("Bearer ") or auth[7:] != token:
                return JSONResponse(status_code=401, content={"detail": "Unauthorized"})
        return await call_next(request)


app.add_middleware(BearerTokenMiddleware)

app.include_router(api_router)


if __name__ == "__main__":
    import uvicorn

    settings = MoodstickerSettings()
    uvicorn.run(
        "moodsticker_service.main:app",
        host="127.0.0.1",
        port=settings.service_port,
        reload=True,
    )
