"""ChefStream search backend — FastAPI application entry point.

Provides GET /search (recipe-biased YouTube search with a 24h cache) and /health.
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import BackgroundTasks, Depends, FastAPI
from fastapi.responses import JSONResponse, Response

from chefstream.config import settings
from chefstream.database import async_session_factory, close_db, init_db
from chefstream.integrations.youtube import YouTubeClient
from chefstream.orchestrator.errors import SearchError
from chefstream.orchestrator.router import SearchOrchestrator
from chefstream.orchestrator.schemas import SearchParams
from chefstream.services.cache import SearchCacheStore
from chefstream.services.error_reporting import init_sentry

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
)
logger = logging.getLogger("chefstream")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

cache_store = SearchCacheStore(async_session_factory)
orchestrator = SearchOrchestrator(cache_store, YouTubeClient())


def get_orchestrator() -> SearchOrchestrator:
    return orchestrator


# ═══════════════ LIFESPAN ═══════════════

@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("ChefStream backend starting | youtube_key=%s", settings.has_youtube_key)

    sentry_ok = init_sentry()
    logger.info("Sentry: %s", "enabled" if sentry_ok else "disabled")

    # Graceful degradation: without a database every search is a cache miss
    db_ok = await init_db()
    logger.info("Database: %s", "connected" if db_ok else "unavailable (cache disabled)")

    yield

    await cache_store.drain()
    await close_db()
    logger.info("ChefStream backend shutting down")


# ═══════════════ APP ═══════════════

app = FastAPI(
    title="ChefStream API",
    description="Recipe video search backed by YouTube",
    version="1.0.0",
    lifespan=lifespan,
)


def _json_response(body: dict, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body, headers=CORS_HEADERS)


# ═══════════════ ENDPOINTS ═══════════════

@app.get("/health")
async def health():
    return {"ok": True}


@app.get("/search")
async def search(
    background_tasks: BackgroundTasks,
    q: str = "",
    locale: str | None = None,
    pageToken: str | None = None,
    router: SearchOrchestrator = Depends(get_orchestrator),
):
    """Recipe video search. Background tasks run after the response is sent."""
    params = SearchParams(q=q, locale=locale, pageToken=pageToken)

    start = time.monotonic()
    try:
        result = await router.route(params, background_tasks)
    except SearchError as e:
        elapsed_ms = int((time.monotonic() - start) * 1000)
        logger.warning(
            "Search failed | code=%s | status=%d | %dms", e.code, e.status_code, elapsed_ms,
        )
        return _json_response(e.to_dict(), e.status_code)

    elapsed_ms = int((time.monotonic() - start) * 1000)
    logger.info(
        "Search completed | cached=%s | videos=%d | %dms",
        result.cached, len(result.videos), elapsed_ms,
    )
    return _json_response(result.model_dump(), 200)


@app.options("/search")
async def search_preflight():
    return Response(status_code=204, headers=CORS_HEADERS)


@app.api_route("/search", methods=["POST", "PUT", "PATCH", "DELETE", "HEAD", "TRACE", "CONNECT"])
async def search_method_not_allowed():
    return _json_response(
        {"error": "Method not allowed", "code": "METHOD_NOT_ALLOWED", "retryable": False},
        405,
    )


def run():
    """Console entry point: serve the app with uvicorn."""
    import uvicorn

    uvicorn.run("chefstream.main:app", host=settings.host, port=settings.port)
