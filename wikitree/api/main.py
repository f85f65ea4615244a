"""
FastAPI application for WikiTree Explorer.

Exposes endpoints for:
- Building a sampled hierarchy graph for upward/downward roots and highlights.
- Fetching the most recently published graph.
- Health and cache metadata.
"""

import logging
from contextlib import asynccontextmanager
from time import perf_counter
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from wikitree import __version__
from wikitree.common.config import ConfigError, load_config
from wikitree.common.logging_utils import setup_logging
from wikitree.graph.graph_service import GraphRequest, HierarchyGraphService
from wikitree.graph.models import RenderGraph
from wikitree.ingestion.entity_cache import EntityCache
from wikitree.ingestion.wikidata_client_async import AsyncWikidataClient

setup_logging()
logger = logging.getLogger(__name__)

_config = load_config()
_entity_cache: Optional[EntityCache] = None
_wikidata_client: Optional[AsyncWikidataClient] = None
_graph_service: Optional[HierarchyGraphService] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create the shared cache, client and graph service once per process."""
    global _entity_cache, _wikidata_client, _graph_service
    _entity_cache = EntityCache()
    _wikidata_client = AsyncWikidataClient(_config.wikidata, cache=_entity_cache)
    _graph_service = HierarchyGraphService(
        _wikidata_client,
        _config.sampling,
        max_concurrency=_config.wikidata.max_concurrency,
        follow_instance_of_upward=_config.wikidata.follow_instance_of_upward,
    )
    logger.info("API started with sampling config %s", _config.sampling)

    yield
    try:
        if _wikidata_client:
            _wikidata_client.close()
    except Exception:  # noqa: BLE001
        logger.warning("Error while closing Wikidata client", exc_info=True)
    finally:
        _entity_cache = None
        _wikidata_client = None
        _graph_service = None


app = FastAPI(
    title="WikiTree Explorer API",
    description="API for sampled Wikidata subclass/instance hierarchy graphs",
    version=__version__,
    lifespan=lifespan,
)

limiter = Limiter(key_func=get_remote_address)
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class GraphBuildRequest(BaseModel):
    """Request model for a hierarchy graph build."""

    upward: List[str] = []
    downward: List[str] = []
    highlights: List[str] = []
    sample_rate_percent: Optional[float] = Field(default=None, ge=0, le=100)
    sample_count_threshold: Optional[int] = Field(default=None, ge=1)
    min_nodes_per_level: Optional[int] = Field(default=None, ge=1)
    max_nodes_per_level: Optional[int] = Field(default=None, ge=1)
    seed: Optional[int] = None


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log incoming requests and responses with latency."""
    start = perf_counter()
    try:
        response = await call_next(request)
    except Exception:  # noqa: BLE001
        logger.exception(
            "Unhandled error during request %s %s after %.2fms",
            request.method,
            request.url.path,
            (perf_counter() - start) * 1000,
        )
        raise
    logger.info(
        "HTTP %s %s -> %s in %.2fms",
        request.method,
        request.url.path,
        response.status_code,
        (perf_counter() - start) * 1000,
    )
    return response


def _ensure_service_available() -> HierarchyGraphService:
    if _graph_service is None:
        raise HTTPException(status_code=503, detail="Graph service is not available.")
    return _graph_service


@app.get("/")
async def root():
    return {"message": "WikiTree Explorer API", "version": __version__}


@app.get("/health")
async def health():
    """Health check endpoint."""
    status = "healthy" if _graph_service is not None else "degraded"
    return {"status": status}


@app.get("/api/cache/stats")
async def cache_stats():
    """Sizes and hit counts of the shared entity cache."""
    if _entity_cache is None:
        raise HTTPException(status_code=503, detail="Entity cache is not available.")
    return _entity_cache.stats()


@app.post("/api/graph", response_model=RenderGraph)
@limiter.limit(_config.api.rate_limit)
async def build_graph(request: Request, body: GraphBuildRequest):
    """Build a sampled hierarchy graph for the given roots and highlights."""
    service = _ensure_service_available()

    try:
        sampling = service.sampling.with_overrides(
            sample_rate_percent=body.sample_rate_percent,
            sample_count_threshold=body.sample_count_threshold,
            min_nodes_per_level=body.min_nodes_per_level,
            max_nodes_per_level=body.max_nodes_per_level,
        )
    except ConfigError as exc:
        raise HTTPException(status_code=422, detail=str(exc))

    graph_request = GraphRequest(
        upward=body.upward,
        downward=body.downward,
        highlights=body.highlights,
        sampling=sampling,
        seed=body.seed,
    )
    try:
        return await service.build(graph_request)
    except Exception:  # noqa: BLE001
        logger.exception("Error building hierarchy graph for %s", body.model_dump())
        raise HTTPException(status_code=500, detail="Internal server error")


@app.get("/api/graph/latest", response_model=RenderGraph)
async def latest_graph():
    """Return the most recently published (non-stale) graph."""
    service = _ensure_service_available()
    if service.latest is None:
        raise HTTPException(status_code=404, detail="No graph has been built yet.")
    return service.latest


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
