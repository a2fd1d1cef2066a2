"""AskAussie API application: constitution Q&A with streamed answers.

Run with ``uvicorn askaussie.main:app`` from the backend directory.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from askaussie.api.errors import register_exception_handlers
from askaussie.api.router import api_router
from askaussie.core.config import get_settings
from askaussie.knowledge.retriever import get_knowledge_retriever
from askaussie.observability import (
    RequestLoggingMiddleware,
    configure_logging,
    get_metrics_backend,
    setup_tracing,
)

settings = get_settings()
configure_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Load the constitution corpus before the first request arrives."""
    await get_knowledge_retriever().store.load()
    yield


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    lifespan=lifespan,
)

metrics_backend = get_metrics_backend()

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=False,
    allow_methods=["GET", "POST"],
    allow_headers=["*"],
    expose_headers=["X-Relevant-Sections", "X-Request-ID"],
)

app.add_middleware(RequestLoggingMiddleware, metrics=metrics_backend)
setup_tracing(app, settings)
register_exception_handlers(app)

app.include_router(api_router, prefix=settings.api_prefix)


@app.get("/health")
async def health_check() -> dict[str, Any]:
    """Liveness plus the number of loaded constitution sections."""
    retriever = get_knowledge_retriever()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "corpus_sections": retriever.section_count,
    }


@app.get("/metrics", include_in_schema=False)
async def metrics_endpoint() -> PlainTextResponse:
    """Metrics in Prometheus text exposition format."""
    return PlainTextResponse(metrics_backend.render_prometheus())
