# main.py
"""
StayGenie Discovery Service - FastAPI Application
Progressive two-stage hotel search over Server-Sent Events.

Run: uvicorn staygenie.main:app --port 3003
"""

import sys
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from . import __version__
from .agents.search_pipeline import get_search_pipeline
from .api import health, search
from .config import settings
from .errors import DiscoveryError, NoCandidates, ResolutionFailure


# Configure logging
logger.remove()
logger.add(
    sys.stderr,
    level=settings.LOG_LEVEL.upper(),
    format="{time:YYYY-MM-DD HH:mm:ss} - {name} - {level} - {message}",
)


# ============================================
# Lifespan
# ============================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown"""
    logger.info("=" * 50)
    logger.info("StayGenie Discovery Service starting...")
    logger.info("=" * 50)
    logger.info(f"  Enrichment concurrency: {settings.ENRICHMENT_CONCURRENCY}")
    logger.info(f"  Session deadline: {settings.SESSION_DEADLINE_SECONDS}s")
    logger.info(f"  Hotel provider: {'catalogue' if settings.USE_STUB_PROVIDERS else 'LiteAPI'}")
    logger.info(f"  LLM: {'disabled' if settings.USE_STUB_LLM else ('OpenAI' if settings.use_openai else 'Ollama')}")

    yield

    if get_search_pipeline.cache_info().currsize:
        await get_search_pipeline().close()
    logger.info("StayGenie Discovery Service shutdown complete")


# ============================================
# FastAPI Application
# ============================================

app = FastAPI(
    title="StayGenie Discovery Service",
    description="Progressive two-stage hotel discovery: ranked matches first, AI insights streamed in place.",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(search.router)
app.include_router(health.router)


# ============================================
# Error handling
# ============================================

def status_for(error: DiscoveryError) -> int:
    if isinstance(error, ResolutionFailure):
        return 400
    if isinstance(error, NoCandidates):
        return 404
    return 500


@app.exception_handler(DiscoveryError)
async def discovery_error_handler(request: Request, exc: DiscoveryError):
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {status_code} ({exc.code})")
    return JSONResponse(status_code=status_code, content={"error": exc.code, "message": exc.message})


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=500,
        content={"error": "internal_error", "message": "Something went wrong, please try again"},
    )


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "service": "StayGenie Discovery Service",
        "version": __version__,
        "status": "running",
        "docs": "/docs",
        "endpoints": [
            "/health",
            "/api/hotels/search-and-match/stream",
            "/api/hotels/search-and-match",
            "/api/hotels/search",
            "/api/hotels/ai-insights",
            "/api/hotels/search/{search_id}"
        ]
    }


# ============================================
# Main
# ============================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "staygenie.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.API_ENV == "development"
    )
