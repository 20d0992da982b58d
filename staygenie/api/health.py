# api/health.py
"""
Health check endpoint
"""

from datetime import datetime

from fastapi import APIRouter, Depends

from .. import __version__
from ..agents.search_pipeline import SearchPipeline, get_search_pipeline
from ..config import settings


router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(pipeline: SearchPipeline = Depends(get_search_pipeline)):
    """Service status and the backends in use"""
    llm = getattr(pipeline.enricher, "llm", None)
    return {
        "status": "healthy",
        "service": "staygenie-discovery",
        "version": __version__,
        "components": {
            "hotel_provider": getattr(pipeline.provider, "name", "unknown"),
            "llm": llm.provider if llm is not None else "disabled",
            "search_store": pipeline.store.backend if pipeline.store is not None else "disabled",
        },
        "settings": {
            "enrichment_concurrency": pipeline.concurrency,
            "session_deadline_seconds": pipeline.deadline_seconds,
            "environment": settings.API_ENV,
        },
        "timestamp": datetime.now().isoformat()
    }
