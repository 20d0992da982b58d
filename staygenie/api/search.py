# api/search.py
"""
Hotel search endpoints

Streaming:
- GET  /api/hotels/search-and-match/stream  - progressive SSE search

Synchronous fallbacks:
- POST /api/hotels/search-and-match         - both stages awaited
- POST /api/hotels/search                   - stage 1 only (legacy)

Follow-ups:
- POST /api/hotels/ai-insights              - stage 2 for given hotels
- GET  /api/hotels/search/{search_id}       - stored result of a finished search
"""

import asyncio
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger

from ..agents.search_pipeline import SearchPipeline, get_search_pipeline
from ..schemas.search_schemas import (
    InsightsRequest, InsightsResponse, LegacySearchResponse, SearchRequest,
    StoredSearch, TwoStageResponse,
)
from .sse import sse_response


router = APIRouter(prefix="/api/hotels", tags=["hotels"])


def _overrides(checkin: Optional[str], checkout: Optional[str],
               adults: Optional[int], children: Optional[int]) -> Dict[str, Any]:
    return {
        key: value
        for key, value in (("checkin", checkin), ("checkout", checkout), ("adults", adults), ("children", children))
        if value is not None
    }


@router.get("/search-and-match/stream")
async def search_and_match_stream(
    user_input: str = Query(..., alias="userInput"),
    checkin: Optional[str] = Query(None),
    checkout: Optional[str] = Query(None),
    adults: Optional[int] = Query(None, ge=1),
    children: Optional[int] = Query(None, ge=0),
    pipeline: SearchPipeline = Depends(get_search_pipeline),
):
    """
    Progressive search over Server-Sent Events.

    Events: connected, progress, hotel_found, hotel_enhanced, complete | error.
    Failures after the stream opens arrive as an `error` event, never as an HTTP status.
    """
    logger.info(f"Stream search: '{user_input}'")
    events = pipeline.stream(user_input, _overrides(checkin, checkout, adults, children))
    return sse_response(events)


@router.post("/search-and-match", response_model=TwoStageResponse, response_model_by_alias=True)
async def search_and_match(request: SearchRequest, pipeline: SearchPipeline = Depends(get_search_pipeline)):
    """Both stages in one response. ResolutionFailure → 400, NoCandidates → 404."""
    logger.info(f"Two-stage search: '{request.user_input}'")
    return await pipeline.search_two_stage(
        request.user_input,
        _overrides(request.checkin, request.checkout, request.adults, request.children),
    )


@router.post("/search", response_model=LegacySearchResponse, response_model_by_alias=True)
async def legacy_search(request: SearchRequest, pipeline: SearchPipeline = Depends(get_search_pipeline)):
    """Ranked list without insights"""
    logger.info(f"Legacy search: '{request.user_input}'")
    return await pipeline.search_legacy(
        request.user_input,
        _overrides(request.checkin, request.checkout, request.adults, request.children),
    )


@router.post("/ai-insights", response_model=InsightsResponse, response_model_by_alias=True)
async def ai_insights(request: InsightsRequest, pipeline: SearchPipeline = Depends(get_search_pipeline)):
    logger.info(f"AI insights for {len(request.hotels)} hotels")
    return await pipeline.generate_insights(request.hotels, request.user_input)


@router.get("/search/{search_id}", response_model=StoredSearch, response_model_by_alias=True)
async def get_search(search_id: str, pipeline: SearchPipeline = Depends(get_search_pipeline)):
    stored = await asyncio.to_thread(pipeline.get_search, search_id)
    if stored is None:
        raise HTTPException(status_code=404, detail=f"Search {search_id} not found")
    return stored
