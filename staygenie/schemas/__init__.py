# schemas/__init__.py
"""
Pydantic Schemas Package

Contains all Pydantic v2 models for:
- Search parameters and sessions
- Stage 1 matches and stage 2 narratives
- Stream events and API requests/responses
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .search_schemas import (
        SearchParams, SearchSession, PriceSummary, BasicFields, MatchResult,
        NarrativeFields, EnrichmentResult, PLACEHOLDER_NARRATIVE, HotelPayload,
        StreamEvent, CoordinatorState,
    )

__all__ = [
    "SearchParams",
    "SearchSession",
    "PriceSummary",
    "BasicFields",
    "MatchResult",
    "NarrativeFields",
    "EnrichmentResult",
    "PLACEHOLDER_NARRATIVE",
    "HotelPayload",
    "StreamEvent",
    "CoordinatorState",
]
