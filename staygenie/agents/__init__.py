# agents/__init__.py
"""
Pipeline Orchestration Package

- candidate_matcher: Stage 1 retrieval, filtering and ranking
- stream_coordinator: Per-session state machine and event sink
- search_pipeline: Wiring plus the stream / two-stage / legacy operations
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .candidate_matcher import CandidateMatcher
    from .stream_coordinator import StreamCoordinator, SessionRun
    from .search_pipeline import SearchPipeline, build_search_pipeline, get_search_pipeline

__all__ = [
    "CandidateMatcher",
    "StreamCoordinator",
    "SessionRun",
    "SearchPipeline",
    "build_search_pipeline",
    "get_search_pipeline",
]
