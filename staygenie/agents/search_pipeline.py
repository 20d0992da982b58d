# agents/search_pipeline.py
"""
Search Pipeline
Wires resolver, matcher, enricher and store, and exposes the three
ways a client can run a search:
- stream: progressive events (tier 1)
- two-stage: both stages awaited, one response (tier 2)
- legacy: stage 1 only (tier 3)
plus stage 2 alone for a given set of hotels.
"""

import asyncio
import uuid
from functools import lru_cache
from typing import Any, AsyncIterator, Dict, List, Optional
from loguru import logger

from ..config import settings
from ..errors import NoCandidates
from ..interfaces.hotel_provider import HotelProvider, create_hotel_provider
from ..interfaces.search_store import SearchStore
from ..llm.insight_enricher import InsightEnricher, build_fallback_narrative
from ..llm.llm_client import LLMClient
from ..llm.query_resolver import QueryResolver
from ..schemas.search_schemas import (
    EnrichmentResult, HotelPayload, InsightsResponse, LegacySearchResponse,
    MatchResult, StoredSearch, TwoStageResponse,
)
from ..utils.step_timer import StepTimer
from .candidate_matcher import CandidateMatcher
from .stream_coordinator import StreamCoordinator


class SearchPipeline:
    """Entry point used by the API layer"""

    def __init__(
        self,
        resolver,
        matcher,
        enricher,
        store: Optional[SearchStore] = None,
        provider: Optional[HotelProvider] = None,
        concurrency: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
    ):
        self.resolver = resolver
        self.matcher = matcher
        self.enricher = enricher
        self.store = store
        self.provider = provider
        self.concurrency = concurrency or settings.ENRICHMENT_CONCURRENCY
        self.deadline_seconds = deadline_seconds or settings.SESSION_DEADLINE_SECONDS
        self.coordinator = StreamCoordinator(
            resolver, matcher, enricher, store=store,
            concurrency=self.concurrency, deadline_seconds=self.deadline_seconds,
        )

    # ============================================
    # Tier 1: stream
    # ============================================

    def stream(self, query: str, overrides: Optional[Dict[str, Any]] = None) -> AsyncIterator[Any]:
        return self.coordinator.stream(query, overrides)

    # ============================================
    # Tier 2: two-stage, awaited
    # ============================================

    async def search_two_stage(self, query: str, overrides: Optional[Dict[str, Any]] = None) -> TwoStageResponse:
        """
        Run both stages and return every hotel with its narrative.
        Hotels whose enrichment misses the deadline get fallback narrative.

        Raises:
            ResolutionFailure, NoCandidates
        """
        timer = StepTimer("two-stage")
        search_id = uuid.uuid4().hex

        with timer.step("parse_query"):
            params = await self.resolver.resolve(query, overrides)
        with timer.step("match_hotels"):
            matches = await self.matcher.match(params)
        if not matches:
            raise NoCandidates(f"No hotels matched in {params.city_name}", reason="empty")

        with timer.step("ai_insights"):
            enrichments = await self._enrich_all(matches, query)

        hotels = []
        for match in matches:
            result = enrichments.get(match.hotel_id)
            narrative = result.narrative if result else build_fallback_narrative(match, query)
            hotels.append(HotelPayload.from_match(match, narrative))

        await self._save(search_id, query, params, hotels, len(enrichments))
        report = timer.report()
        logger.info(f"Two-stage search {search_id[:8]}: {len(hotels)} hotels in {report.total_time_ms:.0f}ms")

        return TwoStageResponse(
            search_id=search_id,
            search_params=params,
            hotels=hotels,
            matched_hotels_count=len(matches),
            enhanced_hotels_count=len(enrichments),
            performance=report,
        )

    # ============================================
    # Tier 3: legacy, stage 1 only
    # ============================================

    async def search_legacy(self, query: str, overrides: Optional[Dict[str, Any]] = None) -> LegacySearchResponse:
        search_id = uuid.uuid4().hex
        params = await self.resolver.resolve(query, overrides)
        matches = await self.matcher.match(params)
        if not matches:
            raise NoCandidates(f"No hotels matched in {params.city_name}", reason="empty")

        hotels = [HotelPayload.from_match(match) for match in matches]
        await self._save(search_id, query, params, hotels, 0)
        logger.info(f"Legacy search {search_id[:8]}: {len(hotels)} hotels")

        return LegacySearchResponse(
            search_id=search_id,
            search_params=params,
            hotels=hotels,
            total_hotels=len(hotels),
        )

    # ============================================
    # Stage 2 alone
    # ============================================

    async def generate_insights(self, matches: List[MatchResult], query: str) -> InsightsResponse:
        enrichments = await self._enrich_all(matches, query)
        insights = []
        for match in matches:
            result = enrichments.get(match.hotel_id) or EnrichmentResult(
                hotel_id=match.hotel_id,
                narrative=build_fallback_narrative(match, query),
                is_fallback=True,
            )
            insights.append(result)
        return InsightsResponse(
            insights=insights,
            total_hotels=len(insights),
            fallback_count=sum(1 for i in insights if i.is_fallback),
        )

    async def _enrich_all(self, matches: List[MatchResult], query: str) -> Dict[str, EnrichmentResult]:
        """Enrich concurrently under the pool bound; drop what misses the deadline"""
        semaphore = asyncio.Semaphore(max(self.concurrency, 1))

        async def worker(match: MatchResult) -> EnrichmentResult:
            async with semaphore:
                return await self.enricher.enrich(match, query)

        tasks = [asyncio.create_task(worker(m)) for m in matches]
        done, pending = await asyncio.wait(tasks, timeout=self.deadline_seconds)
        for task in pending:
            task.cancel()
        if pending:
            logger.warning(f"{len(pending)} enrichments missed the {self.deadline_seconds}s deadline")

        results: Dict[str, EnrichmentResult] = {}
        for task in done:
            if task.exception() is not None:
                logger.warning(f"Enrichment worker failed: {task.exception()}")
                continue
            result = task.result()
            results[result.hotel_id] = result
        return results

    # ============================================
    # Stored searches
    # ============================================

    async def _save(self, search_id: str, query: str, params, hotels: List[HotelPayload], enhanced: int) -> None:
        if self.store is None:
            return
        await asyncio.to_thread(self.store.save, StoredSearch(
            search_id=search_id,
            query=query,
            search_params=params,
            hotels=hotels,
            total_hotels=len(hotels),
            enhanced_hotels=enhanced,
        ))

    def get_search(self, search_id: str) -> Optional[StoredSearch]:
        if self.store is None:
            return None
        return self.store.get(search_id)

    async def close(self) -> None:
        if self.provider is not None:
            await self.provider.close()


def build_search_pipeline() -> SearchPipeline:
    """Pipeline wired from settings"""
    llm = None if settings.USE_STUB_LLM else LLMClient()
    provider = create_hotel_provider()
    return SearchPipeline(
        resolver=QueryResolver(llm=llm),
        matcher=CandidateMatcher(provider),
        enricher=InsightEnricher(llm=llm),
        store=SearchStore(),
        provider=provider,
    )


@lru_cache()
def get_search_pipeline() -> SearchPipeline:
    """FastAPI dependency; one pipeline per process"""
    return build_search_pipeline()
