# agents/stream_coordinator.py
"""
Stream Coordinator
Runs one search session and yields its events in order:

    connected -> progress* -> hotel_found* / hotel_enhanced* -> complete | error

States: STARTING -> MATCHING -> STREAMING -> DRAINING -> COMPLETE,
ERRORED reachable from any of them.

The session's async generator is the only place events are produced.
Enrichment workers run as tasks behind a semaphore and hand results back
through a queue; the generator interleaves them with hotel_found events.
Closing the generator cancels every worker.
"""

import asyncio
import time
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple
from loguru import logger

from ..config import settings
from ..errors import DiscoveryError, NoCandidates
from ..interfaces.search_store import SearchStore
from ..schemas.search_schemas import (
    CompleteEvent, ConnectedEvent, CoordinatorState, EnrichmentResult, ErrorEvent,
    HotelEnhancedEvent, HotelFoundEvent, HotelPayload, MatchResult, ProgressEvent,
    SearchSession, StoredSearch,
)


TOTAL_STEPS = 3


class SessionRun:
    """State for one streamed search. Never shared between sessions."""

    def __init__(
        self,
        session: SearchSession,
        resolver,
        matcher,
        enricher,
        store: Optional[SearchStore] = None,
        overrides: Optional[Dict[str, Any]] = None,
        concurrency: int = 4,
        deadline_seconds: float = 45.0,
    ):
        self.session = session
        self.resolver = resolver
        self.matcher = matcher
        self.enricher = enricher
        self.store = store
        self.overrides = overrides or {}
        self.deadline_seconds = deadline_seconds
        self.state = CoordinatorState.STARTING

        self.matches: List[MatchResult] = []
        self.enrichments: Dict[str, EnrichmentResult] = {}

        self._deadline = time.monotonic() + deadline_seconds
        self._semaphore = asyncio.Semaphore(max(concurrency, 1))
        self._queue: "asyncio.Queue[Tuple[MatchResult, Optional[EnrichmentResult]]]" = asyncio.Queue()
        self._tasks: Dict[str, asyncio.Task] = {}
        self._pending: set = set()

    @property
    def search_id(self) -> str:
        return self.session.session_id

    def _transition(self, state: CoordinatorState) -> None:
        logger.debug(f"[{self.search_id[:8]}] {self.state.value} -> {state.value}")
        self.state = state

    async def events(self) -> AsyncIterator[Any]:
        """Yield the session's events. Nothing follows complete or error."""
        sid = self.search_id
        yield ConnectedEvent(search_id=sid)

        try:
            # ============================================
            # MATCHING
            # ============================================
            self._transition(CoordinatorState.MATCHING)
            yield ProgressEvent(step=1, total_steps=TOTAL_STEPS, message="Understanding your search...", search_id=sid)
            params = await self.resolver.resolve(self.session.query, self.overrides)
            self.session.resolved_params = params

            yield ProgressEvent(step=2, total_steps=TOTAL_STEPS,
                                message=f"Searching hotels in {params.city_name}...", search_id=sid)
            matches = await self.matcher.match(params)
            if not matches:
                raise NoCandidates(f"No hotels matched in {params.city_name}", reason="empty")
            self.matches = list(matches)
            self.session.set_expected_count(len(self.matches))

            yield ProgressEvent(step=3, total_steps=TOTAL_STEPS,
                                message=f"Found {len(self.matches)} matches, generating insights...", search_id=sid)

            # ============================================
            # STREAMING
            # ============================================
            self._transition(CoordinatorState.STREAMING)
            for match in self.matches:
                yield HotelFoundEvent(
                    hotel=HotelPayload.from_match(match),
                    hotel_index=match.rank,
                    total_expected=self.session.expected_count,
                    search_id=sid,
                )
                self._dispatch(match)
                while not self._queue.empty():
                    event = self._accept(self._queue.get_nowait())
                    if event is not None:
                        yield event

            # ============================================
            # DRAINING
            # ============================================
            self._transition(CoordinatorState.DRAINING)
            while self._pending:
                remaining = self._deadline - time.monotonic()
                if remaining <= 0:
                    break
                try:
                    item = await asyncio.wait_for(self._queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    break
                event = self._accept(item)
                if event is not None:
                    yield event

            if self._pending:
                logger.warning(f"[{sid[:8]}] Deadline reached, dropping {len(self._pending)} unfinished enrichments")
            self._cancel_workers()

            # ============================================
            # COMPLETE
            # ============================================
            self._transition(CoordinatorState.COMPLETE)
            await self._save()
            logger.info(f"[{sid[:8]}] Stream complete: {len(self.matches)} hotels, {len(self.enrichments)} enhanced")
            yield CompleteEvent(search_id=sid, total_hotels=len(self.matches), enhanced_hotels=len(self.enrichments))

        except DiscoveryError as e:
            self._cancel_workers()
            self._transition(CoordinatorState.ERRORED)
            logger.warning(f"[{sid[:8]}] Search failed ({e.code}): {e.message}")
            yield ErrorEvent(message=e.message, code=e.code, search_id=sid)
        except Exception:
            self._cancel_workers()
            self._transition(CoordinatorState.ERRORED)
            logger.exception(f"[{sid[:8]}] Unexpected error in search stream")
            yield ErrorEvent(message="Something went wrong while searching, please try again",
                             code="internal_error", search_id=sid)
        finally:
            # Client disconnects land here through aclose()
            self._cancel_workers()

    # ============================================
    # Workers
    # ============================================

    def _dispatch(self, match: MatchResult) -> None:
        self._pending.add(match.hotel_id)
        self._tasks[match.hotel_id] = asyncio.create_task(
            self._enrich(match), name=f"enrich-{match.hotel_id}"
        )

    async def _enrich(self, match: MatchResult) -> None:
        result: Optional[EnrichmentResult] = None
        try:
            async with self._semaphore:
                result = await self.enricher.enrich(match, self.session.query)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Enrichment worker failed for {match.hotel_id}: {e}")
        await self._queue.put((match, result))

    def _accept(self, item: Tuple[MatchResult, Optional[EnrichmentResult]]) -> Optional[HotelEnhancedEvent]:
        match, result = item
        if match.hotel_id not in self._pending:
            return None
        self._pending.discard(match.hotel_id)
        self._tasks.pop(match.hotel_id, None)
        if result is None:
            return None
        self.enrichments[match.hotel_id] = result
        return HotelEnhancedEvent(
            hotel_id=match.hotel_id,
            hotel=HotelPayload.from_match(match, result.narrative),
            hotel_index=match.rank,
            search_id=self.search_id,
        )

    def _cancel_workers(self) -> None:
        for task in self._tasks.values():
            if not task.done():
                task.cancel()
        self._tasks.clear()
        self._pending.clear()

    async def _save(self) -> None:
        if self.store is None:
            return
        hotels = [
            HotelPayload.from_match(
                m, self.enrichments[m.hotel_id].narrative if m.hotel_id in self.enrichments else None
            )
            for m in self.matches
        ]
        # Store backends are blocking; keep them off the event loop
        await asyncio.to_thread(self.store.save, StoredSearch(
            search_id=self.search_id,
            query=self.session.query,
            search_params=self.session.resolved_params,
            hotels=hotels,
            total_hotels=len(self.matches),
            enhanced_hotels=len(self.enrichments),
        ))


class StreamCoordinator:
    """Creates a SessionRun per streamed search"""

    def __init__(
        self,
        resolver,
        matcher,
        enricher,
        store: Optional[SearchStore] = None,
        concurrency: Optional[int] = None,
        deadline_seconds: Optional[float] = None,
    ):
        self.resolver = resolver
        self.matcher = matcher
        self.enricher = enricher
        self.store = store
        self.concurrency = concurrency or settings.ENRICHMENT_CONCURRENCY
        self.deadline_seconds = deadline_seconds or settings.SESSION_DEADLINE_SECONDS

    def start(self, query: str, overrides: Optional[Dict[str, Any]] = None) -> SessionRun:
        session = SearchSession(query=query)
        logger.info(f"[{session.session_id[:8]}] New search session: '{query}'")
        return SessionRun(
            session,
            self.resolver,
            self.matcher,
            self.enricher,
            store=self.store,
            overrides=overrides,
            concurrency=self.concurrency,
            deadline_seconds=self.deadline_seconds,
        )

    def stream(self, query: str, overrides: Optional[Dict[str, Any]] = None) -> AsyncIterator[Any]:
        return self.start(query, overrides).events()
