# client/search_client.py
"""
Hotel search client with a fallback ladder.

Tiers, tried in order:
1. StreamingTier  - GET  /api/hotels/search-and-match/stream (SSE)
2. TwoStageTier   - POST /api/hotels/search-and-match
3. LegacyTier     - POST /api/hotels/search

Transport problems (timeout, network, malformed data, 5xx) move to the
next tier. "Could not understand" and "no hotels" stop the ladder: another
tier would give the same answer.

One search is active at a time. Starting a new one cancels the previous
session's network task and its outcome becomes "superseded". cancel()
does the same without a replacement and the outcome is "cancelled".
"""

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger
from pydantic import ValidationError

from ..config import settings
from ..errors import (
    TERMINAL_CODES, DiscoveryError, NoCandidates, ResolutionFailure, SessionSupersededFailure,
    TransportFailure, error_from_code,
)
from ..schemas.search_schemas import TERMINAL_EVENT_TYPES, LegacySearchResponse, StoredSearch, TwoStageResponse
from .reconciler import DisplayHotel, HotelListReconciler
from .sse import SSEDecoder


STILL_SEARCHING = "Still searching..."

FAILURE_MESSAGES = {
    "timeout": "The search is taking too long. Please check your connection and try again.",
    "network": "No internet connection. Please check your network and try again.",
    NoCandidates.code: "No hotels found for your search. Try different dates or a nearby city.",
    ResolutionFailure.code: "We couldn't understand that search. Try including a city, e.g. 'Paris next weekend'.",
}
GENERIC_FAILURE = "Something went wrong while searching. Please try again."


def failure_message(error: Optional[DiscoveryError]) -> str:
    """User-facing message naming the likely cause"""
    if isinstance(error, TransportFailure):
        return FAILURE_MESSAGES.get(error.kind, GENERIC_FAILURE)
    if error is not None:
        return FAILURE_MESSAGES.get(error.code, GENERIC_FAILURE)
    return GENERIC_FAILURE


@dataclass
class SearchOutcome:
    status: str                       # complete | empty | failed | superseded | cancelled
    session_id: str
    tier: Optional[str] = None
    search_id: Optional[str] = None
    hotels: List[DisplayHotel] = field(default_factory=list)
    message: str = ""
    error: Optional[DiscoveryError] = None


def _request_body(query: str, overrides: Dict[str, Any]) -> Dict[str, Any]:
    body = {"userInput": query}
    body.update({k: v for k, v in overrides.items() if v is not None})
    return body


async def _post_json(client: "HotelSearchClient", path: str, body: Dict[str, Any]) -> Dict[str, Any]:
    """POST with typed failures: 400/404 carry the server's error code, 5xx is a transport failure"""
    try:
        response = await asyncio.wait_for(
            client.http.post(path, json=body, timeout=client.request_timeout),
            timeout=client.request_timeout,
        )
    except (asyncio.TimeoutError, httpx.TimeoutException) as e:
        raise TransportFailure("timeout", f"POST {path} timed out") from e
    except httpx.HTTPError as e:
        raise TransportFailure("network", f"POST {path} failed: {e}") from e

    if response.status_code in (400, 404):
        try:
            payload = response.json()
        except ValueError:
            payload = {}
        code = payload.get("error") if isinstance(payload, dict) else None
        if code in TERMINAL_CODES:
            raise error_from_code(code, payload.get("message", ""))
    if response.status_code >= 400:
        raise TransportFailure("server_error", f"POST {path} returned {response.status_code}", response.status_code)

    try:
        return response.json()
    except ValueError as e:
        raise TransportFailure("malformed", f"POST {path} returned invalid JSON") from e


# ============================================
# Tiers
# ============================================

class SearchTier:
    name = "base"

    async def run(self, client: "HotelSearchClient", session_id: str, query: str, overrides: Dict[str, Any]) -> None:
        raise NotImplementedError


class StreamingTier(SearchTier):
    """Progressive results over Server-Sent Events"""

    name = "stream"
    path = "/api/hotels/search-and-match/stream"

    async def run(self, client: "HotelSearchClient", session_id: str, query: str, overrides: Dict[str, Any]) -> None:
        params = {"userInput": query, **{k: v for k, v in overrides.items() if v is not None}}
        request = client.http.build_request("GET", client.url(self.path), params=params,
                                            headers={"Accept": "text/event-stream"})
        # Connect timeout until `connected`; then the session timeout, armed on `connected`
        deadline = time.monotonic() + client.connect_timeout
        connected = False

        try:
            response = await asyncio.wait_for(client.http.send(request, stream=True), timeout=client.connect_timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            raise TransportFailure("timeout", "Stream did not open in time") from e
        except httpx.HTTPError as e:
            raise TransportFailure("network", f"Stream request failed: {e}") from e

        try:
            if response.status_code != 200:
                raise TransportFailure("server_error", f"Stream returned {response.status_code}", response.status_code)

            decoder = SSEDecoder()
            lines = response.aiter_lines()
            while True:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TransportFailure("timeout", "Stream timed out")
                try:
                    line = await asyncio.wait_for(lines.__anext__(), timeout=remaining)
                except StopAsyncIteration:
                    line = None
                except asyncio.TimeoutError as e:
                    raise TransportFailure("timeout", "Stream timed out") from e
                except httpx.TimeoutException as e:
                    raise TransportFailure("timeout", "Stream read timed out") from e
                except httpx.HTTPError as e:
                    raise TransportFailure("network", f"Stream broke: {e}") from e

                event = decoder.feed("" if line is None else line)
                if event is not None:
                    client.reconciler.apply(session_id, event)
                    if event.type == "connected" and not connected:
                        connected = True
                        deadline = time.monotonic() + client.session_timeout
                    elif event.type in TERMINAL_EVENT_TYPES:
                        if event.type == "error":
                            raise error_from_code(event.code, event.message)
                        return
                if line is None:
                    raise TransportFailure("network", "Stream ended before completion")
        finally:
            await response.aclose()


class TwoStageTier(SearchTier):
    """Both stages awaited server-side, one response"""

    name = "two_stage"
    path = "/api/hotels/search-and-match"

    async def run(self, client: "HotelSearchClient", session_id: str, query: str, overrides: Dict[str, Any]) -> None:
        payload = await _post_json(client, client.url(self.path), _request_body(query, overrides))
        try:
            result = TwoStageResponse.model_validate(payload)
        except ValidationError as e:
            raise TransportFailure("malformed", "Unexpected two-stage response") from e
        client.reconciler.load_snapshot(session_id, result.hotels, result.search_id)


class LegacyTier(SearchTier):
    """Stage 1 only"""

    name = "legacy"
    path = "/api/hotels/search"

    async def run(self, client: "HotelSearchClient", session_id: str, query: str, overrides: Dict[str, Any]) -> None:
        payload = await _post_json(client, client.url(self.path), _request_body(query, overrides))
        try:
            result = LegacySearchResponse.model_validate(payload)
        except ValidationError as e:
            raise TransportFailure("malformed", "Unexpected legacy response") from e
        client.reconciler.load_snapshot(session_id, result.hotels, result.search_id)


# ============================================
# Client
# ============================================

class HotelSearchClient:
    """Owns the active search session and walks the fallback ladder"""

    def __init__(
        self,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        reconciler: Optional[HotelListReconciler] = None,
        tiers: Optional[List[SearchTier]] = None,
        connect_timeout: Optional[float] = None,
        session_timeout: Optional[float] = None,
        request_timeout: Optional[float] = None,
        placeholder_count: Optional[int] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self._owns_http = http_client is None
        self.http = http_client or httpx.AsyncClient()
        self.reconciler = reconciler or HotelListReconciler()
        self.tiers: List[SearchTier] = tiers if tiers is not None else [StreamingTier(), TwoStageTier(), LegacyTier()]
        self.connect_timeout = connect_timeout or settings.CLIENT_CONNECT_TIMEOUT
        self.session_timeout = session_timeout or settings.CLIENT_SESSION_TIMEOUT
        self.request_timeout = request_timeout or settings.CLIENT_REQUEST_TIMEOUT
        self.placeholder_count = settings.PLACEHOLDER_COUNT if placeholder_count is None else placeholder_count

        self.session_id: Optional[str] = None
        self._task: Optional[asyncio.Task] = None

    def url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def search(self, query: str, **overrides: Any) -> SearchOutcome:
        """
        Run one search through the ladder. Supersedes any search in flight.

        Returns:
            SearchOutcome with status complete | empty | failed | superseded | cancelled
        """
        session_id = uuid.uuid4().hex
        previous = self._task
        self.session_id = session_id
        if previous is not None and not previous.done():
            logger.info("New search supersedes the one in flight")
            previous.cancel()

        self.reconciler.begin(session_id, self.placeholder_count, tier=self.tiers[0].name if self.tiers else None)
        if not (query or "").strip():
            # No tier can resolve an empty query
            return self._fail(session_id, None, ResolutionFailure("Search query is empty"))

        task = asyncio.create_task(self._run_ladder(session_id, query, overrides), name=f"search-{session_id[:8]}")
        self._task = task
        try:
            return await task
        except asyncio.CancelledError:
            if self.session_id != session_id:
                if self.session_id is None:
                    status, message = "cancelled", "Search cancelled"
                else:
                    status, message = "superseded", "Superseded by a newer search"
                return SearchOutcome(status=status, session_id=session_id, message=message,
                                     error=SessionSupersededFailure(message))
            task.cancel()
            raise

    def cancel(self) -> None:
        """
        Abandon the active search (the user navigated away).
        Stops its network task and discards its working set; its search()
        call returns a "cancelled" outcome.
        """
        session_id, self.session_id = self.session_id, None
        if self._task is not None and not self._task.done():
            logger.info("Active search cancelled")
            self._task.cancel()
        if session_id is not None:
            self.reconciler.discard(session_id)

    async def _run_ladder(self, session_id: str, query: str, overrides: Dict[str, Any]) -> SearchOutcome:
        last_error: Optional[DiscoveryError] = None
        for index, tier in enumerate(self.tiers):
            if index > 0:
                self.reconciler.begin(session_id, self.placeholder_count, tier=tier.name)
                self.reconciler.set_status(session_id, STILL_SEARCHING)
            logger.info(f"[{session_id[:8]}] Trying tier '{tier.name}'")
            try:
                await tier.run(self, session_id, query, overrides)
                return self._finish(session_id, tier.name)
            except TransportFailure as e:
                logger.warning(f"[{session_id[:8]}] Tier '{tier.name}' failed ({e.kind}): {e.message}")
                last_error = e
            except DiscoveryError as e:
                if e.code in TERMINAL_CODES:
                    return self._fail(session_id, tier.name, e)
                logger.warning(f"[{session_id[:8]}] Tier '{tier.name}' reported {e.code}: {e.message}")
                last_error = e
        return self._fail(session_id, self.tiers[-1].name if self.tiers else None, last_error)

    def _finish(self, session_id: str, tier: str) -> SearchOutcome:
        hotels = self.reconciler.visible()
        if not hotels:
            return self._fail(session_id, tier, NoCandidates("No hotels returned"), status="empty")
        logger.info(f"[{session_id[:8]}] Search complete via '{tier}': {len(hotels)} hotels")
        return SearchOutcome(
            status="complete",
            session_id=session_id,
            tier=tier,
            search_id=self.reconciler.search_id,
            hotels=hotels,
            message=self.reconciler.status,
        )

    def _fail(self, session_id: str, tier: Optional[str], error: Optional[DiscoveryError],
              status: Optional[str] = None) -> SearchOutcome:
        message = failure_message(error)
        self.reconciler.fail(session_id, error or DiscoveryError(message), message)
        if status is None:
            status = "empty" if isinstance(error, NoCandidates) else "failed"
        logger.warning(f"[{session_id[:8]}] Search ended {status}: {message}")
        return SearchOutcome(status=status, session_id=session_id, tier=tier, message=message, error=error)

    async def refresh(self) -> Optional[List[DisplayHotel]]:
        """Reload the finished search from the server (manual refresh)"""
        session_id, search_id = self.session_id, self.reconciler.search_id
        if session_id is None or search_id is None:
            return None
        try:
            response = await self.http.get(self.url(f"/api/hotels/search/{search_id}"), timeout=self.request_timeout)
        except httpx.HTTPError as e:
            raise TransportFailure("network", f"Refresh failed: {e}") from e
        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise TransportFailure("server_error", f"Refresh returned {response.status_code}", response.status_code)
        try:
            stored = StoredSearch.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            raise TransportFailure("malformed", "Unexpected stored search") from e
        if not self.reconciler.load_snapshot(session_id, stored.hotels, stored.search_id):
            return None
        return self.reconciler.visible()

    async def aclose(self) -> None:
        self.cancel()
        if self._owns_http:
            await self.http.aclose()
