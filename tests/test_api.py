"""HTTP surface: SSE stream, synchronous fallbacks, error bodies."""

from staygenie.agents.search_pipeline import get_search_pipeline
from staygenie.client.sse import SSEDecoder
from staygenie.llm.query_resolver import QueryResolver

from .fakes import FakeMatcher, FakeResolver, build_pipeline, default_matches


def _use(app, pipeline):
    app.dependency_overrides[get_search_pipeline] = lambda: pipeline


def _decode(text):
    decoder = SSEDecoder()
    events = []
    for line in text.split("\n"):
        event = decoder.feed(line)
        if event is not None:
            events.append(event)
    return events


async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "healthy"
    assert body["components"]["llm"] == "disabled"
    assert body["components"]["search_store"] == "memory"


async def test_root_lists_endpoints(client):
    response = await client.get("/")
    assert "/api/hotels/search-and-match/stream" in response.json()["endpoints"]


# ============================================
# Stream
# ============================================

async def test_stream_frames(client):
    response = await client.get("/api/hotels/search-and-match/stream", params={"userInput": "romantic Paris"})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert response.headers["cache-control"] == "no-cache"
    assert response.text.startswith("data: {")

    events = _decode(response.text)
    assert events[0].type == "connected"
    assert events[-1].type == "complete"
    assert len({e.search_id for e in events}) == 1

    first_found = next(line for line in response.text.split("\n") if '"hotel_found"' in line)
    assert '"hotelIndex":1' in first_found
    assert '"matchScore":95.0' in first_found


async def test_stream_failure_is_an_error_event(client, app_with_pipeline):
    _use(app_with_pipeline, build_pipeline(resolver=FakeResolver(fail=True)))
    response = await client.get("/api/hotels/search-and-match/stream", params={"userInput": "???"})

    assert response.status_code == 200
    events = _decode(response.text)
    assert events[-1].type == "error"
    assert events[-1].code == "resolution_failure"


async def test_stream_requires_user_input(client):
    response = await client.get("/api/hotels/search-and-match/stream")
    assert response.status_code == 422


async def test_stream_empty_user_input_ends_with_resolution_failure(client, app_with_pipeline):
    _use(app_with_pipeline, build_pipeline(resolver=QueryResolver()))
    response = await client.get("/api/hotels/search-and-match/stream", params={"userInput": ""})

    assert response.status_code == 200
    events = _decode(response.text)
    assert events[0].type == "connected"
    assert events[-1].type == "error"
    assert events[-1].code == "resolution_failure"


# ============================================
# Synchronous tiers
# ============================================

async def test_two_stage_returns_enriched_hotels_and_timings(client, pipeline):
    response = await client.post("/api/hotels/search-and-match", json={"userInput": "romantic Paris", "adults": 2})

    assert response.status_code == 200
    body = response.json()
    assert [h["matchScore"] for h in body["hotels"]] == [95, 82, 70]
    assert all(h["narrative"]["whyItMatches"] for h in body["hotels"])
    assert body["matchedHotelsCount"] == 3
    assert body["enhancedHotelsCount"] == 3
    assert [s["step"] for s in body["performance"]["steps"]] == ["parse_query", "match_hotels", "ai_insights"]
    assert pipeline.get_search(body["searchId"]) is not None


async def test_two_stage_resolution_failure_is_400(client, app_with_pipeline):
    _use(app_with_pipeline, build_pipeline(resolver=FakeResolver(fail=True)))
    response = await client.post("/api/hotels/search-and-match", json={"userInput": "???"})

    assert response.status_code == 400
    assert response.json()["error"] == "resolution_failure"


async def test_two_stage_no_candidates_is_404(client, app_with_pipeline):
    _use(app_with_pipeline, build_pipeline(matcher=FakeMatcher(matches=[])))
    response = await client.post("/api/hotels/search-and-match", json={"userInput": "Paris"})

    assert response.status_code == 404
    assert response.json()["error"] == "no_candidates"


async def test_unexpected_failure_is_500(client, app_with_pipeline):
    _use(app_with_pipeline, build_pipeline(matcher=FakeMatcher(error=RuntimeError("db down"))))
    response = await client.post("/api/hotels/search", json={"userInput": "Paris"})

    assert response.status_code == 500
    assert response.json()["error"] == "internal_error"
    assert "db down" not in response.text


async def test_legacy_search_has_no_narratives(client):
    response = await client.post("/api/hotels/search", json={"userInput": "Paris"})

    assert response.status_code == 200
    body = response.json()
    assert body["totalHotels"] == 3
    assert all(h["narrative"] is None for h in body["hotels"])


async def test_empty_user_input_is_a_resolution_failure(client, app_with_pipeline):
    _use(app_with_pipeline, build_pipeline(resolver=QueryResolver()))
    response = await client.post("/api/hotels/search", json={"userInput": ""})

    assert response.status_code == 400
    assert response.json()["error"] == "resolution_failure"


# ============================================
# Follow-ups
# ============================================

async def test_ai_insights_for_given_hotels(client):
    hotels = [m.to_wire() for m in default_matches()[:2]]
    response = await client.post("/api/hotels/ai-insights", json={"hotels": hotels, "userInput": "romantic"})

    assert response.status_code == 200
    body = response.json()
    assert body["totalHotels"] == 2
    assert body["fallbackCount"] == 0
    assert [i["hotelId"] for i in body["insights"]] == ["h1", "h2"]


async def test_stored_search_round_trip(client):
    created = (await client.post("/api/hotels/search-and-match", json={"userInput": "Paris"})).json()

    response = await client.get(f"/api/hotels/search/{created['searchId']}")
    assert response.status_code == 200
    assert response.json()["enhancedHotels"] == 3

    missing = await client.get("/api/hotels/search/does-not-exist")
    assert missing.status_code == 404
