"""Event ordering, terminality, deadline and cancellation of a streamed session."""

import asyncio
import time

import pytest

from staygenie.agents.stream_coordinator import StreamCoordinator
from staygenie.errors import NoCandidates
from staygenie.interfaces.search_store import SearchStore
from staygenie.schemas.search_schemas import CoordinatorState, SearchSession, StoredSearch

from .fakes import FakeEnricher, FakeMatcher, FakeResolver, collect, make_match


def _coordinator(resolver=None, matcher=None, enricher=None, concurrency=4, deadline=5.0, store=None):
    return StreamCoordinator(
        resolver or FakeResolver(),
        matcher or FakeMatcher(),
        enricher or FakeEnricher(),
        store=store,
        concurrency=concurrency,
        deadline_seconds=deadline,
    )


async def test_happy_path_event_sequence():
    store = SearchStore(use_redis=False)
    run = _coordinator(store=store).start("romantic Paris")
    events = await collect(run.events())
    types = [e.type for e in events]

    assert types[0] == "connected"
    assert types[1:4] == ["progress", "progress", "progress"]
    assert types[-1] == "complete"
    assert types.count("hotel_found") == 3
    assert types.count("hotel_enhanced") == 3
    assert run.state == CoordinatorState.COMPLETE

    search_ids = {e.search_id for e in events}
    assert search_ids == {run.search_id}

    found = [e for e in events if e.type == "hotel_found"]
    assert [e.hotel.rank for e in found] == [1, 2, 3]
    assert [e.hotel_index for e in found] == [1, 2, 3]
    assert all(e.total_expected == 3 for e in found)
    assert all(e.hotel.narrative is None for e in found)

    # Every hotel_enhanced comes after the hotel_found for the same hotel
    for e in events:
        if e.type == "hotel_enhanced":
            found_at = next(i for i, f in enumerate(events) if f.type == "hotel_found" and f.hotel.hotel_id == e.hotel_id)
            assert found_at < events.index(e)

    complete = events[-1]
    assert (complete.total_hotels, complete.enhanced_hotels) == (3, 3)
    stored = store.get(run.search_id)
    assert stored is not None and stored.enhanced_hotels == 3


async def test_resolution_failure_is_terminal_error():
    run = _coordinator(resolver=FakeResolver(fail=True)).start("???")
    events = await collect(run.events())

    assert [e.type for e in events] == ["connected", "progress", "error"]
    assert events[-1].code == "resolution_failure"
    assert run.state == CoordinatorState.ERRORED


async def test_no_candidates_is_terminal_error():
    events = await collect(_coordinator(matcher=FakeMatcher(matches=[])).stream("Paris"))
    assert events[-1].type == "error"
    assert events[-1].code == "no_candidates"
    assert [e.type for e in events].count("error") == 1


async def test_unexpected_error_maps_to_internal_error():
    events = await collect(_coordinator(matcher=FakeMatcher(error=KeyError("boom"))).stream("Paris"))
    assert events[-1].type == "error"
    assert events[-1].code == "internal_error"
    assert "boom" not in events[-1].message


async def test_hung_enrichment_keeps_placeholder_while_others_complete():
    enricher = FakeEnricher(hang={"h2"})
    run = _coordinator(enricher=enricher, deadline=0.3).start("Paris")
    events = await collect(run.events())

    enhanced = [e.hotel_id for e in events if e.type == "hotel_enhanced"]
    assert sorted(enhanced) == ["h1", "h3"]
    assert events[-1].type == "complete"
    assert events[-1].enhanced_hotels == 2
    await asyncio.sleep(0.01)
    assert enricher.cancelled == ["h2"]


async def test_failing_worker_does_not_affect_siblings():
    events = await collect(_coordinator(enricher=FakeEnricher(raise_for={"h1"})).stream("Paris"))
    enhanced = sorted(e.hotel_id for e in events if e.type == "hotel_enhanced")
    assert enhanced == ["h2", "h3"]
    assert events[-1].type == "complete"


async def test_enrichment_concurrency_is_bounded():
    matches = [make_match(f"h{n}", n, 90 - n) for n in range(1, 7)]
    enricher = FakeEnricher(delays={m.hotel_id: 0.02 for m in matches})
    events = await collect(_coordinator(matcher=FakeMatcher(matches), enricher=enricher, concurrency=2).stream("Paris"))

    assert enricher.max_active <= 2
    assert [e.type for e in events].count("hotel_enhanced") == 6


async def test_enhanced_events_arrive_in_completion_order():
    enricher = FakeEnricher(delays={"h1": 0.15, "h2": 0.0, "h3": 0.05})
    events = await collect(_coordinator(enricher=enricher).stream("Paris"))
    assert [e.hotel_id for e in events if e.type == "hotel_enhanced"] == ["h2", "h3", "h1"]


async def test_closing_the_stream_cancels_workers():
    enricher = FakeEnricher(hang={"h1", "h2", "h3"})
    stream = _coordinator(enricher=enricher).stream("Paris")

    async for event in stream:
        if event.type == "hotel_found" and event.hotel.hotel_id == "h3":
            # let the first two workers start before the client goes away
            await asyncio.sleep(0.01)
            break
    await stream.aclose()
    await asyncio.sleep(0.01)

    assert sorted(enricher.started) == ["h1", "h2"]
    assert sorted(enricher.cancelled) == ["h1", "h2"]
    assert enricher.active == 0


async def test_sessions_are_independent():
    coordinator = _coordinator(enricher=FakeEnricher(delays={"h1": 0.02}))
    first, second = await asyncio.gather(collect(coordinator.stream("Paris")), collect(coordinator.stream("Tokyo")))

    assert first[0].search_id != second[0].search_id
    assert first[-1].type == second[-1].type == "complete"


def test_expected_count_is_set_once():
    session = SearchSession(query="Paris")
    session.set_expected_count(3)
    with pytest.raises(ValueError):
        session.set_expected_count(4)
    assert session.expected_count == 3


def test_no_candidates_reason_default():
    assert NoCandidates().reason == "empty"


def test_timestamps_are_timezone_aware():
    assert SearchSession(query="Paris").created_at.tzinfo is not None
    assert StoredSearch(search_id="s1", query="Paris").created_at.tzinfo is not None


class SlowStore(SearchStore):
    """Memory store whose save blocks like a slow Redis round trip"""

    def save(self, search):
        time.sleep(0.2)
        super().save(search)


async def test_saving_the_search_does_not_block_the_loop():
    store = SlowStore(use_redis=False)
    run = _coordinator(store=store).start("Paris")
    ticks = 0

    async def ticker():
        nonlocal ticks
        while True:
            await asyncio.sleep(0.01)
            ticks += 1

    ticking = asyncio.create_task(ticker())
    try:
        events = await collect(run.events())
    finally:
        ticking.cancel()

    assert events[-1].type == "complete"
    assert ticks >= 5
    assert store.get(run.search_id) is not None
