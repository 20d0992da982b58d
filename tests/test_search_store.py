import pytest

from staygenie.errors import NoCandidates, ResolutionFailure, TransportFailure, error_from_code
from staygenie.interfaces.search_store import SearchStore
from staygenie.schemas.search_schemas import HotelPayload, StoredSearch
from staygenie.utils.step_timer import StepTimer

from .fakes import default_matches, narrative_for


@pytest.fixture
def store():
    return SearchStore(use_redis=False)


def test_memory_store_round_trip(store):
    hotels = [HotelPayload.from_match(m, narrative_for(m.hotel_id)) for m in default_matches()]
    store.save(StoredSearch(search_id="s1", query="Paris", hotels=hotels, total_hotels=3, enhanced_hotels=3))

    stored = store.get("s1")
    assert store.backend == "memory"
    assert [h.hotel_id for h in stored.hotels] == ["h1", "h2", "h3"]
    assert stored.hotels[0].narrative == narrative_for("h1")

    assert store.get("missing") is None


def test_unreachable_redis_falls_back_to_memory():
    store = SearchStore(redis_host="127.0.0.1", redis_port=1)
    assert store.backend == "memory"


def test_step_timer_records_failed_steps():
    timer = StepTimer("test")
    with timer.step("parse_query"):
        pass
    with pytest.raises(ResolutionFailure):
        with timer.step("match_hotels"):
            raise ResolutionFailure("no city")

    report = timer.report()
    assert [(s.step, s.status) for s in report.steps] == [("parse_query", "completed"), ("match_hotels", "failed")]
    assert report.total_time_ms >= 0
    assert timer.finish("never_started") is None


def test_error_codes_round_trip():
    assert isinstance(error_from_code("resolution_failure", "x"), ResolutionFailure)
    assert isinstance(error_from_code("no_candidates", "x"), NoCandidates)
    assert error_from_code("internal_error", "x").code == "internal_error"
    with pytest.raises(ValueError):
        TransportFailure("cosmic_rays")
