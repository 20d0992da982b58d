"""Client working-set reconciliation."""

import itertools

from staygenie.client.reconciler import DisplayState, HotelListReconciler
from staygenie.schemas.search_schemas import (
    PLACEHOLDER_NARRATIVE, CompleteEvent, ConnectedEvent, ErrorEvent, HotelEnhancedEvent, HotelFoundEvent,
    HotelPayload, ProgressEvent,
)

from .fakes import default_matches, narrative_for

SESSION = "session-1"
SEARCH = "search-1"


def _found(match, search_id=SEARCH):
    return HotelFoundEvent(
        hotel=HotelPayload.from_match(match), hotel_index=match.rank, total_expected=3, search_id=search_id,
    )


def _enhanced(match, narrative=None, search_id=SEARCH):
    narrative = narrative or narrative_for(match.hotel_id)
    return HotelEnhancedEvent(
        hotel_id=match.hotel_id,
        hotel=HotelPayload.from_match(match, narrative),
        hotel_index=match.rank,
        search_id=search_id,
    )


def _started(placeholders=3):
    reconciler = HotelListReconciler()
    reconciler.begin(SESSION, placeholder_count=placeholders, tier="stream")
    reconciler.apply(SESSION, ConnectedEvent(search_id=SEARCH))
    return reconciler


def test_placeholders_until_first_hotel():
    reconciler = _started()
    assert reconciler.has_placeholders
    assert len(reconciler.visible()) == 3

    reconciler.apply(SESSION, ProgressEvent(step=1, total_steps=3, message="Understanding your search...",
                                            search_id=SEARCH))
    assert reconciler.status == "Understanding your search..."

    h1, _, _ = default_matches()
    reconciler.apply(SESSION, _found(h1))
    assert not reconciler.has_placeholders
    assert [h.hotel_id for h in reconciler.visible()] == ["h1"]


def test_visible_order_is_score_then_rank():
    reconciler = _started()
    h1, h2, h3 = default_matches()
    for match in (h3, h1, h2):
        reconciler.apply(SESSION, _found(match))

    assert [h.match_score for h in reconciler.visible()] == [95, 82, 70]
    assert all(h.narrative == PLACEHOLDER_NARRATIVE for h in reconciler.visible())


def test_enhancement_replaces_placeholder_narrative_last_write_wins():
    reconciler = _started()
    h1, _, _ = default_matches()
    reconciler.apply(SESSION, _found(h1))
    reconciler.apply(SESSION, _enhanced(h1, narrative_for("h1", note=" (first)")))
    reconciler.apply(SESSION, _enhanced(h1, narrative_for("h1", note=" (second)")))

    hotel = reconciler.get("h1")
    assert hotel.state == DisplayState.ENHANCED
    assert hotel.narrative.why_it_matches.endswith("(second)")


def test_late_found_does_not_downgrade_enhanced_hotel():
    reconciler = _started()
    h1, _, _ = default_matches()
    reconciler.apply(SESSION, _enhanced(h1))
    reconciler.apply(SESSION, _found(h1))

    hotel = reconciler.get("h1")
    assert hotel.state == DisplayState.ENHANCED
    assert hotel.narrative == narrative_for("h1")


def test_enhancement_for_unknown_hotel_is_inserted():
    reconciler = _started()
    _, h2, _ = default_matches()
    assert reconciler.apply(SESSION, _enhanced(h2))
    assert [h.hotel_id for h in reconciler.visible()] == ["h2"]


def test_placeholder_narrative_is_not_an_enhancement():
    reconciler = _started()
    h1, _, _ = default_matches()
    reconciler.apply(SESSION, _found(h1))

    assert not reconciler.apply(SESSION, _enhanced(h1, PLACEHOLDER_NARRATIVE))
    assert reconciler.get("h1").state == DisplayState.FOUND


def test_stale_session_and_foreign_search_id_are_discarded():
    reconciler = _started()
    h1, h2, _ = default_matches()

    assert not reconciler.apply("old-session", _found(h1))
    assert not reconciler.apply(SESSION, _found(h2, search_id="search-other"))
    assert reconciler.visible()[0].state == DisplayState.PLACEHOLDER


def test_nothing_applies_after_complete():
    reconciler = _started()
    h1, h2, _ = default_matches()
    reconciler.apply(SESSION, _found(h1))
    reconciler.apply(SESSION, CompleteEvent(search_id=SEARCH, total_hotels=1, enhanced_hotels=0))

    assert not reconciler.searching
    assert not reconciler.apply(SESSION, _found(h2))
    assert [h.hotel_id for h in reconciler.visible()] == ["h1"]


def test_error_event_records_typed_failure():
    reconciler = _started()
    reconciler.apply(SESSION, ErrorEvent(message="No hotels found", code="no_candidates", search_id=SEARCH))

    assert reconciler.failure.code == "no_candidates"
    assert reconciler.error_message == "No hotels found"
    assert reconciler.frozen


def test_any_delivery_order_gives_the_same_final_set():
    matches = default_matches()
    events = [_found(m) for m in matches] + [_enhanced(m) for m in matches]

    finals = set()
    for order in itertools.permutations(events, len(events)):
        reconciler = _started()
        for event in order:
            reconciler.apply(SESSION, event)
        finals.add(tuple((h.hotel_id, h.state, h.narrative.why_it_matches) for h in reconciler.visible()))

    assert len(finals) == 1
    (final,) = finals
    assert [hotel_id for hotel_id, _, _ in final] == ["h1", "h2", "h3"]
    assert all(state == DisplayState.ENHANCED for _, state, _ in final)


def test_snapshot_replaces_working_set():
    reconciler = _started()
    h1, h2, _ = default_matches()
    hotels = [HotelPayload.from_match(h1, narrative_for("h1")), HotelPayload.from_match(h2)]

    assert reconciler.load_snapshot(SESSION, hotels, search_id="search-2")
    assert not reconciler.has_placeholders
    assert reconciler.search_id == "search-2"
    assert reconciler.get("h1").state == DisplayState.ENHANCED
    assert reconciler.get("h2").state == DisplayState.FOUND
    assert reconciler.get("h2").narrative == PLACEHOLDER_NARRATIVE
    assert not reconciler.load_snapshot("old-session", hotels)


def test_discard_drops_the_session():
    reconciler = _started()
    h1, h2, _ = default_matches()
    reconciler.apply(SESSION, _found(h1))

    assert not reconciler.discard("other-session")
    assert reconciler.get("h1") is not None

    assert reconciler.discard(SESSION)
    assert reconciler.session_id is None
    assert reconciler.visible() == []
    assert not reconciler.searching
    assert not reconciler.apply(SESSION, _found(h2))
    assert not reconciler.load_snapshot(SESSION, [HotelPayload.from_match(h2)])
