"""Stage 2 narrative generation and its fallback."""

import asyncio

from staygenie.llm.insight_enricher import InsightEnricher, default_attractions, detect_search_intent
from staygenie.llm.llm_client import LLMError, parse_json_reply
from staygenie.schemas.search_schemas import is_placeholder_narrative

from .fakes import make_match


class ReplyLLM:
    def __init__(self, reply=None, error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay

    async def complete_json(self, system_prompt, user_prompt, max_tokens=600, temperature=0.4):
        await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.reply


async def test_llm_reply_becomes_narrative():
    reply = {
        "whyItMatches": "Hotel h1 sits on a quiet street " + "with lovely views " * 10,
        "guestInsights": "Guests praise the staff.",
        "highlights": ["Built in 1890", "Rooftop bar", "Hidden garden", "Extra"],
        "nearbyAttractions": ["Louvre - 5 min walk"],
        "locationHighlight": "Left Bank",
    }
    result = await InsightEnricher(llm=ReplyLLM(reply)).enrich(make_match("h1", 1, 90), "quiet hotel")

    assert not result.is_fallback
    assert result.hotel_id == "h1"
    assert result.narrative.why_it_matches.endswith("...")
    assert len(result.narrative.why_it_matches.split()) == 25
    assert result.narrative.highlights == ["Built in 1890", "Rooftop bar", "Hidden garden"]
    assert result.narrative.location_highlight == "Left Bank"


async def test_missing_fields_are_filled_from_fallback():
    result = await InsightEnricher(llm=ReplyLLM({"whyItMatches": "Great fit."})).enrich(make_match("h1", 1, 90), "paris")

    assert not result.is_fallback
    assert result.narrative.why_it_matches == "Great fit."
    assert result.narrative.guest_insights
    assert result.narrative.nearby_attractions


async def test_llm_error_falls_back():
    enricher = InsightEnricher(llm=ReplyLLM(error=LLMError("quota exceeded")))
    result = await enricher.enrich(make_match("h1", 1, 90), "romantic weekend in Paris")

    assert result.is_fallback
    assert result.narrative.why_it_matches == "Perfect match for your romantic getaway requirements"
    assert result.narrative.nearby_attractions[0].startswith("Paris Scenic Overlook")
    assert not is_placeholder_narrative(result.narrative)


async def test_slow_llm_times_out_to_fallback():
    enricher = InsightEnricher(llm=ReplyLLM({"whyItMatches": "late"}, delay=1.0), timeout=0.05)
    result = await enricher.enrich(make_match("h1", 1, 90), "hotel")
    assert result.is_fallback


async def test_reply_without_why_falls_back():
    result = await InsightEnricher(llm=ReplyLLM({"highlights": ["x"]})).enrich(make_match("h1", 1, 90), "hotel")
    assert result.is_fallback


async def test_no_llm_uses_fallback_and_is_repeatable():
    enricher = InsightEnricher(llm=None)
    match = make_match("h1", 1, 90, refundable=True)

    first = await enricher.enrich(match, "family trip")
    second = await enricher.enrich(match, "family trip")

    assert first.is_fallback
    assert first.narrative == second.narrative
    assert first.narrative.highlights[:2] == ["4-star hotel", "Free cancellation available"]


def test_search_intent_and_attractions():
    assert detect_search_intent("Business trip near the conference centre") == "business"
    assert detect_search_intent("hiking and nature") == "nature"
    assert detect_search_intent("just a bed") is None
    assert default_attractions(None, None)[0].startswith("City Center")


def test_parse_json_reply_handles_fences_and_prose():
    assert parse_json_reply('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_reply('Sure! {"a": 2} hope that helps') == {"a": 2}


def test_parse_json_reply_rejects_non_objects():
    for text in ("", "[1, 2]", "no json here"):
        try:
            parse_json_reply(text)
        except LLMError:
            continue
        raise AssertionError(f"expected LLMError for {text!r}")
