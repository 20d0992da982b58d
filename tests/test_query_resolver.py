"""Free text -> SearchParams, including date and budget normalisation."""

import pytest

from staygenie.errors import ResolutionFailure
from staygenie.llm.llm_client import LLMError
from staygenie.llm.query_resolver import QueryResolver


class StubLLM:
    def __init__(self, reply=None, error=None):
        self.reply = reply
        self.error = error
        self.calls = 0

    async def complete_json(self, system_prompt, user_prompt, max_tokens=600, temperature=0.4):
        self.calls += 1
        if self.error:
            raise self.error
        return self.reply


@pytest.fixture
def resolver(today):
    return QueryResolver(today=lambda: today)


async def test_resolves_city_dates_budget_and_guests(resolver):
    params = await resolver.resolve("Romantic hotel in Paris march 15-18 under $200 for 2 adults")

    assert (params.city_name, params.country_code) == ("Paris", "FR")
    assert (params.checkin, params.checkout) == ("2027-03-15", "2027-03-18")
    assert params.nights == 3
    assert params.max_cost == 200
    assert params.min_cost is None
    assert params.adults == 2
    assert "Romantic" in params.ai_search


async def test_country_only_query_picks_default_city(resolver):
    params = await resolver.resolve("somewhere quiet in Japan")
    assert (params.city_name, params.country_code) == ("Tokyo", "JP")


async def test_default_dates_are_a_month_out_for_three_nights(resolver):
    params = await resolver.resolve("New York boutique hotel")
    assert (params.city_name, params.country_code) == ("New York", "US")
    assert (params.checkin, params.checkout) == ("2026-07-10", "2026-07-13")


async def test_past_dates_roll_forward_one_year(resolver):
    params = await resolver.resolve("Paris 2026-01-05 to 2026-01-08")
    assert (params.checkin, params.checkout) == ("2027-01-05", "2027-01-08")


async def test_checkout_before_checkin_becomes_one_night(resolver):
    params = await resolver.resolve("Paris from 2026-08-10 until 2026-08-05")
    assert (params.checkin, params.checkout) == ("2026-08-10", "2026-08-11")


async def test_stay_is_capped_at_thirty_nights(resolver):
    params = await resolver.resolve("Paris 2026-08-01 2026-10-01")
    assert params.checkout == "2026-08-31"


async def test_budget_range_and_swapped_bounds(resolver):
    params = await resolver.resolve("Tokyo between $300 and 150")
    assert (params.min_cost, params.max_cost) == (150, 300)


async def test_overrides_win_and_adults_are_clamped(resolver):
    params = await resolver.resolve("Paris", {"checkin": "2026-09-01", "checkout": "2026-09-04", "adults": 0})
    assert (params.checkin, params.checkout) == ("2026-09-01", "2026-09-04")
    assert params.adults == 1


async def test_empty_query_fails(resolver):
    with pytest.raises(ResolutionFailure):
        await resolver.resolve("   ")


async def test_unknown_destination_without_llm_fails(resolver):
    with pytest.raises(ResolutionFailure):
        await resolver.resolve("a nice hotel somewhere")


async def test_llm_assist_fills_destination(today):
    llm = StubLLM(reply={"cityName": "Reykjavik", "countryCode": "is", "maxCost": 250, "aiSearch": "northern lights"})
    resolver = QueryResolver(llm=llm, today=lambda: today)

    params = await resolver.resolve("hotel to see the northern lights")

    assert llm.calls == 1
    assert (params.city_name, params.country_code) == ("Reykjavik", "IS")
    assert params.max_cost == 250
    assert params.ai_search == "northern lights"


async def test_llm_not_called_when_rules_find_destination(today):
    llm = StubLLM(reply={})
    resolver = QueryResolver(llm=llm, today=lambda: today)
    await resolver.resolve("Paris next weekend")
    assert llm.calls == 0


async def test_llm_failure_is_a_resolution_failure(today):
    resolver = QueryResolver(llm=StubLLM(error=LLMError("down")), today=lambda: today)
    with pytest.raises(ResolutionFailure):
        await resolver.resolve("hotel to see the northern lights")
