from staygenie.algorithms.match_scorer import extract_preferences, score_hotel
from staygenie.schemas.search_schemas import BasicFields, PriceSummary, SearchParams


def _params(**overrides):
    fields = dict(city_name="Paris", country_code="FR", checkin="2030-05-01", checkout="2030-05-04")
    fields.update(overrides)
    return SearchParams(**fields)


def _hotel(price=200.0, stars=4, refundable=True, amenities=None, description="", images=2):
    return BasicFields(
        name="Test Hotel",
        price_per_night=PriceSummary(amount=price, total_amount=price * 3) if price is not None else None,
        star_rating=stars,
        is_refundable=refundable,
        amenities=amenities or [],
        description=description,
        images=[f"https://img.test/{n}.jpg" for n in range(images)],
    )


def test_in_budget_beats_over_budget():
    params = _params(max_cost=250)
    inside = score_hotel(_hotel(price=200), params)
    outside = score_hotel(_hotel(price=400), params)

    assert inside.budget_score == 35
    assert outside.budget_score < inside.budget_score
    assert inside.total_score > outside.total_score


def test_no_budget_is_neutral():
    assert score_hotel(_hotel(), _params()).budget_score == 25


def test_requested_features_raise_the_score():
    params = _params(ai_search="hotel with a pool and spa")
    with_both = score_hotel(_hotel(amenities=["Pool", "Spa"]), params)
    with_none = score_hotel(_hotel(amenities=["Wi-Fi"]), params)

    assert with_both.preference_score == 30
    assert with_none.preference_score == 0


def test_flexible_request_rewards_refundable_rates():
    params = _params(ai_search="refundable room please")
    assert score_hotel(_hotel(refundable=True), params).policy_score == 10
    assert score_hotel(_hotel(refundable=False), params).policy_score == 0


def test_score_is_bounded_and_deterministic():
    params = _params(max_cost=300, ai_search="luxury spa pool view")
    hotel = _hotel(price=250, stars=5, amenities=["Spa", "Pool"], description="Luxury suites with views", images=8)

    first = score_hotel(hotel, params)
    second = score_hotel(hotel, params)

    assert first == second
    assert 0 <= first.total_score <= 100


def test_extract_preferences():
    assert extract_preferences("Quiet place near the beach with breakfast") == ["breakfast", "beach", "quiet"]
    assert extract_preferences("") == []
