# agents/candidate_matcher.py
"""
Candidate Matcher (stage 1)

Flow:
1. Hotel metadata for the city
2. Rates for those hotels
3. BasicFields per hotel (price summary, refund policy, images, amenities)
4. Hard budget filter, topped up with the closest out-of-budget hotels
5. Score, sort, keep the top N and assign ranks 1..N
"""

from typing import Any, Dict, List, Optional, Tuple

import httpx
from loguru import logger

from ..algorithms.match_scorer import score_hotel
from ..config import settings
from ..errors import NoCandidates
from ..interfaces.hotel_provider import HotelProvider, ProviderError, hotel_id_of
from ..schemas.search_schemas import BasicFields, MatchResult, PriceSummary, SearchParams


DEFAULT_AMENITIES = ["Wi-Fi", "Air Conditioning", "Private Bathroom"]
MAX_IMAGES = 8


# ============================================
# Field extraction from provider payloads
# ============================================

def _all_rates(rate_entry: Optional[Dict[str, Any]]) -> List[Dict[str, Any]]:
    if not rate_entry:
        return []
    return [rate for room in rate_entry.get("roomTypes") or [] for rate in room.get("rates") or []]


def extract_refundable_policy(rate_entry: Optional[Dict[str, Any]]) -> Tuple[bool, Optional[str], str]:
    """
    Refund policy across all rates: (is_refundable, first tag, info).
    RFN means refundable, NRF non-refundable; mixed counts as refundable.
    """
    rates = _all_rates(rate_entry)
    if not rates:
        return False, None, "No rate information available"

    tags: List[str] = []
    has_refundable = has_non_refundable = False
    for rate in rates:
        tag = (rate.get("cancellationPolicies") or {}).get("refundableTag")
        if not tag:
            continue
        tags.append(tag)
        if tag == "NRF" or "non" in tag.lower():
            has_non_refundable = True
        elif tag == "RFN" or "refund" in tag.lower():
            has_refundable = True

    if has_refundable and has_non_refundable:
        return True, tags[0], "Mixed refund policies available"
    if has_refundable:
        return True, tags[0], "Refundable rates available"
    if has_non_refundable:
        return False, tags[0], "Non-refundable rates only"
    return False, tags[0] if tags else None, "Refund policy not specified"


def extract_images(hotel: Dict[str, Any]) -> List[str]:
    images: List[str] = []
    if hotel.get("main_photo"):
        images.append(hotel["main_photo"])
    if hotel.get("thumbnail") and hotel["thumbnail"] != hotel.get("main_photo"):
        images.append(hotel["thumbnail"])
    for image in (hotel.get("hotelImages") or [])[:6]:
        url = image if isinstance(image, str) else (image.get("urlHd") or image.get("url"))
        if url:
            images.append(url)
    # Dedupe, keep order
    return list(dict.fromkeys(images))[:MAX_IMAGES]


def extract_amenities(hotel: Dict[str, Any]) -> List[str]:
    names = []
    for amenity in hotel.get("amenities") or hotel.get("facilities") or []:
        if isinstance(amenity, str):
            names.append(amenity)
        elif isinstance(amenity, dict) and amenity.get("name"):
            names.append(str(amenity["name"]))
    return names


def top_amenities(amenities: List[str]) -> List[str]:
    top = amenities[:3]
    for default in DEFAULT_AMENITIES:
        if len(top) >= 3:
            break
        if default not in top:
            top.append(default)
    return top


def calculate_price_summary(rate_entry: Optional[Dict[str, Any]], nights: int) -> Optional[PriceSummary]:
    """
    Nightly price: the suggested selling price when the provider gives one,
    else the cheapest retail total. Both divided by nights.
    """
    nights = max(nights, 1)
    offers = []
    for rate in _all_rates(rate_entry):
        retail = rate.get("retailRate") or {}
        total = (retail.get("total") or [{}])[0]
        if total.get("amount") is None:
            continue
        suggested = (retail.get("suggestedSellingPrice") or [{}])[0]
        offers.append({
            "retail": float(total["amount"]),
            "currency": total.get("currency") or "USD",
            "suggested": suggested.get("amount"),
            "source": suggested.get("source"),
        })
    if not offers:
        return None

    currency = offers[0]["currency"]
    supplier = next((o for o in offers if o["suggested"] is not None and o["source"]), None)
    if supplier:
        total_amount = float(supplier["suggested"])
        provider = supplier["source"]
    else:
        total_amount = min(o["retail"] for o in offers)
        provider = None

    per_night = round(total_amount / nights)
    return PriceSummary(
        amount=per_night,
        total_amount=total_amount,
        currency=currency,
        display=f"${per_night}/night",
        provider=provider,
        is_supplier_price=supplier is not None,
    )


def build_basic_fields(hotel: Dict[str, Any], rate_entry: Optional[Dict[str, Any]], nights: int) -> BasicFields:
    amenities = extract_amenities(hotel)
    is_refundable, tag, info = extract_refundable_policy(rate_entry)
    stars = hotel.get("stars") if hotel.get("stars") is not None else hotel.get("starRating")
    return BasicFields(
        name=hotel.get("name") or "Unknown Hotel",
        images=extract_images(hotel),
        price_per_night=calculate_price_summary(rate_entry, nights),
        address=hotel.get("address") or "",
        city=hotel.get("city") or "",
        country=(hotel.get("country") or "").upper(),
        latitude=hotel.get("latitude"),
        longitude=hotel.get("longitude"),
        star_rating=float(stars) if stars is not None else None,
        amenities=amenities,
        top_amenities=top_amenities(amenities),
        description=hotel.get("hotelDescription") or hotel.get("description") or "",
        is_refundable=is_refundable,
        refundable_tag=tag,
        refundable_info=info,
    )


# ============================================
# Budget filter
# ============================================

def _budget_distance(basic: BasicFields, min_cost: Optional[float], max_cost: Optional[float]) -> float:
    amount = basic.price_per_night.amount
    if max_cost is not None and amount > max_cost:
        return amount - max_cost
    if min_cost is not None and amount < min_cost:
        return min_cost - amount
    return 0.0


def apply_budget_filter(
    hotels: List[Tuple[str, BasicFields]],
    min_cost: Optional[float],
    max_cost: Optional[float],
    min_candidates: int,
) -> List[Tuple[str, BasicFields]]:
    """
    Keep hotels inside the nightly budget. If that leaves fewer than
    `min_candidates`, add back the nearest out-of-budget hotels.
    Provider order is preserved for the survivors.
    """
    if min_cost is None and max_cost is None:
        return hotels

    in_budget = [h for h in hotels if _budget_distance(h[1], min_cost, max_cost) == 0]
    if len(in_budget) >= min_candidates:
        return in_budget

    outside = [h for h in hotels if _budget_distance(h[1], min_cost, max_cost) > 0]
    outside.sort(key=lambda h: _budget_distance(h[1], min_cost, max_cost))
    top_up = {hid for hid, _ in outside[:min_candidates - len(in_budget)]}
    logger.info(f"Budget filter kept {len(in_budget)}, topping up with {len(top_up)} nearest hotels")
    return [h for h in hotels if _budget_distance(h[1], min_cost, max_cost) == 0 or h[0] in top_up]


# ============================================
# Matcher
# ============================================

class CandidateMatcher:
    """Retrieves and ranks hotels for resolved search parameters"""

    def __init__(
        self,
        provider: HotelProvider,
        search_limit: Optional[int] = None,
        max_results: Optional[int] = None,
        min_candidates: Optional[int] = None,
    ):
        self.provider = provider
        self.search_limit = search_limit or settings.HOTEL_SEARCH_LIMIT
        self.max_results = max_results or settings.MAX_MATCH_RESULTS
        self.min_candidates = min_candidates or settings.MIN_CANDIDATES_AFTER_FILTER

    async def match(self, params: SearchParams) -> List[MatchResult]:
        """
        Ranked candidates for `params`.

        Raises:
            NoCandidates: nothing in the city, no availability, or upstream down
        """
        try:
            hotels = await self.provider.fetch_hotels(params.city_name, params.country_code, self.search_limit)
            if not hotels:
                raise NoCandidates(f"No hotels found in {params.city_name}, {params.country_code}", reason="no_hotels")

            metadata: Dict[str, Dict[str, Any]] = {}
            for hotel in hotels:
                hid = hotel_id_of(hotel)
                if hid and hid not in metadata:
                    metadata[hid] = hotel

            rate_entries = await self.provider.fetch_rates(list(metadata), params)
        except (httpx.HTTPError, ProviderError) as e:
            logger.error(f"Hotel provider unavailable: {e}")
            raise NoCandidates("Hotel provider is unavailable, please try again", reason="upstream_unavailable") from e

        rates_by_id = {}
        for entry in rate_entries:
            hid = hotel_id_of(entry)
            if hid:
                rates_by_id[hid] = entry

        # Provider order, only hotels with a price
        priced: List[Tuple[str, BasicFields]] = []
        for hid, hotel in metadata.items():
            if hid not in rates_by_id:
                continue
            basic = build_basic_fields(hotel, rates_by_id[hid], params.nights)
            if basic.price_per_night is not None:
                priced.append((hid, basic))

        if not priced:
            raise NoCandidates(
                f"No availability in {params.city_name} for {params.checkin} to {params.checkout}",
                reason="no_availability",
            )

        candidates = apply_budget_filter(priced, params.min_cost, params.max_cost, self.min_candidates)

        scored = [
            (score_hotel(basic, params).total_score, order, hid, basic)
            for order, (hid, basic) in enumerate(candidates)
        ]
        scored.sort(key=lambda item: (-item[0], item[1]))

        results = [
            MatchResult(hotel_id=hid, rank=rank, match_score=score, basic=basic)
            for rank, (score, _order, hid, basic) in enumerate(scored[:self.max_results], start=1)
        ]
        logger.info(f"Matched {len(results)} hotels in {params.city_name} "
                    f"(from {len(metadata)} listed, {len(priced)} priced)")
        return results
