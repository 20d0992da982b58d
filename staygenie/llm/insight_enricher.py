# llm/insight_enricher.py
"""
Insight Enricher (stage 2)
Produces the narrative for one matched hotel:
- "Why it matches" (≤25 words)
- Guest insights
- Highlights / fun facts
- Nearby attractions tuned to the trip purpose
- Location highlight
One LLM call per hotel; any failure falls back to template text.
"""

import asyncio
from typing import Any, Dict, List, Optional
from loguru import logger

from ..config import settings
from ..errors import EnrichmentFailure
from ..schemas.search_schemas import EnrichmentResult, MatchResult, NarrativeFields
from .llm_client import LLMClient, LLMError


INSIGHTS_SYSTEM_PROMPT = """You are a travel content expert who matches hotels to traveler interests.
Reply with a single JSON object:
{"whyItMatches": "25 words max - why it fits the request, starting with the hotel name",
 "guestInsights": "one or two sentences on what guests appreciate",
 "highlights": ["fact1", "fact2"],
 "nearbyAttractions": ["Name - short description - N min walk", "Name - short description - N min metro"],
 "locationHighlight": "one short phrase"}
Only mention amenities that appear in the hotel data unless they are obvious."""

FALLBACK_GUEST_INSIGHTS = "Guests appreciate the comfortable accommodations and convenient location."
FALLBACK_WHY = "Excellent choice with great amenities and location"


# Trip purpose -> (keywords, label, attractions). Attractions take the city name.
SEARCH_INTENTS = [
    ("business", ("business", "work", "meeting", "conference"), "business travel", [
        "{city} Business District - corporate offices and meeting venues - 10 min metro",
        "Convention Center - conference facilities and business services - 12 min taxi",
    ]),
    ("romantic", ("romantic", "honeymoon", "anniversary", "couple"), "romantic getaway", [
        "{city} Scenic Overlook - romantic city views for couples - 15 min walk",
        "Fine Dining District - upscale restaurants and wine bars - 8 min taxi",
    ]),
    ("family", ("family", "kids", "children", "child"), "family vacation", [
        "{city} Family Park - playgrounds and family activities - 10 min walk",
        "Children's Entertainment Center - kid-friendly attractions and games - 20 min metro",
    ]),
    ("culture", ("culture", "history", "museum", "art"), "cultural experience", [
        "{city} Museum District - art galleries and cultural exhibits - 12 min bus",
        "Historic Old Town - traditional architecture and local heritage - 15 min walk",
    ]),
    ("shopping", ("shopping", "shop", "boutique"), "shopping trip", [
        "{city} Shopping Center - major retail stores and boutiques - 5 min walk",
        "Local Markets - traditional crafts and local specialties - 18 min metro",
    ]),
    ("nightlife", ("nightlife", "party", "bar", "club"), "nightlife experience", [
        "{city} Entertainment District - bars clubs and live music - 10 min taxi",
        "Nightlife Quarter - vibrant evening scene and cocktail lounges - 15 min walk",
    ]),
    ("nature", ("beach", "nature", "outdoor", "hiking", "park"), "nature experience", [
        "{city} Waterfront - beaches and scenic walking paths - 12 min walk",
        "Nature Reserve - trails and outdoor activities - 25 min taxi",
    ]),
]

DEFAULT_ATTRACTIONS = [
    "{city} Center - main city attractions and shopping - 8 min walk",
    "Local Landmarks - historic sites and cultural spots - 15 min walk",
]


def detect_search_intent(query: Optional[str]) -> Optional[str]:
    """Return the trip-purpose key for a query, or None"""
    if not query:
        return None
    query_lower = query.lower()
    for key, keywords, _label, _attractions in SEARCH_INTENTS:
        if any(keyword in query_lower for keyword in keywords):
            return key
    return None


def default_attractions(query: Optional[str], city: Optional[str]) -> List[str]:
    base_city = city or "City"
    intent = detect_search_intent(query)
    for key, _keywords, _label, attractions in SEARCH_INTENTS:
        if key == intent:
            return [a.format(city=base_city) for a in attractions]
    return [a.format(city=base_city) for a in DEFAULT_ATTRACTIONS]


class InsightEnricher:
    """
    Generates stage 2 narrative for matched hotels.
    Never raises: LLM problems are logged and replaced by fallback text.
    """

    def __init__(self, llm: Optional[LLMClient] = None, timeout: Optional[float] = None):
        self.llm = llm
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS

    async def enrich(self, match: MatchResult, query: str) -> EnrichmentResult:
        """
        Enrich one hotel.

        Args:
            match: Stage 1 result for the hotel
            query: The user's original free text

        Returns:
            EnrichmentResult; is_fallback is True when template text was used
        """
        try:
            narrative = await self._generate(match, query)
            return EnrichmentResult(hotel_id=match.hotel_id, narrative=narrative, is_fallback=False)
        except EnrichmentFailure as e:
            logger.warning(f"⚠️ Insights fell back for {match.basic.name} ({match.hotel_id}): {e.message}")
        except Exception as e:
            logger.warning(f"⚠️ Unexpected insights error for {match.hotel_id}: {e}")
        return EnrichmentResult(
            hotel_id=match.hotel_id,
            narrative=self.fallback_narrative(match, query),
            is_fallback=True,
        )

    async def _generate(self, match: MatchResult, query: str) -> NarrativeFields:
        if self.llm is None:
            raise EnrichmentFailure(match.hotel_id, "LLM disabled")
        try:
            data = await asyncio.wait_for(
                self.llm.complete_json(INSIGHTS_SYSTEM_PROMPT, self._build_prompt(match, query)),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise EnrichmentFailure(match.hotel_id, f"LLM timed out after {self.timeout}s") from e
        except LLMError as e:
            raise EnrichmentFailure(match.hotel_id, str(e)) from e
        return self._to_narrative(data, match, query)

    def _build_prompt(self, match: MatchResult, query: str) -> str:
        basic = match.basic
        price = basic.price_per_night.display if basic.price_per_night else "unknown"
        lines = [
            f'User request: "{query}"',
            f"Hotel: {basic.name}",
            f"Location: {basic.address}, {basic.city}, {basic.country}",
            f"Star rating: {basic.star_rating or 'n/a'}",
            f"Price per night: {price}",
            f"Refundable: {'yes' if basic.is_refundable else 'no'}",
            f"Amenities: {', '.join(basic.amenities[:12]) or 'not listed'}",
            f"Description: {basic.description[:600]}",
        ]
        return "\n".join(lines)

    def _to_narrative(self, data: Dict[str, Any], match: MatchResult, query: str) -> NarrativeFields:
        """Validate the LLM object; missing pieces are filled from the fallback"""
        why = data.get("whyItMatches")
        if not isinstance(why, str) or not why.strip():
            raise EnrichmentFailure(match.hotel_id, "LLM reply has no whyItMatches")

        fallback = self.fallback_narrative(match, query)
        highlights = _string_list(data.get("highlights") or data.get("funFacts")) or fallback.highlights
        attractions = _string_list(data.get("nearbyAttractions")) or fallback.nearby_attractions
        guest = data.get("guestInsights") if isinstance(data.get("guestInsights"), str) else ""
        location = data.get("locationHighlight") if isinstance(data.get("locationHighlight"), str) else ""

        return NarrativeFields(
            why_it_matches=_truncate_words(why.strip(), 25),
            guest_insights=guest.strip() or fallback.guest_insights,
            highlights=highlights[:3],
            nearby_attractions=attractions[:3],
            location_highlight=location.strip() or fallback.location_highlight,
        )

    def fallback_narrative(self, match: MatchResult, query: str) -> NarrativeFields:
        return build_fallback_narrative(match, query)


def build_fallback_narrative(match: MatchResult, query: str) -> NarrativeFields:
    """Deterministic narrative built from the query intent and basic fields"""
    basic = match.basic
    intent = detect_search_intent(query)
    label = next((lbl for key, _kw, lbl, _a in SEARCH_INTENTS if key == intent), None)

    why = f"Perfect match for your {label} requirements" if label else FALLBACK_WHY

    highlights: List[str] = []
    if basic.star_rating:
        highlights.append(f"{basic.star_rating:g}-star hotel")
    if basic.is_refundable:
        highlights.append("Free cancellation available")
    for amenity in basic.top_amenities:
        if len(highlights) >= 3:
            break
        highlights.append(amenity)
    if not highlights:
        highlights = ["Modern facilities", "Excellent guest reviews"]

    location = f"Central {basic.city} location" if basic.city else "Prime location"

    return NarrativeFields(
        why_it_matches=why,
        guest_insights=FALLBACK_GUEST_INSIGHTS,
        highlights=highlights[:3],
        nearby_attractions=default_attractions(query, basic.city),
        location_highlight=location,
    )


def _string_list(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def _truncate_words(text: str, max_words: int) -> str:
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words]).rstrip(",;") + "..."
