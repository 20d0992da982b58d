"""
Match Score Algorithm
Calculates how well a hotel matches a resolved search (0-100)

Algorithm Components:
1. Budget Fit (35) - Nightly price against the requested range
2. Preference Match (30) - Requested features found in amenities/description
3. Quality (20) - Star rating
4. Policy (10) - Refundable rates, weighted up when the user asks for flexibility
5. Content (5) - Photos and description available to show

Total: 0-100. Deterministic: the same hotel and query always score the same.
"""

import re
from typing import Dict, List, NamedTuple, Optional
from loguru import logger

from ..schemas.search_schemas import BasicFields, SearchParams


class MatchScoreBreakdown(NamedTuple):
    """
    Breakdown of match score components
    """
    budget_score: float        # 0-35
    preference_score: float    # 0-30
    quality_score: float       # 0-20
    policy_score: float        # 0-10
    content_score: float       # 0-5
    total_score: float         # 0-100

    def __repr__(self) -> str:
        return (
            f"MatchScore(total={self.total_score:.0f}, "
            f"budget={self.budget_score:.1f}, "
            f"pref={self.preference_score:.1f}, "
            f"quality={self.quality_score:.1f}, "
            f"policy={self.policy_score:.1f}, "
            f"content={self.content_score:.1f})"
        )


# Preference keyword -> terms that satisfy it in hotel text
PREFERENCE_TERMS: Dict[str, List[str]] = {
    "pool": ["pool", "swimming"],
    "spa": ["spa", "massage", "wellness", "sauna"],
    "gym": ["gym", "fitness"],
    "breakfast": ["breakfast"],
    "wifi": ["wifi", "wi-fi", "internet"],
    "parking": ["parking"],
    "pet": ["pet", "pets", "dog"],
    "beach": ["beach", "seafront", "oceanfront", "waterfront"],
    "view": ["view", "views", "panoramic", "rooftop"],
    "rooftop": ["rooftop", "terrace"],
    "restaurant": ["restaurant", "dining"],
    "bar": ["bar", "lounge"],
    "luxury": ["luxury", "5-star", "palace", "suite"],
    "boutique": ["boutique", "design"],
    "family": ["family", "kids", "children", "connecting rooms"],
    "business": ["business", "meeting", "conference", "workspace"],
    "quiet": ["quiet", "peaceful", "calm"],
    "central": ["central", "center", "centre", "downtown", "old town"],
    "airport": ["airport", "shuttle"],
    "kitchen": ["kitchen", "kitchenette"],
}

FLEXIBLE_TERMS = ("refundable", "free cancellation", "flexible", "cancel")


def extract_preferences(text: str) -> List[str]:
    """Preference keys mentioned in the user's free text"""
    text_lower = (text or "").lower()
    return [key for key in PREFERENCE_TERMS if re.search(rf"\b{re.escape(key)}", text_lower)]


def score_hotel(basic: BasicFields, params: SearchParams) -> MatchScoreBreakdown:
    """
    Calculate how well one hotel matches a search

    Args:
        basic: Stage 1 hotel fields
        params: Resolved search parameters

    Returns:
        MatchScoreBreakdown: Detailed score breakdown, total in 0-100

    Example:
        >>> breakdown = score_hotel(hotel.basic, params)
        >>> print(f"Match: {breakdown.total_score:.0f}%")
        Match: 84%
    """
    nightly = basic.price_per_night.amount if basic.price_per_night else None
    preferences = extract_preferences(params.ai_search or params.raw_query)
    wants_flexible = any(term in (params.ai_search or "").lower() for term in FLEXIBLE_TERMS)

    budget_score = _calculate_budget_fit(nightly, params.min_cost, params.max_cost)
    preference_score = _calculate_preference_match(basic, preferences)
    quality_score = _calculate_quality(basic.star_rating)
    policy_score = _calculate_policy(basic.is_refundable, wants_flexible)
    content_score = _calculate_content(basic)

    total = min(budget_score + preference_score + quality_score + policy_score + content_score, 100.0)

    breakdown = MatchScoreBreakdown(
        budget_score=budget_score,
        preference_score=preference_score,
        quality_score=quality_score,
        policy_score=policy_score,
        content_score=content_score,
        total_score=round(total, 1),
    )

    logger.debug(f"Match score for {basic.name}: {breakdown}")

    return breakdown


def _calculate_budget_fit(nightly: Optional[float], min_cost: Optional[float], max_cost: Optional[float]) -> float:
    """
    Budget fit (0-35)

    Logic:
    - No price known: 10
    - No budget given: 25 (neutral)
    - Inside the range: 35
    - Outside: loses points with the relative distance to the range, floor 0
    """
    if nightly is None:
        return 10.0
    if min_cost is None and max_cost is None:
        return 25.0

    if max_cost is not None and nightly > max_cost:
        over = (nightly - max_cost) / max(max_cost, 1.0)
        return max(0.0, 35.0 * (1 - 2 * over))
    if min_cost is not None and nightly < min_cost:
        under = (min_cost - nightly) / max(min_cost, 1.0)
        return max(0.0, 35.0 * (1 - under))
    return 35.0


def _calculate_preference_match(basic: BasicFields, preferences: List[str]) -> float:
    """
    Preference match (0-30)

    Logic:
    - No preferences in the query: 15 (neutral)
    - Otherwise: share of requested features found in hotel text x 30
    """
    if not preferences:
        return 15.0

    haystack = " ".join([basic.name, basic.description, " ".join(basic.amenities)]).lower()
    satisfied = sum(
        1 for pref in preferences
        if any(term in haystack for term in PREFERENCE_TERMS[pref])
    )
    return 30.0 * satisfied / len(preferences)


def _calculate_quality(star_rating: Optional[float]) -> float:
    """Quality (0-20): 4 points per star, unknown rating counts as 3 stars"""
    stars = star_rating if star_rating is not None else 3.0
    return max(0.0, min(stars, 5.0)) * 4.0


def _calculate_policy(is_refundable: bool, wants_flexible: bool) -> float:
    """
    Policy (0-10)

    - Refundable: 10 if asked for, 7 otherwise
    - Non-refundable: 0 if flexibility was asked for, 4 otherwise
    """
    if is_refundable:
        return 10.0 if wants_flexible else 7.0
    return 0.0 if wants_flexible else 4.0


def _calculate_content(basic: BasicFields) -> float:
    """Content (0-5): photos up to 3 points, description 2 points"""
    photos = min(len(basic.images), 3)
    return float(photos) + (2.0 if basic.description else 0.0)
