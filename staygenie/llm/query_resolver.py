# llm/query_resolver.py
"""
Query Resolver
Turns a free-text hotel query into SearchParams:
- Destination city + ISO country code
- Check-in / check-out dates (normalised)
- Guests and nightly budget
- Leftover preference text (ai_search) for matching and insights
Rule-based first; the LLM is only asked when no destination is recognised.
"""

import re
from datetime import date, timedelta
from typing import Any, Callable, Dict, Optional, Tuple
from loguru import logger

from ..errors import ResolutionFailure
from ..schemas.search_schemas import SearchParams
from .llm_client import LLMClient, LLMError


MAX_STAY_NIGHTS = 30
DEFAULT_STAY_NIGHTS = 3
MAX_ADULTS = 10

RESOLVE_SYSTEM_PROMPT = """You extract hotel search parameters from a user's request.
Reply with a single JSON object:
{"cityName": "City", "countryCode": "ISO-2 country code", "checkin": "YYYY-MM-DD" or null,
 "checkout": "YYYY-MM-DD" or null, "adults": number or null, "children": number or null,
 "minCost": number or null, "maxCost": number or null,
 "aiSearch": "all other preferences, trip purpose, vibe, hotel style"}
When only a country or region is given, pick the city that best fits the preferences.
Costs are USD per night. If no destination can be inferred, set cityName to null."""


class QueryResolver:
    """
    Resolves natural language hotel queries into structured parameters.
    Uses rule-based parsing with optional LLM assist.
    """

    def __init__(self, llm: Optional[LLMClient] = None, today: Optional[Callable[[], date]] = None):
        self.llm = llm
        self._today = today or date.today

        # city keyword -> (city name, ISO-2 country)
        self.cities = {
            "paris": ("Paris", "FR"),
            "london": ("London", "GB"),
            "rome": ("Rome", "IT"),
            "barcelona": ("Barcelona", "ES"),
            "madrid": ("Madrid", "ES"),
            "amsterdam": ("Amsterdam", "NL"),
            "berlin": ("Berlin", "DE"),
            "lisbon": ("Lisbon", "PT"),
            "tokyo": ("Tokyo", "JP"),
            "kyoto": ("Kyoto", "JP"),
            "bangkok": ("Bangkok", "TH"),
            "singapore": ("Singapore", "SG"),
            "dubai": ("Dubai", "AE"),
            "sydney": ("Sydney", "AU"),
            "new york": ("New York", "US"),
            "nyc": ("New York", "US"),
            "manhattan": ("New York", "US"),
            "los angeles": ("Los Angeles", "US"),
            "san francisco": ("San Francisco", "US"),
            "miami": ("Miami", "US"),
            "chicago": ("Chicago", "US"),
            "las vegas": ("Las Vegas", "US"),
            "vegas": ("Las Vegas", "US"),
            "honolulu": ("Honolulu", "US"),
            "cancun": ("Cancun", "MX"),
            "mexico city": ("Mexico City", "MX"),
        }

        # Country-only queries resolve to a default city
        self.countries = {
            "france": ("Paris", "FR"),
            "italy": ("Rome", "IT"),
            "spain": ("Barcelona", "ES"),
            "japan": ("Tokyo", "JP"),
            "thailand": ("Bangkok", "TH"),
            "portugal": ("Lisbon", "PT"),
            "mexico": ("Cancun", "MX"),
        }

        self.budget_patterns = {
            "range": r"between\s*\$?(\d+(?:,\d{3})*)\s*(?:and|-|to)\s*\$?(\d+(?:,\d{3})*)",
            "max": r"\b(?:under|below|less than|max(?:imum)?|up to)\s*\$?(\d+(?:,\d{3})*)",
            "min": r"\b(?:over|above|more than|at least|min(?:imum)?)\s*\$?(\d+(?:,\d{3})*)",
            "bare": r"\$(\d+(?:,\d{3})*)(?:\s*(?:/|per|a)\s*night)?",
        }

        self.month_names = {
            "jan": 1, "january": 1, "feb": 2, "february": 2,
            "mar": 3, "march": 3, "apr": 4, "april": 4,
            "may": 5, "jun": 6, "june": 6,
            "jul": 7, "july": 7, "aug": 8, "august": 8,
            "sep": 9, "sept": 9, "september": 9, "oct": 10, "october": 10,
            "nov": 11, "november": 11, "dec": 12, "december": 12
        }

        self.word_numbers = {
            "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
            "couple": 2, "pair": 2
        }

    async def resolve(self, text: str, overrides: Optional[Dict[str, Any]] = None) -> SearchParams:
        """
        Resolve a query into SearchParams.

        Args:
            text: User's free-text query
            overrides: Explicit checkin/checkout/adults/children from the request

        Raises:
            ResolutionFailure: empty query or no recognisable destination
        """
        query = (text or "").strip()
        if not query:
            raise ResolutionFailure("Search query is empty")

        query_lower = query.lower()
        fields: Dict[str, Any] = {}

        destination = self._extract_destination(query_lower)
        if destination:
            fields["city_name"], fields["country_code"] = destination
        checkin, checkout = self._extract_dates(query_lower)
        fields["checkin"], fields["checkout"] = checkin, checkout
        fields["min_cost"], fields["max_cost"] = self._extract_budget(query_lower)
        fields["adults"], fields["children"] = self._extract_guests(query_lower)
        fields["ai_search"] = query

        if not destination and self.llm is not None:
            fields.update(await self._llm_assist(query))

        if not fields.get("city_name") or not fields.get("country_code"):
            raise ResolutionFailure(f"Could not find a destination in '{query}'")

        for key, value in (overrides or {}).items():
            if value is not None:
                fields[key] = value

        params = self._normalise(fields, query)
        logger.info(f"Resolved query: city={params.city_name}, {params.checkin}→{params.checkout}, "
                    f"adults={params.adults}, budget={params.min_cost}-{params.max_cost}")
        return params

    # ============================================
    # Extraction
    # ============================================

    def _extract_destination(self, query: str) -> Optional[Tuple[str, str]]:
        # Longest keywords first so "new york" beats "york"-style overlaps
        for keyword in sorted(self.cities, key=len, reverse=True):
            if re.search(rf"\b{re.escape(keyword)}\b", query):
                return self.cities[keyword]
        for keyword, city in self.countries.items():
            if re.search(rf"\b{keyword}\b", query):
                return city
        return None

    def _extract_dates(self, query: str) -> Tuple[Optional[date], Optional[date]]:
        today = self._today()
        checkin: Optional[date] = None
        checkout: Optional[date] = None

        iso = re.findall(r"(\d{4}-\d{2}-\d{2})", query)
        if iso:
            try:
                checkin = date.fromisoformat(iso[0])
                checkout = date.fromisoformat(iso[1]) if len(iso) > 1 else None
            except ValueError:
                checkin, checkout = None, None

        if checkin is None:
            # "Oct 25-27", "March 15 to 18"
            for match in re.finditer(r"([a-z]+)\s+(\d{1,2})(?:st|nd|rd|th)?\s*(?:-|–|to)\s*(\d{1,2})\b", query):
                if match.group(1) not in self.month_names:
                    continue
                month = self.month_names[match.group(1)]
                year = today.year if month >= today.month else today.year + 1
                try:
                    checkin = date(year, month, int(match.group(2)))
                    checkout = date(year, month, int(match.group(3)))
                except ValueError:
                    checkin, checkout = None, None
                break

        if checkin is None:
            for match in re.finditer(r"([a-z]+)\s+(\d{1,2})(?:st|nd|rd|th)?\b", query):
                if match.group(1) not in self.month_names:
                    continue
                month = self.month_names[match.group(1)]
                year = today.year if month >= today.month else today.year + 1
                try:
                    checkin = date(year, month, int(match.group(2)))
                except ValueError:
                    checkin = None
                break

        if checkin is None and "weekend" in query:
            days_until_saturday = (5 - today.weekday()) % 7 or 7
            if "next weekend" in query:
                days_until_saturday += 7
            checkin = today + timedelta(days=days_until_saturday)
            checkout = checkin + timedelta(days=2 if "long weekend" not in query else 3)

        if checkin is None and "next month" in query:
            year, month = (today.year, today.month + 1) if today.month < 12 else (today.year + 1, 1)
            checkin = date(year, month, 1)

        if checkin is None and "tomorrow" in query:
            checkin = today + timedelta(days=1)

        if checkout is None and checkin is not None:
            checkout = checkin + timedelta(days=self._extract_stay_length(query))

        return checkin, checkout

    def _extract_stay_length(self, query: str) -> int:
        match = re.search(r"(\d+|one|two|three|four|five|six)\s*nights?", query)
        if match:
            value = match.group(1)
            return int(value) if value.isdigit() else self.word_numbers[value]
        match = re.search(r"(\d+|one|two|three)\s*weeks?", query)
        if match:
            value = match.group(1)
            return 7 * (int(value) if value.isdigit() else self.word_numbers[value])
        if "a week" in query:
            return 7
        return DEFAULT_STAY_NIGHTS

    def _extract_budget(self, query: str) -> Tuple[Optional[float], Optional[float]]:
        def amount(raw: str) -> float:
            return float(raw.replace(",", ""))

        match = re.search(self.budget_patterns["range"], query)
        if match:
            return amount(match.group(1)), amount(match.group(2))
        min_cost = max_cost = None
        match = re.search(self.budget_patterns["max"], query)
        if match:
            max_cost = amount(match.group(1))
        match = re.search(self.budget_patterns["min"], query)
        if match:
            min_cost = amount(match.group(1))
        if min_cost is None and max_cost is None:
            match = re.search(self.budget_patterns["bare"], query)
            if match:
                max_cost = amount(match.group(1))
        return min_cost, max_cost

    def _extract_guests(self, query: str) -> Tuple[int, int]:
        adults = 2
        match = re.search(r"(\d+|one|two|three|four|five|six)\s*(?:adults?|people|persons?|guests?|travell?ers?)", query)
        if match:
            value = match.group(1)
            adults = int(value) if value.isdigit() else self.word_numbers[value]
        elif re.search(r"\b(solo|alone|by myself|just me)\b", query):
            adults = 1

        children = 0
        match = re.search(r"(\d+|one|two|three|four)\s*(?:kids?|children|child)", query)
        if match:
            value = match.group(1)
            children = int(value) if value.isdigit() else self.word_numbers[value]
        return adults, children

    async def _llm_assist(self, query: str) -> Dict[str, Any]:
        """Ask the LLM for fields the rules missed. Failures resolve to nothing."""
        try:
            data = await self.llm.complete_json(RESOLVE_SYSTEM_PROMPT, f"Request: {query}", max_tokens=300, temperature=0.1)
        except LLMError as e:
            logger.warning(f"Resolver LLM assist failed: {e}")
            return {}

        fields: Dict[str, Any] = {}
        if data.get("cityName") and data.get("countryCode"):
            fields["city_name"] = str(data["cityName"])
            fields["country_code"] = str(data["countryCode"]).upper()[:2]
        for wire, key in (("checkin", "checkin"), ("checkout", "checkout")):
            try:
                if data.get(wire):
                    fields[key] = date.fromisoformat(str(data[wire]))
            except ValueError:
                continue
        for wire, key in (("adults", "adults"), ("children", "children"), ("minCost", "min_cost"), ("maxCost", "max_cost")):
            if isinstance(data.get(wire), (int, float)):
                fields[key] = data[wire]
        if data.get("aiSearch"):
            fields["ai_search"] = str(data["aiSearch"])
        return fields

    # ============================================
    # Normalisation
    # ============================================

    def _normalise(self, fields: Dict[str, Any], query: str) -> SearchParams:
        """Dates in the future, checkout after checkin, stay capped, guests and budget sane"""
        today = self._today()
        tomorrow = today + timedelta(days=1)

        checkin = _as_date(fields.get("checkin"))
        checkout = _as_date(fields.get("checkout"))
        if checkin is None:
            # Default: roughly a month out, three nights
            checkin = today + timedelta(days=30)
        if checkout is None:
            checkout = checkin + timedelta(days=DEFAULT_STAY_NIGHTS)

        if checkin < tomorrow:
            stay = max((checkout - checkin).days, 1)
            try:
                checkin = checkin.replace(year=checkin.year + 1)
            except ValueError:  # Feb 29
                checkin = checkin.replace(year=checkin.year + 1, day=28)
            checkout = checkin + timedelta(days=stay)
            if checkin < tomorrow:
                checkin = tomorrow
                checkout = checkin + timedelta(days=stay)

        if checkout <= checkin:
            checkout = checkin + timedelta(days=1)
        if (checkout - checkin).days > MAX_STAY_NIGHTS:
            checkout = checkin + timedelta(days=MAX_STAY_NIGHTS)

        adults = min(max(int(fields.get("adults") or 1), 1), MAX_ADULTS)
        children = max(int(fields.get("children") or 0), 0)

        min_cost, max_cost = fields.get("min_cost"), fields.get("max_cost")
        if min_cost is not None and min_cost < 0:
            min_cost = None
        if max_cost is not None and max_cost < 0:
            max_cost = None
        if min_cost is not None and max_cost is not None and min_cost > max_cost:
            min_cost, max_cost = max_cost, min_cost

        return SearchParams(
            city_name=fields["city_name"],
            country_code=fields["country_code"],
            checkin=checkin.isoformat(),
            checkout=checkout.isoformat(),
            adults=adults,
            children=children,
            min_cost=min_cost,
            max_cost=max_cost,
            ai_search=fields.get("ai_search") or query,
            raw_query=query,
        )


def _as_date(value: Any) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        return None
