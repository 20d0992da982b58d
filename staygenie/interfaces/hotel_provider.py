# interfaces/hotel_provider.py
"""
Hotel data providers for stage 1.

Two calls per search, both shaped like the LiteAPI v3 payloads:
- fetch_hotels: hotel metadata for a city
- fetch_rates: room rates for a list of hotel ids and dates

LiteApiProvider talks to the real API over httpx; StaticCatalogueProvider
serves a small built-in catalogue for offline runs and tests.
"""

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from ..config import settings
from ..schemas.search_schemas import SearchParams


class ProviderError(Exception):
    """Upstream returned something unusable"""


def hotel_id_of(hotel: Dict[str, Any]) -> Optional[str]:
    for key in ("id", "hotelId", "hotel_id", "code"):
        if hotel.get(key):
            return str(hotel[key])
    return None


def _as_list(payload: Any) -> List[Dict[str, Any]]:
    """Unwrap the list from `{data: [...]}` / `{hotels: [...]}` / bare list payloads"""
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("data", "hotels", "results"):
            value = payload.get(key)
            if isinstance(value, list):
                return value
            if isinstance(value, dict):
                return _as_list(value)
        if payload:
            return [payload]
        return []
    raise ProviderError(f"Unexpected provider payload: {type(payload).__name__}")


class HotelProvider:
    """Interface for stage 1 data sources"""

    name = "base"

    async def fetch_hotels(self, city_name: str, country_code: str, limit: int) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def fetch_rates(self, hotel_ids: List[str], params: SearchParams) -> List[Dict[str, Any]]:
        raise NotImplementedError

    async def close(self) -> None:
        return None


# ============================================
# LiteAPI
# ============================================

class LiteApiProvider(HotelProvider):
    """LiteAPI v3 client"""

    name = "liteapi"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client = httpx.AsyncClient(
            base_url=base_url or settings.LITEAPI_BASE_URL,
            headers={
                "X-API-Key": api_key or settings.LITEAPI_KEY,
                "accept": "application/json",
            },
            timeout=timeout or settings.LITEAPI_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def fetch_hotels(self, city_name: str, country_code: str, limit: int) -> List[Dict[str, Any]]:
        response = await self.client.get(
            "/data/hotels",
            params={
                "countryCode": country_code,
                "cityName": city_name,
                "language": "en",
                "limit": limit,
            },
        )
        response.raise_for_status()
        hotels = _as_list(response.json())
        logger.info(f"LiteAPI: {len(hotels)} hotels in {city_name}, {country_code}")
        return hotels

    async def fetch_rates(self, hotel_ids: List[str], params: SearchParams) -> List[Dict[str, Any]]:
        if not hotel_ids:
            return []
        response = await self.client.post(
            "/hotels/rates",
            json={
                "checkin": params.checkin,
                "checkout": params.checkout,
                "currency": "USD",
                "guestNationality": "US",
                "occupancies": [
                    {
                        "adults": params.adults,
                        "children": [10] * params.children,
                    }
                ],
                "timeout": 10,
                "hotelIds": hotel_ids,
            },
        )
        response.raise_for_status()
        rates = _as_list(response.json())
        logger.info(f"LiteAPI: rates for {len(rates)}/{len(hotel_ids)} hotels")
        return rates

    async def close(self) -> None:
        await self.client.aclose()


# ============================================
# Static catalogue (offline)
# ============================================

def _catalogue_hotel(hotel_id, name, city, country, address, lat, lng, stars, nightly, refundable, amenities, description):
    return {
        "id": hotel_id,
        "name": name,
        "city": city,
        "country": country,
        "address": address,
        "latitude": lat,
        "longitude": lng,
        "stars": stars,
        "hotelDescription": description,
        "main_photo": f"https://static.staygenie.app/hotels/{hotel_id}/main.jpg",
        "thumbnail": f"https://static.staygenie.app/hotels/{hotel_id}/thumb.jpg",
        "hotelImages": [
            {"urlHd": f"https://static.staygenie.app/hotels/{hotel_id}/{n}.jpg"} for n in range(1, 5)
        ],
        "amenities": amenities,
        "_nightly": nightly,
        "_refundable": refundable,
    }


CATALOGUE: Dict[str, List[Dict[str, Any]]] = {
    "paris|FR": [
        _catalogue_hotel("lp-paris-01", "Hôtel Lumière Saint-Germain", "Paris", "fr", "12 Rue de Buci", 48.8534, 2.3364, 4, 240.0, True,
                         ["Wi-Fi", "Bar", "Breakfast", "Air Conditioning", "Concierge"],
                         "Boutique hotel on the Left Bank with a cosy bar and breakfast served in a vaulted cellar."),
        _catalogue_hotel("lp-paris-02", "Le Grand Palais Royal", "Paris", "fr", "5 Place du Palais Royal", 48.8638, 2.3364, 5, 620.0, True,
                         ["Spa", "Pool", "Restaurant", "Fitness Center", "Wi-Fi", "Room Service"],
                         "Luxury palace hotel facing the Louvre with an indoor pool, spa and Michelin-starred restaurant."),
        _catalogue_hotel("lp-paris-03", "Montmartre Artist Loft", "Paris", "fr", "18 Rue Lepic", 48.8856, 2.3336, 3, 150.0, False,
                         ["Wi-Fi", "Kitchenette", "Terrace"],
                         "Quiet design loft near Sacré-Cœur with a rooftop terrace and city views."),
        _catalogue_hotel("lp-paris-04", "Hôtel Marais Central", "Paris", "fr", "40 Rue de Rivoli", 48.8559, 2.3580, 3, 185.0, True,
                         ["Wi-Fi", "Air Conditioning", "24-hour Front Desk"],
                         "Central hotel in the Marais close to museums, shops and nightlife."),
        _catalogue_hotel("lp-paris-05", "Eiffel View Suites", "Paris", "fr", "3 Avenue de Suffren", 48.8556, 2.2930, 4, 310.0, True,
                         ["Wi-Fi", "Restaurant", "Family Rooms", "Air Conditioning"],
                         "Family-friendly suites with Eiffel Tower views and connecting rooms."),
        _catalogue_hotel("lp-paris-06", "Gare du Nord Budget Inn", "Paris", "fr", "2 Rue de Dunkerque", 48.8809, 2.3553, 2, 95.0, False,
                         ["Wi-Fi"],
                         "Simple rooms next to the Eurostar terminal."),
    ],
    "tokyo|JP": [
        _catalogue_hotel("lp-tokyo-01", "Shinjuku Skyline Hotel", "Tokyo", "jp", "2-7 Nishi-Shinjuku", 35.6895, 139.6917, 4, 210.0, True,
                         ["Wi-Fi", "Fitness Center", "Bar", "Restaurant"],
                         "High-rise business hotel with panoramic views and a rooftop bar."),
        _catalogue_hotel("lp-tokyo-02", "Asakusa Ryokan Sakura", "Tokyo", "jp", "1-3 Asakusa", 35.7148, 139.7967, 3, 160.0, True,
                         ["Wi-Fi", "Onsen", "Breakfast"],
                         "Traditional ryokan near Senso-ji temple with a quiet garden and Japanese breakfast."),
        _catalogue_hotel("lp-tokyo-03", "Ginza Grand Residence", "Tokyo", "jp", "6-10 Ginza", 35.6717, 139.7650, 5, 540.0, True,
                         ["Spa", "Pool", "Restaurant", "Concierge", "Wi-Fi"],
                         "Luxury hotel in Ginza steps from shopping streets, with spa and indoor pool."),
        _catalogue_hotel("lp-tokyo-04", "Shibuya Capsule Pod", "Tokyo", "jp", "1-1 Dogenzaka", 35.6580, 139.6986, 2, 60.0, False,
                         ["Wi-Fi", "Lounge"],
                         "Capsule hotel in the middle of Shibuya nightlife."),
        _catalogue_hotel("lp-tokyo-05", "Odaiba Bay Family Resort", "Tokyo", "jp", "1-9 Daiba", 35.6267, 139.7756, 4, 280.0, True,
                         ["Pool", "Family Rooms", "Restaurant", "Wi-Fi", "Parking"],
                         "Waterfront resort with a family pool near Tokyo Bay attractions."),
    ],
    "new york|US": [
        _catalogue_hotel("lp-nyc-01", "Midtown Meridian", "New York", "us", "151 W 54th St", 40.7644, -73.9819, 4, 330.0, True,
                         ["Wi-Fi", "Fitness Center", "Business Center", "Bar"],
                         "Business hotel near Central Park with meeting rooms and a lobby bar."),
        _catalogue_hotel("lp-nyc-02", "SoHo Loft House", "New York", "us", "68 Greene St", 40.7236, -74.0006, 4, 410.0, False,
                         ["Wi-Fi", "Rooftop Bar", "Room Service"],
                         "Design loft hotel in SoHo close to boutiques and galleries, with a rooftop bar."),
        _catalogue_hotel("lp-nyc-03", "Brooklyn Bridge Inn", "New York", "us", "25 Old Fulton St", 40.7029, -73.9937, 3, 220.0, True,
                         ["Wi-Fi", "Breakfast", "Pet Friendly"],
                         "Pet-friendly inn by the Brooklyn Bridge park with skyline views."),
        _catalogue_hotel("lp-nyc-04", "Central Park Grand", "New York", "us", "768 5th Ave", 40.7646, -73.9743, 5, 780.0, True,
                         ["Spa", "Restaurant", "Concierge", "Fitness Center", "Wi-Fi"],
                         "Luxury landmark hotel on Fifth Avenue overlooking Central Park, with spa."),
        _catalogue_hotel("lp-nyc-05", "Times Square Budget Stay", "New York", "us", "234 W 42nd St", 40.7566, -73.9885, 2, 140.0, False,
                         ["Wi-Fi", "24-hour Front Desk"],
                         "Compact rooms in the middle of Times Square and Broadway theatres."),
    ],
}


class StaticCatalogueProvider(HotelProvider):
    """Built-in hotels for Paris, Tokyo and New York"""

    name = "catalogue"

    def __init__(self, catalogue: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.catalogue = catalogue if catalogue is not None else CATALOGUE

    async def fetch_hotels(self, city_name: str, country_code: str, limit: int) -> List[Dict[str, Any]]:
        key = f"{city_name.lower()}|{country_code.upper()}"
        hotels = self.catalogue.get(key, [])
        logger.info(f"Catalogue: {len(hotels)} hotels in {city_name}, {country_code}")
        return [dict(h) for h in hotels[:limit]]

    async def fetch_rates(self, hotel_ids: List[str], params: SearchParams) -> List[Dict[str, Any]]:
        wanted = set(hotel_ids)
        rates = []
        for hotels in self.catalogue.values():
            for hotel in hotels:
                if hotel["id"] not in wanted or "_nightly" not in hotel:
                    continue
                rates.append(self._rate_entry(hotel, params))
        return rates

    def _rate_entry(self, hotel: Dict[str, Any], params: SearchParams) -> Dict[str, Any]:
        nightly = hotel["_nightly"] * (1 + 0.15 * max(params.adults - 2, 0))
        total = round(nightly * params.nights, 2)
        tag = "RFN" if hotel["_refundable"] else "NRF"
        return {
            "hotelId": hotel["id"],
            "roomTypes": [
                {
                    "rates": [
                        {
                            "retailRate": {
                                "total": [{"amount": total, "currency": "USD"}],
                                "suggestedSellingPrice": [{"amount": round(total * 1.08, 2), "source": "catalogue"}],
                            },
                            "cancellationPolicies": {"refundableTag": tag},
                        }
                    ]
                }
            ],
        }


def create_hotel_provider() -> HotelProvider:
    """Provider selected by configuration"""
    if settings.USE_STUB_PROVIDERS or not settings.LITEAPI_KEY:
        logger.info("Hotel provider: static catalogue")
        return StaticCatalogueProvider()
    logger.info(f"Hotel provider: LiteAPI ({settings.LITEAPI_BASE_URL})")
    return LiteApiProvider()
