# interfaces/__init__.py
"""
External Interfaces Package

- hotel_provider: LiteAPI client and the offline catalogue
- search_store: Finished searches in Redis (in-memory fallback)
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .hotel_provider import HotelProvider, LiteApiProvider, StaticCatalogueProvider, create_hotel_provider
    from .search_store import SearchStore

__all__ = [
    "HotelProvider",
    "LiteApiProvider",
    "StaticCatalogueProvider",
    "create_hotel_provider",
    "SearchStore",
]
