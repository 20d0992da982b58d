# client/__init__.py
"""
Search Client Package

- sse: Event-stream decoding
- reconciler: DisplayHotel working set
- search_client: Session ownership and the fallback ladder
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .reconciler import HotelListReconciler, DisplayHotel, DisplayState
    from .search_client import HotelSearchClient, SearchOutcome, StreamingTier, TwoStageTier, LegacyTier

__all__ = [
    "HotelListReconciler",
    "DisplayHotel",
    "DisplayState",
    "HotelSearchClient",
    "SearchOutcome",
    "StreamingTier",
    "TwoStageTier",
    "LegacyTier",
]
