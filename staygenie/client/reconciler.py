# client/reconciler.py
"""
Client Reconciler
Folds stream events (or a full snapshot) into the working set the UI
shows: one DisplayHotel per hotelId, sorted, placeholders while waiting.

All mutation goes through apply() / load_snapshot() / begin(), and every
call names the session it belongs to. Calls for any other session are
ignored, so a superseded search can never touch the new one's list.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from loguru import logger

from ..errors import DiscoveryError, error_from_code
from ..schemas.search_schemas import (
    PLACEHOLDER_NARRATIVE, BasicFields, HotelPayload, NarrativeFields, is_placeholder_narrative,
)


class DisplayState(str, Enum):
    PLACEHOLDER = "placeholder"
    FOUND = "found"
    ENHANCED = "enhanced"


@dataclass
class DisplayHotel:
    hotel_id: str
    state: DisplayState
    rank: int
    match_score: float
    basic: Optional[BasicFields] = None
    narrative: NarrativeFields = field(default_factory=lambda: PLACEHOLDER_NARRATIVE)

    def sort_key(self):
        return (-self.match_score, self.rank, self.hotel_id)


class HotelListReconciler:
    """Working set for the active search session"""

    def __init__(self):
        self.session_id: Optional[str] = None
        self.search_id: Optional[str] = None
        self.tier: Optional[str] = None
        self.status: str = ""
        self.searching: bool = False
        self.live: bool = False
        self.frozen: bool = False
        self.total_expected: Optional[int] = None
        self.failure: Optional[DiscoveryError] = None
        self.error_message: Optional[str] = None
        self._hotels: Dict[str, DisplayHotel] = {}
        self._found_any = False

    # ============================================
    # Session lifecycle
    # ============================================

    def begin(self, session_id: str, placeholder_count: int = 0, tier: Optional[str] = None) -> None:
        """Start (or restart, for the next tier) a session with a fresh working set"""
        self.session_id = session_id
        self.search_id = None
        self.tier = tier
        self.status = "Searching..."
        self.searching = True
        self.live = False
        self.frozen = False
        self.total_expected = None
        self.failure = None
        self.error_message = None
        self._found_any = False
        self._hotels = {}
        for n in range(placeholder_count):
            hotel_id = f"placeholder-{n + 1}"
            self._hotels[hotel_id] = DisplayHotel(
                hotel_id=hotel_id,
                state=DisplayState.PLACEHOLDER,
                rank=10_000 + n,
                match_score=0.0,
            )

    def discard(self, session_id: str) -> bool:
        """Drop the session and its working set; later calls for it are ignored"""
        if session_id != self.session_id:
            return False
        self.session_id = None
        self.search_id = None
        self.tier = None
        self.status = ""
        self.searching = False
        self.live = False
        self.frozen = True
        self.total_expected = None
        self.failure = None
        self.error_message = None
        self._found_any = False
        self._hotels = {}
        return True

    def set_status(self, session_id: str, message: str) -> bool:
        if session_id != self.session_id:
            return False
        self.status = message
        return True

    def fail(self, session_id: str, error: DiscoveryError, message: str) -> bool:
        if session_id != self.session_id:
            return False
        self.failure = error
        self.error_message = message
        self.status = message
        self.searching = False
        self.frozen = True
        self._drop_placeholders()
        return True

    # ============================================
    # Events
    # ============================================

    def apply(self, session_id: str, event: Any) -> bool:
        """
        Apply one stream event. Returns False when the event was discarded
        (other session, other searchId, unknown type, or after a terminal event).
        """
        if session_id != self.session_id:
            logger.debug(f"Discarding {event.type} for stale session {session_id[:8]}")
            return False

        event_search_id = getattr(event, "search_id", None)
        if event.type == "connected":
            if self.search_id is not None and event_search_id != self.search_id:
                return False
            self.search_id = event_search_id
            self.live = True
            self.status = event.message
            return True

        if self.search_id is not None and event_search_id is not None and event_search_id != self.search_id:
            logger.debug(f"Discarding {event.type} for searchId {event_search_id[:8]}")
            return False
        if self.frozen:
            return False

        handler = getattr(self, f"_on_{event.type}", None)
        if handler is None:
            return False
        return handler(event)

    def _on_progress(self, event) -> bool:
        self.status = event.message
        return True

    def _on_hotel_found(self, event) -> bool:
        if not self._found_any:
            self._drop_placeholders()
            self._found_any = True
        self.total_expected = event.total_expected

        hotel: HotelPayload = event.hotel
        existing = self._hotels.get(hotel.hotel_id)
        if existing is not None and existing.state == DisplayState.ENHANCED:
            # Enhancement arrived first; keep its narrative
            existing.rank = hotel.rank
            existing.match_score = hotel.match_score
            existing.basic = hotel.basic
            return True

        self._hotels[hotel.hotel_id] = DisplayHotel(
            hotel_id=hotel.hotel_id,
            state=DisplayState.FOUND,
            rank=hotel.rank,
            match_score=hotel.match_score,
            basic=hotel.basic,
            narrative=PLACEHOLDER_NARRATIVE,
        )
        return True

    def _on_hotel_enhanced(self, event) -> bool:
        narrative = event.hotel.narrative
        if is_placeholder_narrative(narrative):
            return False
        if not self._found_any:
            self._drop_placeholders()
            self._found_any = True

        existing = self._hotels.get(event.hotel_id)
        if existing is None:
            self._hotels[event.hotel_id] = DisplayHotel(
                hotel_id=event.hotel_id,
                state=DisplayState.ENHANCED,
                rank=event.hotel.rank,
                match_score=event.hotel.match_score,
                basic=event.hotel.basic,
                narrative=narrative,
            )
            return True

        existing.narrative = narrative
        existing.state = DisplayState.ENHANCED
        if existing.basic is None:
            existing.basic = event.hotel.basic
        return True

    def _on_complete(self, event) -> bool:
        self.search_id = event.search_id
        self.searching = False
        self.frozen = True
        self.status = f"Found {event.total_hotels} hotels"
        self._drop_placeholders()
        return True

    def _on_error(self, event) -> bool:
        self.failure = error_from_code(event.code, event.message)
        self.error_message = event.message
        self.searching = False
        self.frozen = True
        return True

    # ============================================
    # Snapshots (tiers 2 and 3, refresh)
    # ============================================

    def load_snapshot(self, session_id: str, hotels: List[HotelPayload], search_id: Optional[str] = None) -> bool:
        """Replace the working set with a complete result"""
        if session_id != self.session_id:
            return False
        self._hotels = {}
        for hotel in hotels:
            enhanced = not is_placeholder_narrative(hotel.narrative)
            self._hotels[hotel.hotel_id] = DisplayHotel(
                hotel_id=hotel.hotel_id,
                state=DisplayState.ENHANCED if enhanced else DisplayState.FOUND,
                rank=hotel.rank,
                match_score=hotel.match_score,
                basic=hotel.basic,
                narrative=hotel.narrative if enhanced else PLACEHOLDER_NARRATIVE,
            )
        self._found_any = True
        self.search_id = search_id or self.search_id
        self.total_expected = len(hotels)
        self.searching = False
        self.frozen = True
        self.status = f"Found {len(hotels)} hotels"
        return True

    # ============================================
    # Views
    # ============================================

    def visible(self) -> List[DisplayHotel]:
        """Hotels in display order: match score desc, rank asc, hotelId"""
        return sorted(self._hotels.values(), key=DisplayHotel.sort_key)

    def get(self, hotel_id: str) -> Optional[DisplayHotel]:
        return self._hotels.get(hotel_id)

    @property
    def has_placeholders(self) -> bool:
        return any(h.state == DisplayState.PLACEHOLDER for h in self._hotels.values())

    def _drop_placeholders(self) -> None:
        self._hotels = {k: v for k, v in self._hotels.items() if v.state != DisplayState.PLACEHOLDER}
