# schemas/search_schemas.py
"""
Pydantic v2 schemas for the StayGenie discovery service.
Covers search parameters, stage 1 matches, stage 2 narratives,
the streamed event union and the synchronous API payloads.

Python attributes are snake_case; the wire format is camelCase.
"""

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field
from pydantic.alias_generators import to_camel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase field names"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ============================================
# Stage 0: Query resolution
# ============================================

class SearchParams(CamelModel):
    """Structured search parameters resolved from free text"""
    city_name: str
    country_code: str
    checkin: str                      # ISO date YYYY-MM-DD
    checkout: str
    adults: int = Field(default=2, ge=1)
    children: int = Field(default=0, ge=0)
    min_cost: Optional[float] = None  # per night
    max_cost: Optional[float] = None
    ai_search: str = ""               # leftover preference text
    raw_query: str = ""

    @computed_field
    @property
    def nights(self) -> int:
        try:
            delta = date.fromisoformat(self.checkout) - date.fromisoformat(self.checkin)
            return max(delta.days, 1)
        except ValueError:
            return 1


class SearchSession(BaseModel):
    """One search from one client request"""
    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    query: str
    resolved_params: Optional[SearchParams] = None
    expected_count: Optional[int] = None
    created_at: datetime = Field(default_factory=_utcnow)

    def set_expected_count(self, count: int) -> None:
        """Fix the number of hotels this session will stream. Only once."""
        if self.expected_count is not None:
            raise ValueError(f"expected_count already set for session {self.session_id}")
        self.expected_count = count


# ============================================
# Stage 1: Matches
# ============================================

class PriceSummary(CamelModel):
    amount: float                     # per night
    total_amount: float
    currency: str = "USD"
    display: str = ""
    provider: Optional[str] = None
    is_supplier_price: bool = False


class BasicFields(CamelModel):
    """Hotel fields known at stage 1"""
    name: str
    images: List[str] = Field(default_factory=list)
    price_per_night: Optional[PriceSummary] = None
    address: str = ""
    city: str = ""
    country: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    star_rating: Optional[float] = None
    amenities: List[str] = Field(default_factory=list)
    top_amenities: List[str] = Field(default_factory=list)
    description: str = ""
    is_refundable: bool = False
    refundable_tag: Optional[str] = None
    refundable_info: str = ""


class MatchResult(CamelModel):
    """A ranked candidate. Immutable once created."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    hotel_id: str
    rank: int = Field(ge=1)
    match_score: float = Field(ge=0, le=100)
    basic: BasicFields


# ============================================
# Stage 2: Narrative
# ============================================

class NarrativeFields(CamelModel):
    why_it_matches: str
    guest_insights: str
    highlights: List[str] = Field(default_factory=list)
    nearby_attractions: List[str] = Field(default_factory=list)
    location_highlight: str = ""


class EnrichmentResult(CamelModel):
    hotel_id: str
    narrative: NarrativeFields
    produced_at: datetime = Field(default_factory=_utcnow)
    is_fallback: bool = False


PLACEHOLDER_NARRATIVE = NarrativeFields(
    why_it_matches="AI match analysis in progress...",
    guest_insights="Loading guest insights...",
    highlights=["Loading interesting facts..."],
    nearby_attractions=["Finding nearby attractions..."],
    location_highlight="Analyzing location advantages...",
)


def is_placeholder_narrative(narrative: Optional[NarrativeFields]) -> bool:
    """True when the narrative is absent or still the in-progress text"""
    return narrative is None or narrative == PLACEHOLDER_NARRATIVE


class HotelPayload(CamelModel):
    """Hotel as carried by hotel_found / hotel_enhanced and the sync routes"""
    hotel_id: str
    rank: int
    match_score: float
    basic: BasicFields
    narrative: Optional[NarrativeFields] = None

    @classmethod
    def from_match(cls, match: MatchResult, narrative: Optional[NarrativeFields] = None) -> "HotelPayload":
        return cls(
            hotel_id=match.hotel_id,
            rank=match.rank,
            match_score=match.match_score,
            basic=match.basic,
            narrative=narrative,
        )


# ============================================
# Stream events
# ============================================

class CoordinatorState(str, Enum):
    STARTING = "starting"
    MATCHING = "matching"
    STREAMING = "streaming"
    DRAINING = "draining"
    COMPLETE = "complete"
    ERRORED = "errored"


class ConnectedEvent(CamelModel):
    type: Literal["connected"] = "connected"
    message: str = "Connected to hotel search stream"
    search_id: str


class ProgressEvent(CamelModel):
    type: Literal["progress"] = "progress"
    step: int
    total_steps: int
    message: str
    search_id: str


class HotelFoundEvent(CamelModel):
    type: Literal["hotel_found"] = "hotel_found"
    hotel: HotelPayload
    hotel_index: int                  # 1-based, equals rank
    total_expected: int
    search_id: str


class HotelEnhancedEvent(CamelModel):
    type: Literal["hotel_enhanced"] = "hotel_enhanced"
    hotel_id: str
    hotel: HotelPayload
    hotel_index: int
    search_id: str


class CompleteEvent(CamelModel):
    type: Literal["complete"] = "complete"
    search_id: str
    total_hotels: int
    enhanced_hotels: int


class ErrorEvent(CamelModel):
    type: Literal["error"] = "error"
    message: str
    code: str = "internal_error"
    search_id: Optional[str] = None


StreamEvent = Annotated[
    Union[ConnectedEvent, ProgressEvent, HotelFoundEvent, HotelEnhancedEvent, CompleteEvent, ErrorEvent],
    Field(discriminator="type"),
]

stream_event_adapter: TypeAdapter = TypeAdapter(StreamEvent)

TERMINAL_EVENT_TYPES = ("complete", "error")   # nothing follows these on a stream


def parse_stream_event(payload: Dict[str, Any]):
    """Validate a decoded event dict into its typed model"""
    return stream_event_adapter.validate_python(payload)


# ============================================
# Synchronous API payloads
# ============================================

class SearchRequest(CamelModel):
    user_input: str
    checkin: Optional[str] = None
    checkout: Optional[str] = None
    adults: Optional[int] = None
    children: Optional[int] = None


class StepTiming(CamelModel):
    step: str
    duration_ms: float
    status: str


class PerformanceReport(CamelModel):
    total_time_ms: float
    steps: List[StepTiming] = Field(default_factory=list)


class TwoStageResponse(CamelModel):
    search_id: str
    search_params: SearchParams
    hotels: List[HotelPayload]
    matched_hotels_count: int
    enhanced_hotels_count: int
    generated_at: datetime = Field(default_factory=_utcnow)
    performance: Optional[PerformanceReport] = None


class LegacySearchResponse(CamelModel):
    search_id: str
    search_params: SearchParams
    hotels: List[HotelPayload]
    total_hotels: int
    generated_at: datetime = Field(default_factory=_utcnow)


class InsightsRequest(CamelModel):
    hotels: List[MatchResult] = Field(..., min_length=1)
    user_input: str = ""


class InsightsResponse(CamelModel):
    insights: List[EnrichmentResult]
    total_hotels: int
    fallback_count: int


class StoredSearch(CamelModel):
    """Finished search as kept in the search store"""
    search_id: str
    query: str
    search_params: Optional[SearchParams] = None
    hotels: List[HotelPayload] = Field(default_factory=list)
    total_hotels: int = 0
    enhanced_hotels: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
