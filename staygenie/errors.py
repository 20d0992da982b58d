# errors.py
"""
Typed failures for the discovery pipeline.

Every failure carries a stable ``code`` that is used verbatim on the wire
(``error`` events, HTTP error bodies) and by the client to decide whether the
fallback ladder continues.
"""

from typing import Optional


class DiscoveryError(Exception):
    """Base class for all discovery failures"""
    code: str = "internal_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class ResolutionFailure(DiscoveryError):
    """The free-text query could not be turned into search parameters"""
    code = "resolution_failure"


class NoCandidates(DiscoveryError):
    """Resolution succeeded but no hotels came back"""
    code = "no_candidates"

    def __init__(self, message: str = "", reason: str = "empty"):
        super().__init__(message or f"No hotels found ({reason})")
        self.reason = reason


class EnrichmentFailure(DiscoveryError):
    """One hotel's enrichment failed. Handled inside the enricher."""
    code = "enrichment_failure"

    def __init__(self, hotel_id: str, message: str = ""):
        super().__init__(message or f"Enrichment failed for {hotel_id}")
        self.hotel_id = hotel_id


class TransportFailure(DiscoveryError):
    """Client-side transport problem; triggers the next fallback tier"""
    code = "transport_failure"

    KINDS = ("timeout", "network", "malformed", "server_error")

    def __init__(self, kind: str, message: str = "", status_code: Optional[int] = None):
        if kind not in self.KINDS:
            raise ValueError(f"Unknown transport failure kind: {kind}")
        super().__init__(message or f"Transport failure: {kind}")
        self.kind = kind
        self.status_code = status_code


class SessionSupersededFailure(DiscoveryError):
    """A newer search replaced this session. Never shown to the user."""
    code = "superseded"


# Codes that end the fallback ladder: retrying another tier gives the same answer
TERMINAL_CODES = (ResolutionFailure.code, NoCandidates.code)


def error_from_code(code: str, message: str) -> DiscoveryError:
    """Rebuild a typed failure from a wire ``code``"""
    if code == ResolutionFailure.code:
        return ResolutionFailure(message)
    if code == NoCandidates.code:
        return NoCandidates(message)
    return DiscoveryError(message)
