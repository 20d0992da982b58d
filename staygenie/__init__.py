# staygenie/__init__.py
"""
StayGenie Discovery Service Package

Progressive two-stage hotel discovery:
- Stage 1: free-text query -> structured params -> ranked candidates
- Stage 2: per-hotel AI insights pushed in place
- One Server-Sent Events stream per search
- A client reconciler with a three-tier fallback ladder
"""

__version__ = "1.0.0"

# Package structure:
# staygenie/
# ├── __init__.py           <- This file
# ├── main.py               <- FastAPI application entry
# ├── config.py             <- Configuration settings
# ├── errors.py             <- Typed failures
# │
# ├── agents/               <- Pipeline orchestration
# │   ├── candidate_matcher.py   <- Stage 1 retrieval + ranking
# │   ├── stream_coordinator.py  <- Session state machine / event sink
# │   └── search_pipeline.py     <- Wiring + stream/two-stage/legacy ops
# │
# ├── algorithms/           <- Scoring
# │   └── match_scorer.py
# │
# ├── api/                  <- FastAPI Routers
# │   ├── search.py         <- /api/hotels/...
# │   ├── health.py         <- /health
# │   └── sse.py            <- Event-stream framing
# │
# ├── client/               <- Consumer side
# │   ├── sse.py            <- Event-stream parsing
# │   ├── reconciler.py     <- DisplayHotel working set
# │   └── search_client.py  <- Fallback ladder
# │
# ├── interfaces/           <- Upstream providers and stores
# │   ├── hotel_provider.py
# │   └── search_store.py
# │
# ├── llm/                  <- LLM Components
# │   ├── llm_client.py
# │   ├── query_resolver.py
# │   └── insight_enricher.py
# │
# ├── schemas/              <- Pydantic Models
# │   └── search_schemas.py
# │
# └── utils/
#     └── step_timer.py
