# llm/__init__.py
"""
LLM Components Package

Contains LLM-powered components:
- llm_client: OpenAI / Ollama JSON completions
- query_resolver: Parse free text into SearchParams
- insight_enricher: Generate per-hotel narrative, with template fallback
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .llm_client import LLMClient, LLMError
    from .query_resolver import QueryResolver
    from .insight_enricher import InsightEnricher, build_fallback_narrative

__all__ = [
    "LLMClient",
    "LLMError",
    "QueryResolver",
    "InsightEnricher",
    "build_fallback_narrative",
]
