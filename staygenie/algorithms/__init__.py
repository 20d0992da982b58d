# algorithms/__init__.py
"""
Scoring Algorithms Package

- match_scorer: 0-100 match score of a hotel against a resolved search
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .match_scorer import score_hotel, MatchScoreBreakdown, extract_preferences

__all__ = [
    "score_hotel",
    "MatchScoreBreakdown",
    "extract_preferences",
]
