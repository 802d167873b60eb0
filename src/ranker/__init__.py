"""Engagement ranking for roundup digests.

Orders a roundup's fixed story set by weighted interaction counts, with
recency as the tie-break.
"""

from src.ranker.constants import INTERACTION_WEIGHTS
from src.ranker.metrics import RankerMetrics
from src.ranker.models import RankedStory, RankerResult
from src.ranker.ranker import (
    EngagementRanker,
    RoundupUnavailableError,
    rank_stories_pure,
)


__all__ = [
    "INTERACTION_WEIGHTS",
    "EngagementRanker",
    "RankedStory",
    "RankerMetrics",
    "RankerResult",
    "RoundupUnavailableError",
    "rank_stories_pure",
]
