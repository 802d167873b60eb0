"""Facet index and matcher.

Derives matchable keywords, landmarks, organizations and source domains
for a topic and matches them against story text.
"""

from src.facets.index import FacetIndex
from src.facets.matcher import FacetMatcher
from src.facets.models import FacetCount, FacetGroup, FacetMatch, FacetType
from src.facets.prefetch import PrefetchCache, facet_signature
from src.facets.strategy import (
    MatchStrategy,
    TwoPassMatchStrategy,
    WordBoundaryOnlyStrategy,
)
from src.facets.url import extract_source_domain


__all__ = [
    "FacetCount",
    "FacetGroup",
    "FacetIndex",
    "FacetMatch",
    "FacetMatcher",
    "FacetType",
    "MatchStrategy",
    "PrefetchCache",
    "TwoPassMatchStrategy",
    "WordBoundaryOnlyStrategy",
    "extract_source_domain",
    "facet_signature",
]
