"""Match strategies for "more like this" facet matching.

The strategy decides the precision/recall tradeoff of facet matching and
is injected into the matcher, so it can be swapped or tuned without
touching the matcher or the assembler.
"""

import re
from collections.abc import Sequence
from typing import Protocol

from src.facets.models import FacetGroup, FacetMatch


# Values this short match too much of unrelated text
MIN_VALUE_LENGTH = 3

DEFAULT_MATCH_LIMIT = 2


class MatchStrategy(Protocol):
    """Protocol for facet match strategies."""

    def match(
        self,
        text: str,
        groups: Sequence[FacetGroup],
        topic_name: str,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> list[FacetMatch]:
        """Find facet values present in text.

        Args:
            text: Lower-cased story text.
            groups: Candidate groups in preference order.
            topic_name: Display name of the topic (never matched).
            limit: Maximum number of matches to return.

        Returns:
            Ordered matches, at most ``limit`` long.
        """
        ...


def _eligible_values(group: FacetGroup, topic_name: str) -> list[str]:
    """Get the stripped values of a group that may be matched.

    Values of length <= 2 and the topic's own name are skipped so a topic
    never matches itself.
    """
    topic_lower = topic_name.strip().lower()
    eligible: list[str] = []
    for raw in group.values:
        value = str(raw or "").strip()
        if len(value) < MIN_VALUE_LENGTH:
            continue
        if topic_lower and value.lower() == topic_lower:
            continue
        eligible.append(value)
    return eligible


def _word_boundary_pattern(value: str) -> re.Pattern[str]:
    """Compile a case-insensitive whole-word pattern for a facet value."""
    return re.compile(rf"\b{re.escape(value.lower())}\b", re.IGNORECASE)


class WordBoundaryOnlyStrategy:
    """Precision-only strategy: whole-word matches, no substring fallback."""

    def match(
        self,
        text: str,
        groups: Sequence[FacetGroup],
        topic_name: str,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> list[FacetMatch]:
        """Find whole-word facet matches in preference order."""
        matches: list[FacetMatch] = []
        for group in groups:
            for value in _eligible_values(group, topic_name):
                if _word_boundary_pattern(value).search(text):
                    matches.append(FacetMatch(group.facet_type, value))
                    if len(matches) >= limit:
                        return matches
        return matches


class TwoPassMatchStrategy:
    """Word-boundary matches first, substring containment as a fallback.

    Pass 1 collects whole-word matches in group order. Pass 2 runs only
    when pass 1 found fewer than ``limit`` matches and accepts any plain
    substring overlap, skipping values already matched. This favors
    precise matches but still returns something whenever any textual
    overlap exists.
    """

    def __init__(self) -> None:
        """Initialize the strategy with its precise first pass."""
        self._precise = WordBoundaryOnlyStrategy()

    def match(
        self,
        text: str,
        groups: Sequence[FacetGroup],
        topic_name: str,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> list[FacetMatch]:
        """Find facet matches with a substring fallback."""
        text = text.lower()
        matches = self._precise.match(text, groups, topic_name, limit)
        if len(matches) >= limit:
            return matches

        matched = {m.value.lower() for m in matches}
        for group in groups:
            for value in _eligible_values(group, topic_name):
                if value.lower() in matched:
                    continue
                if value.lower() in text:
                    matches.append(FacetMatch(group.facet_type, value))
                    matched.add(value.lower())
                    if len(matches) >= limit:
                        return matches
        return matches
