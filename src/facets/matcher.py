"""Facet matcher backing the "more like this" action."""

import structlog

from src.content.models import Story, Topic
from src.facets.models import FacetGroup, FacetMatch, FacetType
from src.facets.strategy import (
    DEFAULT_MATCH_LIMIT,
    MatchStrategy,
    TwoPassMatchStrategy,
)


logger = structlog.get_logger()


class FacetMatcher:
    """Matches a story's text against a topic's facet lists.

    Landmarks are checked first, then organizations, then keywords, so the
    more specific facets win when both are present.
    """

    def __init__(
        self,
        topic: Topic,
        strategy: MatchStrategy | None = None,
        limit: int = DEFAULT_MATCH_LIMIT,
    ) -> None:
        """Initialize the matcher.

        Args:
            topic: Topic whose facets are matched.
            strategy: Match strategy (default: two-pass).
            limit: Maximum matches per story.
        """
        self._topic = topic
        self._strategy: MatchStrategy = strategy or TwoPassMatchStrategy()
        self._limit = limit
        self._groups = (
            FacetGroup(FacetType.LANDMARK, tuple(topic.landmarks)),
            FacetGroup(FacetType.ORGANIZATION, tuple(topic.organizations)),
            FacetGroup(FacetType.KEYWORD, tuple(topic.keywords)),
        )
        self._log = logger.bind(component="facets", topic_id=topic.id)

    @property
    def groups(self) -> tuple[FacetGroup, ...]:
        """Get candidate groups in preference order."""
        return self._groups

    def compute_matches(self, story: Story) -> list[FacetMatch]:
        """Find up to ``limit`` facet values present in a story.

        Args:
            story: Story to match.

        Returns:
            Ordered matches; empty when the story shares no text with any
            facet value.
        """
        matches = self._strategy.match(
            story.text, self._groups, self._topic.name, self._limit
        )
        self._log.debug(
            "facet_matches_computed",
            story_id=story.id,
            matches=[f"{m.facet_type.value}:{m.value}" for m in matches],
        )
        return matches
