"""Facet index over loaded stories.

Counts which topic-configured facet values appear in the loaded stories
and decides whether a story satisfies a facet selection.
"""

from collections import Counter
from collections.abc import Collection, Iterable, Mapping

from src.content.models import Story, Topic
from src.facets.models import FacetCount, FacetType
from src.facets.url import extract_source_domain


class FacetIndex:
    """Derives matchable facet values for a topic.

    Built once per topic load. Keyword, landmark and organization values
    come from the topic configuration; source domains are observed from
    the stories themselves.
    """

    def __init__(self, topic: Topic) -> None:
        """Initialize the index.

        Args:
            topic: Topic whose facet lists are indexed.
        """
        self._topic = topic
        self._configured: dict[FacetType, tuple[str, ...]] = {
            FacetType.KEYWORD: tuple(topic.keywords),
            FacetType.LANDMARK: tuple(topic.landmarks),
            FacetType.ORGANIZATION: tuple(topic.organizations),
        }

    def configured_values(self, facet_type: FacetType) -> tuple[str, ...]:
        """Get topic-configured values for a facet (empty for sources)."""
        return self._configured.get(facet_type, ())

    def available(
        self, facet_type: FacetType, stories: Iterable[Story]
    ) -> list[FacetCount]:
        """Count facet values observed in loaded stories.

        Keyword, landmark and organization values count every occurrence in
        the story text; sources count stories. Only values seen at least once
        are returned, sorted by count descending and then by value.


        Args:
            facet_type: Facet to count.
            stories: Currently loaded stories.

        Returns:
            Observed values with their counts.
        """
        counts: Counter[str] = Counter()

        if facet_type == FacetType.SOURCE:
            for story in stories:
                domain = self.source_domain(story)
                if domain:
                    counts[domain] += 1
        else:
            values = [v for v in self._configured[facet_type] if v.strip()]
            for story in stories:
                text = story.text
                for value in values:
                    hits = text.count(value.strip().lower())
                    if hits:
                        counts[value] += hits

        ordered = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0].lower()))
        return [FacetCount(value=value, count=count) for value, count in ordered]

    @staticmethod
    def source_domain(story: Story) -> str | None:
        """Get the source domain of a story, if resolvable."""
        if story.source is None:
            return None
        return extract_source_domain(story.source.url)

    def story_matches(
        self,
        story: Story,
        selections: Mapping[FacetType, Collection[str]],
    ) -> bool:
        """Check a story against a facet selection.

        A story must match at least one selected value in every non-empty
        facet set: OR within a facet, AND across facets.

        Args:
            story: Story to test.
            selections: Selected values per facet type.

        Returns:
            True if the story satisfies every non-empty facet.
        """
        text: str | None = None

        for facet_type, selected in selections.items():
            if not selected:
                continue

            if facet_type == FacetType.SOURCE:
                domain = self.source_domain(story)
                wanted = {s.lower() for s in selected}
                if domain is None or domain not in wanted:
                    return False
                continue

            if text is None:
                text = story.text
            if not any(value.strip().lower() in text for value in selected):
                return False

        return True
