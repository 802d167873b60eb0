"""In-memory feed backend.

Deterministic implementation of every source contract, used by the CLI
and by tests. Supports scripted failures so error paths can be exercised.
"""

from collections import defaultdict
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

import structlog

from src.content.models import (
    CardType,
    FeedSort,
    Interaction,
    ParliamentaryMention,
    SideContentCard,
    Story,
    StoryPage,
    Topic,
)
from src.facets.index import FacetIndex
from src.filters.models import FilterState
from src.sources.errors import SourceError, SourceErrorClass


logger = structlog.get_logger()


@dataclass
class SourceCall:
    """Record of a source call made against the backend.

    Attributes:
        operation: Source operation name.
        topic_id: Topic the call was scoped to, if any.
        cursor: Page cursor for story page fetches.
        filters: Filter values for story page fetches.
    """

    operation: str
    topic_id: str | None = None
    cursor: str | None = None
    filters: tuple[str, ...] = ()


class InMemoryFeedBackend:
    """Feed backend over in-process data.

    Cursors are stringified offsets into the sorted story list.
    """

    def __init__(self, sort: FeedSort = FeedSort.NEWEST_FIRST) -> None:
        """Initialize an empty backend.

        Args:
            sort: Ordering of story pages.
        """
        self._sort = sort
        self._topics: dict[str, Topic] = {}
        self._stories: dict[str, list[Story]] = defaultdict(list)
        self._cards: dict[tuple[str, CardType], list[SideContentCard]] = {}
        self._mentions: dict[str, list[ParliamentaryMention]] = defaultdict(list)
        self._interactions: list[Interaction] = []
        self._failures: dict[str, list[Exception]] = defaultdict(list)
        self.calls: list[SourceCall] = []

    def add_topic(self, topic: Topic) -> None:
        """Register a topic."""
        self._topics[topic.id] = topic

    def add_stories(self, topic_id: str, stories: Sequence[Story]) -> None:
        """Publish stories to a topic."""
        self._stories[topic_id].extend(stories)

    def set_side_content(
        self, topic_id: str, card_type: CardType, cards: Sequence[SideContentCard]
    ) -> None:
        """Replace the available cards of one type."""
        self._cards[(topic_id, card_type)] = list(cards)

    def add_mentions(self, topic_id: str, mentions: Sequence[ParliamentaryMention]) -> None:
        """Publish parliamentary mentions to a topic."""
        self._mentions[topic_id].extend(mentions)

    def add_interactions(self, interactions: Sequence[Interaction]) -> None:
        """Append to the interaction log."""
        self._interactions.extend(interactions)

    def fail_next(self, operation: str, error: Exception | None = None, times: int = 1) -> None:
        """Make the next calls of an operation raise.

        Args:
            operation: Operation name, e.g. ``fetch_story_page`` or
                ``fetch_side_content:quiz``.
            error: Error to raise (default: a transient 5xx).
            times: Number of consecutive calls to fail.
        """
        error = error or SourceError(
            SourceErrorClass.HTTP_5XX, "Injected failure", status_code=503, operation=operation
        )
        self._failures[operation].extend([error] * times)

    def _maybe_fail(self, operation: str) -> None:
        """Raise the next scripted failure for an operation, if any."""
        queued = self._failures.get(operation)
        if queued:
            error = queued.pop(0)
            logger.debug("injected_source_failure", component="sources", operation=operation)
            raise error

    def _sorted(self, topic_id: str) -> list[Story]:
        """Get a topic's stories in feed order."""
        return sorted(
            self._stories.get(topic_id, []),
            key=lambda s: s.created_at,
            reverse=self._sort == FeedSort.NEWEST_FIRST,
        )

    async def fetch_topic(self, topic_id: str) -> Topic:
        """Fetch a registered topic."""
        self.calls.append(SourceCall("fetch_topic", topic_id=topic_id))
        self._maybe_fail("fetch_topic")
        topic = self._topics.get(topic_id)
        if topic is None:
            msg = f"Topic not found: {topic_id}"
            raise SourceError(SourceErrorClass.HTTP_4XX, msg, status_code=404, operation="fetch_topic")
        return topic

    async def fetch_story_page(
        self,
        topic_id: str,
        filters: FilterState,
        cursor: str | None,
        limit: int,
    ) -> StoryPage:
        """Fetch one page of stories, applying filters before paginating."""
        self.calls.append(
            SourceCall(
                "fetch_story_page",
                topic_id=topic_id,
                cursor=cursor,
                filters=tuple(filters.values()),
            )
        )
        self._maybe_fail("fetch_story_page")

        stories = self._sorted(topic_id)
        if filters.has_active_filters and topic_id in self._topics:
            index = FacetIndex(self._topics[topic_id])
            selections = filters.selections()
            stories = [s for s in stories if index.story_matches(s, selections)]

        offset = int(cursor) if cursor else 0
        page = stories[offset : offset + limit]
        next_offset = offset + limit
        next_cursor = str(next_offset) if next_offset < len(stories) else None
        return StoryPage(stories=page, next_cursor=next_cursor)

    async def fetch_stories_newer_than(self, topic_id: str, timestamp: datetime) -> list[Story]:
        """Fetch stories created after a timestamp, newest first."""
        self.calls.append(SourceCall("fetch_stories_newer_than", topic_id=topic_id))
        self._maybe_fail("fetch_stories_newer_than")
        newer = [s for s in self._stories.get(topic_id, []) if s.created_at > timestamp]
        return sorted(newer, key=lambda s: s.created_at, reverse=True)

    async def fetch_side_content(self, card_type: CardType, topic_id: str) -> list[SideContentCard]:
        """Fetch the available cards of one type."""
        self.calls.append(SourceCall(f"fetch_side_content:{card_type.value}", topic_id=topic_id))
        self._maybe_fail(f"fetch_side_content:{card_type.value}")
        return list(self._cards.get((topic_id, card_type), []))

    async def fetch_parliamentary_mentions(self, topic_id: str) -> list[ParliamentaryMention]:
        """Fetch parliamentary mentions for a topic."""
        self.calls.append(SourceCall("fetch_parliamentary_mentions", topic_id=topic_id))
        self._maybe_fail("fetch_parliamentary_mentions")
        return list(self._mentions.get(topic_id, []))

    async def fetch_interactions(self, story_ids: Sequence[str]) -> list[Interaction]:
        """Fetch interactions for the given stories."""
        self.calls.append(SourceCall("fetch_interactions"))
        self._maybe_fail("fetch_interactions")
        wanted = set(story_ids)
        return [i for i in self._interactions if i.story_id in wanted]

    def call_count(self, operation: str) -> int:
        """Count recorded calls of an operation."""
        return sum(1 for c in self.calls if c.operation == operation)
