"""Contracts for the collaborators the feed engine consumes.

Authentication, persistence and content generation live behind these
protocols; the engine only ever awaits them.
"""

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from src.content.models import (
    CardType,
    Interaction,
    ParliamentaryMention,
    SideContentCard,
    Story,
    StoryPage,
    Topic,
)
from src.filters.models import FilterState


class StorySource(Protocol):
    """Paginated access to a topic's published stories."""

    async def fetch_story_page(
        self,
        topic_id: str,
        filters: FilterState,
        cursor: str | None,
        limit: int,
    ) -> StoryPage:
        """Fetch one page of stories matching the filters.

        Args:
            topic_id: Topic to read.
            filters: Facet selection applied server-side.
            cursor: Opaque cursor from the previous page, None for the first.
            limit: Page size.

        Returns:
            The page and the cursor of the next one.
        """
        ...

    async def fetch_stories_newer_than(
        self, topic_id: str, timestamp: datetime
    ) -> list[Story]:
        """Fetch stories created strictly after a timestamp, newest first."""
        ...


class SideContentSource(Protocol):
    """Independent generators of side-content cards."""

    async def fetch_side_content(
        self, card_type: CardType, topic_id: str
    ) -> list[SideContentCard]:
        """Fetch the available cards of one type; empty is a valid result."""
        ...

    async def fetch_parliamentary_mentions(
        self, topic_id: str
    ) -> list[ParliamentaryMention]:
        """Fetch vote and debate mentions relevant to a topic."""
        ...


class InteractionSource(Protocol):
    """Access to the interaction log used for roundup ranking."""

    async def fetch_interactions(self, story_ids: Sequence[str]) -> list[Interaction]:
        """Fetch interactions recorded against the given stories."""
        ...


class TopicSource(Protocol):
    """Access to topic facet configuration."""

    async def fetch_topic(self, topic_id: str) -> Topic:
        """Fetch a topic with its facet lists and side-content config."""
        ...


class FeedBackend(StorySource, SideContentSource, InteractionSource, TopicSource, Protocol):
    """Every collaborator contract a feed session needs."""
