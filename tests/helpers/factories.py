"""Builders for feed domain objects used across tests."""

from collections.abc import Sequence
from datetime import datetime

from src.content.models import (
    CardType,
    ParliamentaryMention,
    SideContentCard,
    SideContentConfig,
    Slide,
    SourceRef,
    Story,
    Topic,
    TopicType,
)
from src.settings import FeedSettings
from tests.helpers.time import minutes_ago


def make_story(
    story_id: str,
    title: str = "",
    content: str = "Story body",
    created_at: datetime | None = None,
    minutes: int = 0,
    source_url: str = "https://www.example.com/article",
    ghost: bool = False,
) -> Story:
    """Create a story with one slide."""
    slide_id = f"placeholder-{story_id}" if ghost else f"{story_id}-slide-1"
    return Story(
        id=story_id,
        title=title or f"Story {story_id}",
        slides=[Slide(id=slide_id, slide_number=1, content=content)],
        created_at=created_at or minutes_ago(minutes),
        source=SourceRef(url=source_url),
    )


def make_stories(count: int, prefix: str = "s", start_minutes: int = 0) -> list[Story]:
    """Create stories newest first, one minute apart."""
    return [
        make_story(f"{prefix}{i}", minutes=start_minutes + i) for i in range(1, count + 1)
    ]


def make_card(card_type: CardType, card_id: str) -> SideContentCard:
    """Create a side-content card."""
    return SideContentCard(id=card_id, card_type=card_type, title=f"{card_type.value} {card_id}")


def make_cards(card_type: CardType, count: int) -> list[SideContentCard]:
    """Create several cards of one type."""
    return [make_card(card_type, f"{card_type.value[:1]}{i}") for i in range(1, count + 1)]


def make_mention(
    mention_id: str, minutes: int, title: str = "Harbour bill vote", relevance: float = 50.0
) -> ParliamentaryMention:
    """Create a parliamentary vote mention."""
    return ParliamentaryMention(
        id=mention_id,
        vote_title=title,
        vote_date=minutes_ago(minutes),
        created_at=minutes_ago(minutes),
        relevance_score=relevance,
    )


def make_topic(
    topic_id: str = "eastbourne",
    name: str = "Eastbourne",
    keywords: Sequence[str] = ("harbour", "council", "ferry"),
    landmarks: Sequence[str] = ("Pier", "Redoubt Fortress"),
    organizations: Sequence[str] = ("RNLI", "Borough Council"),
    enabled_cards: Sequence[CardType] | None = None,
    cadence: dict[CardType, int] | None = None,
    parliamentary: bool = False,
    topic_type: TopicType = TopicType.REGIONAL,
) -> Topic:
    """Create a topic with facet lists."""
    side_content = SideContentConfig(
        enabled_cards=frozenset(CardType if enabled_cards is None else enabled_cards),
        cadence=cadence or {},
    )
    return Topic(
        id=topic_id,
        slug=topic_id,
        name=name,
        topic_type=topic_type,
        keywords=list(keywords),
        landmarks=list(landmarks),
        organizations=list(organizations),
        side_content=side_content,
        parliamentary_tracking_enabled=parliamentary,
    )


def make_settings(**overrides: object) -> FeedSettings:
    """Create settings without reading the environment file."""
    return FeedSettings(_env_file=None, **overrides)  # type: ignore[arg-type]
