"""Data models for feed content.

Stories, parliamentary mentions and side-content cards are produced
upstream and are read-only here. ``ContentItem`` is the tagged union that
makes up the assembled render stream.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import Field, field_validator

from src.content.constants import (
    GHOST_LOADING_CONTENT,
    GHOST_SLIDE_ID_PREFIX,
)
from src.data_model import StrictBaseModel


class CardType(str, Enum):
    """Side-content card types that can be injected between stories."""

    SENTIMENT = "sentiment"
    INSIGHT = "insight"
    QUIZ = "quiz"
    EVENTS = "events"
    COMMUNITY_PULSE = "community_pulse"
    PARLIAMENTARY_DIGEST = "parliamentary_digest"
    FLASHBACK = "flashback"


class ContentKind(str, Enum):
    """Variant tag for items in the render stream.

    - STORY / PARLIAMENTARY_MENTION: story-like items that consume a slot
    - one member per CardType: side content
    - END_OF_FEED / LOAD_MORE: trailing pagination markers
    """

    STORY = "story"
    PARLIAMENTARY_MENTION = "parliamentary_mention"
    SENTIMENT = "sentiment"
    INSIGHT = "insight"
    QUIZ = "quiz"
    EVENTS = "events"
    COMMUNITY_PULSE = "community_pulse"
    PARLIAMENTARY_DIGEST = "parliamentary_digest"
    FLASHBACK = "flashback"
    END_OF_FEED = "end_of_feed"
    LOAD_MORE = "load_more"

    @property
    def is_story_like(self) -> bool:
        """Whether items of this kind advance the story index."""
        return self in (ContentKind.STORY, ContentKind.PARLIAMENTARY_MENTION)

    @classmethod
    def for_card(cls, card_type: CardType) -> "ContentKind":
        """Map a side-content card type onto its render kind."""
        return cls(card_type.value)


class FeedSort(str, Enum):
    """Ordering of the upstream story stream."""

    NEWEST_FIRST = "newest_first"
    OLDEST_FIRST = "oldest_first"


class TopicType(str, Enum):
    """Kind of topic a feed is scoped to."""

    REGIONAL = "regional"
    KEYWORD = "keyword"


class RoundupPeriod(str, Enum):
    """Length of a roundup digest."""

    DAILY = "daily"
    WEEKLY = "weekly"


class Slide(StrictBaseModel):
    """A single unit of rewritten story text."""

    id: Annotated[str, Field(min_length=1)]
    slide_number: Annotated[int, Field(ge=0)] = 0
    content: str = ""
    word_count: Annotated[int, Field(ge=0)] = 0


class SourceRef(StrictBaseModel):
    """Reference to the original article a story was rewritten from."""

    url: str = ""
    region: str | None = None
    published_at: datetime | None = None


class Story(StrictBaseModel):
    """A published story made of ordered slides.

    Attributes:
        id: Story identifier.
        title: Display title.
        slides: Ordered slides.
        created_at: Creation timestamp.
        source: Original article reference.
        cover_image_url: Optional cover illustration.
        canonical_story_id: Pointer to the canonical duplicate, if any.
    """

    id: Annotated[str, Field(min_length=1)]
    title: str = ""
    slides: list[Slide] = Field(default_factory=list)
    created_at: datetime
    source: SourceRef | None = None
    cover_image_url: str | None = None
    canonical_story_id: str | None = None

    @property
    def text(self) -> str:
        """Lower-cased title and slide text used for facet matching."""
        parts = [self.title, *(slide.content for slide in self.slides)]
        return " ".join(parts).lower()

    @property
    def is_ghost(self) -> bool:
        """Whether this is a placeholder not yet populated with real slides."""
        if not self.slides:
            return True
        first = self.slides[0]
        return (
            first.id.startswith(GHOST_SLIDE_ID_PREFIX)
            or first.content == GHOST_LOADING_CONTENT
        )

    @property
    def content_date(self) -> datetime:
        """Date used for chronological ordering against other feed entries."""
        if self.source is not None and self.source.published_at is not None:
            return self.source.published_at
        return self.created_at


class ParliamentaryMention(StrictBaseModel):
    """A vote or debate mention that renders inline like a story."""

    id: Annotated[str, Field(min_length=1)]
    mention_type: str = "vote"
    mp_name: str | None = None
    constituency: str | None = None
    vote_title: str | None = None
    vote_direction: str | None = None
    vote_date: datetime | None = None
    debate_title: str | None = None
    debate_date: datetime | None = None
    relevance_score: float = 0.0
    created_at: datetime

    @property
    def content_date(self) -> datetime:
        """Vote date, else debate date, else creation time."""
        return self.vote_date or self.debate_date or self.created_at


FeedEntry = Story | ParliamentaryMention


class SideContentCard(StrictBaseModel):
    """One instance of a side-content card (a sentiment card, a quiz, ...)."""

    id: Annotated[str, Field(min_length=1)]
    card_type: CardType
    title: str = ""
    body: str = ""
    payload: dict[str, Any] = Field(default_factory=dict)


class ContentItem(StrictBaseModel):
    """An entry in the assembled render stream.

    Attributes:
        kind: Variant tag.
        key: Stable key, unique within one feed session.
        story_index: Number of story-like items at or before this item.
        payload: The story, mention or card being rendered.
    """

    kind: ContentKind
    key: Annotated[str, Field(min_length=1)]
    story_index: Annotated[int, Field(ge=0)]
    payload: Story | ParliamentaryMention | SideContentCard | None = None


class SideContentConfig(StrictBaseModel):
    """Per-topic side-content enablement and cadence overrides."""

    enabled_cards: frozenset[CardType] = Field(
        default_factory=lambda: frozenset(CardType)
    )
    cadence: dict[CardType, int] = Field(default_factory=dict)

    @field_validator("cadence")
    @classmethod
    def validate_cadence(cls, value: dict[CardType, int]) -> dict[CardType, int]:
        """Cadence overrides must be positive intervals."""
        for card_type, every_n in value.items():
            if every_n < 1:
                msg = f"Cadence for {card_type.value} must be >= 1, got {every_n}"
                raise ValueError(msg)
        return value

    def is_enabled(self, card_type: CardType) -> bool:
        """Check whether a card type is enabled for the topic."""
        return card_type in self.enabled_cards


class Topic(StrictBaseModel):
    """A topic feed with its facet lists and side-content configuration."""

    id: Annotated[str, Field(min_length=1)]
    slug: str = ""
    name: str = ""
    topic_type: TopicType = TopicType.KEYWORD
    region: str | None = None
    keywords: list[str] = Field(default_factory=list)
    landmarks: list[str] = Field(default_factory=list)
    organizations: list[str] = Field(default_factory=list)
    side_content: SideContentConfig = Field(default_factory=SideContentConfig)
    parliamentary_tracking_enabled: bool = False


class StoryPage(StrictBaseModel):
    """One page of the upstream story stream."""

    stories: list[Story] = Field(default_factory=list)
    next_cursor: str | None = None

    @property
    def has_more(self) -> bool:
        """Whether upstream reports further pages."""
        return self.next_cursor is not None


class Roundup(StrictBaseModel):
    """A fixed, period-bounded set of stories presented as a digest."""

    id: Annotated[str, Field(min_length=1)]
    topic_id: str = ""
    period: RoundupPeriod = RoundupPeriod.DAILY
    period_start: datetime
    period_end: datetime
    story_ids: list[str] = Field(default_factory=list)
    is_published: bool = False


class Interaction(StrictBaseModel):
    """A single logged user interaction with a story."""

    story_id: Annotated[str, Field(min_length=1)]
    interaction_type: str
