"""Feed content records: topics, stories, side content and render items."""

from src.content.models import (
    CardType,
    ContentItem,
    ContentKind,
    FeedEntry,
    FeedSort,
    Interaction,
    ParliamentaryMention,
    Roundup,
    RoundupPeriod,
    SideContentCard,
    SideContentConfig,
    Slide,
    SourceRef,
    Story,
    StoryPage,
    Topic,
    TopicType,
)


__all__ = [
    "CardType",
    "ContentItem",
    "ContentKind",
    "FeedEntry",
    "FeedSort",
    "Interaction",
    "ParliamentaryMention",
    "Roundup",
    "RoundupPeriod",
    "SideContentCard",
    "SideContentConfig",
    "Slide",
    "SourceRef",
    "Story",
    "StoryPage",
    "Topic",
    "TopicType",
]
