"""Contracts and implementations for upstream content sources."""

from src.sources.errors import SourceError, SourceErrorClass
from src.sources.http import HttpFeedBackend
from src.sources.memory import InMemoryFeedBackend, SourceCall
from src.sources.protocols import (
    FeedBackend,
    InteractionSource,
    SideContentSource,
    StorySource,
    TopicSource,
)


__all__ = [
    "FeedBackend",
    "HttpFeedBackend",
    "InMemoryFeedBackend",
    "InteractionSource",
    "SideContentSource",
    "SourceCall",
    "SourceError",
    "SourceErrorClass",
    "StorySource",
    "TopicSource",
]
