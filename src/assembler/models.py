"""Data models for assembled feeds."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum

from src.content.models import CardType, ContentItem, ContentKind, SideContentCard


SideContentPool = Mapping[CardType, Sequence[SideContentCard]]

END_OF_FEED_KEY = "end-of-feed"
LOAD_MORE_KEY_PREFIX = "load-more"


class EmptyState(str, Enum):
    """Why a settled feed shows no stories.

    - NO_CONTENT: the topic has nothing published
    - NO_MATCHES: active filters exclude every loaded story
    """

    NO_CONTENT = "NO_CONTENT"
    NO_MATCHES = "NO_MATCHES"


class LoadOperation(str, Enum):
    """Which fetch a load error belongs to."""

    OPEN = "open"
    FIRST_PAGE = "first_page"
    NEXT_PAGE = "next_page"


@dataclass(frozen=True)
class LoadError:
    """A failed page fetch awaiting retry.

    Attributes:
        cursor: Cursor of the page that failed (None for a first page).
        attempts: Consecutive failed attempts for this page.
        message: Error message from the source.
        retryable: Whether ``retry()`` may still be called.
        operation: Fetch that failed.
        error_class: Source error class, when known.
    """

    cursor: str | None
    attempts: int
    message: str
    retryable: bool
    operation: LoadOperation = LoadOperation.NEXT_PAGE
    error_class: str | None = None

    def to_dict(self) -> dict[str, str | int | bool | None]:
        """Convert to dictionary for logging."""
        return {
            "cursor": self.cursor,
            "attempts": self.attempts,
            "message": self.message,
            "retryable": self.retryable,
            "operation": self.operation.value,
            "error_class": self.error_class,
        }


@dataclass(frozen=True)
class FeedSequence:
    """Immutable, append-only render stream.

    Every append produces a new instance with a higher ``revision``, so
    consumers can detect changes by identity or revision alone.

    Attributes:
        items: Items in render order, without the trailing marker.
        story_index: Number of story-like items emitted.
        seen_ids: Keys of story-like items already emitted.
        generation: Filter/session generation the sequence belongs to.
        revision: Number of appends since the sequence was started.
    """

    items: tuple[ContentItem, ...] = ()
    story_index: int = 0
    seen_ids: frozenset[str] = field(default_factory=frozenset)
    generation: int = 0
    revision: int = 0

    def __len__(self) -> int:
        """Get the number of items."""
        return len(self.items)

    @property
    def keys(self) -> list[str]:
        """Get item keys in render order."""
        return [item.key for item in self.items]

    @property
    def story_items(self) -> list[ContentItem]:
        """Get story-like items in render order."""
        return [item for item in self.items if item.kind.is_story_like]

    def extended(
        self,
        items: Sequence[ContentItem],
        story_index: int,
        seen_ids: frozenset[str],
    ) -> "FeedSequence":
        """Return a new sequence with items appended.

        Args:
            items: Items to append.
            story_index: Story index after the appended items.
            seen_ids: Seen keys after the appended items.

        Returns:
            New sequence; this one is left untouched.
        """
        return replace(
            self,
            items=self.items + tuple(items),
            story_index=story_index,
            seen_ids=seen_ids,
            revision=self.revision + 1,
        )

    def rendered(self, has_more: bool) -> list[ContentItem]:
        """Get the items followed by the pagination marker.

        Args:
            has_more: Whether further pages exist upstream.

        Returns:
            Items plus a LOAD_MORE sentinel, or an END_OF_FEED marker.
        """
        if has_more:
            marker = ContentItem(
                kind=ContentKind.LOAD_MORE,
                key=f"{LOAD_MORE_KEY_PREFIX}-{self.story_index}",
                story_index=self.story_index,
            )
        else:
            marker = ContentItem(
                kind=ContentKind.END_OF_FEED,
                key=END_OF_FEED_KEY,
                story_index=self.story_index,
            )
        return [*self.items, marker]
