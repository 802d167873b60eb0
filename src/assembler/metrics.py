"""Metrics collection for feed assembly."""

from dataclasses import dataclass
from typing import ClassVar


@dataclass
class FeedMetrics:
    """Metrics for feed assembly and session operations.

    Attributes:
        pages_appended: Pages appended to a sequence.
        items_emitted: Content items emitted, side content included.
        side_cards_emitted: Side-content cards emitted.
        ghosts_suppressed: Placeholder stories kept out of display.
        duplicates_dropped: Repeated content IDs dropped.
        stale_pages_discarded: Results dropped by generation mismatch.
        load_failures: Failed story page fetches.
        side_content_failures: Failed side-content fetches.
        merges: New-story merges spliced into a feed.
    """

    pages_appended: int = 0
    items_emitted: int = 0
    side_cards_emitted: int = 0
    ghosts_suppressed: int = 0
    duplicates_dropped: int = 0
    stale_pages_discarded: int = 0
    load_failures: int = 0
    side_content_failures: int = 0
    merges: int = 0

    _instance: ClassVar["FeedMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "FeedMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_page(self, items: int, side_cards: int) -> None:
        """Record an appended page.

        Args:
            items: Items emitted for the page.
            side_cards: Side-content cards among them.
        """
        self.pages_appended += 1
        self.items_emitted += items
        self.side_cards_emitted += side_cards

    def record_ghost(self) -> None:
        """Record a suppressed placeholder story."""
        self.ghosts_suppressed += 1

    def record_duplicate(self) -> None:
        """Record a dropped duplicate."""
        self.duplicates_dropped += 1

    def record_stale_page(self) -> None:
        """Record a result discarded after a generation change."""
        self.stale_pages_discarded += 1

    def record_load_failure(self) -> None:
        """Record a failed page fetch."""
        self.load_failures += 1

    def record_side_content_failure(self) -> None:
        """Record a failed side-content fetch."""
        self.side_content_failures += 1

    def record_merge(self) -> None:
        """Record a new-story merge."""
        self.merges += 1

    def to_dict(self) -> dict[str, int]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "pages_appended": self.pages_appended,
            "items_emitted": self.items_emitted,
            "side_cards_emitted": self.side_cards_emitted,
            "ghosts_suppressed": self.ghosts_suppressed,
            "duplicates_dropped": self.duplicates_dropped,
            "stale_pages_discarded": self.stale_pages_discarded,
            "load_failures": self.load_failures,
            "side_content_failures": self.side_content_failures,
            "merges": self.merges,
        }
