"""Data models for the engagement ranker."""

from dataclasses import dataclass, field

from src.content.models import Story


@dataclass(frozen=True)
class RankedStory:
    """A story with its engagement score.

    Attributes:
        story: The ranked story.
        score: Weighted engagement score.
        rank: One-based position in the ranking.
        interaction_counts: Counted interactions per weighted type.
    """

    story: Story
    score: float
    rank: int
    interaction_counts: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for serialization."""
        return {
            "story_id": self.story.id,
            "title": self.story.title,
            "score": self.score,
            "rank": self.rank,
            "interaction_counts": dict(self.interaction_counts),
        }


@dataclass
class RankerResult:
    """Output of a ranking pass.

    Attributes:
        ranked: Stories in rank order.
        missing_story_ids: Requested IDs with no story available.
        ignored_interactions: Interactions for stories outside the set.
        output_checksum: SHA-256 of the ordered IDs and scores.
    """

    ranked: list[RankedStory]
    missing_story_ids: list[str] = field(default_factory=list)
    ignored_interactions: int = 0
    output_checksum: str = ""

    @property
    def story_ids(self) -> list[str]:
        """Get story IDs in rank order."""
        return [r.story.id for r in self.ranked]
