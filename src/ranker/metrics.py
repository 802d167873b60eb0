"""Metrics for roundup ranking runs."""

from dataclasses import dataclass, field
from typing import ClassVar


_PERCENTILES = (50, 90, 99)


@dataclass
class RankerMetrics:
    """Counters from the most recent ranking run.

    Attributes:
        stories_ranked: Stories in the last ranked set.
        interactions_seen: Interactions read during the last run.
        interactions_ignored: Interactions for stories outside the set.
        missing_stories: Roundup members with no story available.
        scores: Every score produced, for percentiles.
        duration_ms: Wall time of the last scoring pass.
    """

    stories_ranked: int = 0
    interactions_seen: int = 0
    interactions_ignored: int = 0
    missing_stories: int = 0
    scores: list[float] = field(default_factory=list)
    duration_ms: float = 0.0

    _instance: ClassVar["RankerMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "RankerMetrics":
        """Get the shared instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Drop the shared instance."""
        cls._instance = None

    def record_run(
        self,
        scores: list[float],
        interactions_seen: int,
        interactions_ignored: int,
        duration_ms: float,
    ) -> None:
        """Record the outcome of one ranking pass.

        Args:
            scores: Scores of the ranked stories.
            interactions_seen: Interactions read.
            interactions_ignored: Interactions for stories outside the set.
            duration_ms: Scoring wall time.
        """
        self.stories_ranked = len(scores)
        self.scores.extend(scores)
        self.interactions_seen = interactions_seen
        self.interactions_ignored = interactions_ignored
        self.duration_ms = duration_ms

    def record_missing(self, count: int) -> None:
        """Record roundup members that could not be found."""
        self.missing_stories = count

    def score_percentiles(self) -> dict[str, float]:
        """Nearest-rank p50/p90/p99 over every recorded score."""
        if not self.scores:
            return {f"p{p}": 0.0 for p in _PERCENTILES}
        ordered = sorted(self.scores)
        last = len(ordered) - 1
        return {f"p{p}": ordered[min(p * len(ordered) // 100, last)] for p in _PERCENTILES}

    def to_dict(self) -> dict[str, object]:
        """Convert to a dictionary for logging."""
        return {
            "stories_ranked": self.stories_ranked,
            "interactions_seen": self.interactions_seen,
            "interactions_ignored": self.interactions_ignored,
            "missing_stories": self.missing_stories,
            "duration_ms": self.duration_ms,
            "score_percentiles": self.score_percentiles(),
        }
