"""Engagement ranking for roundup digests."""

import hashlib
import json
import time
from collections import Counter
from collections.abc import Iterable, Sequence

import structlog

from src.assembler.errors import FeedEngineError
from src.content.models import Interaction, Roundup, Story
from src.ranker.constants import INTERACTION_WEIGHTS
from src.ranker.metrics import RankerMetrics
from src.ranker.models import RankedStory, RankerResult


logger = structlog.get_logger()


class RoundupUnavailableError(FeedEngineError):
    """Raised when ranking a roundup that has not been published."""

    def __init__(self, roundup_id: str) -> None:
        """Initialize the error.

        Args:
            roundup_id: Identifier of the unpublished roundup.
        """
        self.roundup_id = roundup_id
        super().__init__(f"Roundup '{roundup_id}' is not published")


class EngagementRanker:
    """Orders a fixed story set by weighted interaction counts.

    Each interaction contributes the weight of its type; types without a
    weight contribute nothing. Ties are broken by recency, newest first,
    and otherwise keep input order.
    """

    def __init__(
        self,
        weights: dict[str, float] | None = None,
        metrics: RankerMetrics | None = None,
        run_id: str = "",
    ) -> None:
        """Initialize the ranker.

        Args:
            weights: Weight per interaction type (default: built-in weights).
            metrics: Optional metrics instance.
            run_id: Run identifier for logging.
        """
        self._weights = dict(INTERACTION_WEIGHTS if weights is None else weights)
        self._metrics = metrics or RankerMetrics.get_instance()
        self._log = logger.bind(component="ranker", run_id=run_id)

    @property
    def weights(self) -> dict[str, float]:
        """Get the interaction weights."""
        return dict(self._weights)

    def score(
        self, story_ids: Iterable[str], interactions: Iterable[Interaction]
    ) -> dict[str, float]:
        """Score stories in one pass over the interactions.

        Args:
            story_ids: Stories to score.
            interactions: Interaction log; entries for other stories are ignored.

        Returns:
            Score per story ID, 0.0 for stories without interactions.
        """
        scores = dict.fromkeys(story_ids, 0.0)
        for interaction in interactions:
            if interaction.story_id in scores:
                scores[interaction.story_id] += self._weights.get(
                    interaction.interaction_type, 0.0
                )
        return scores

    def rank(
        self, stories: Sequence[Story], interactions: Iterable[Interaction]
    ) -> RankerResult:
        """Rank stories by engagement score.

        Args:
            stories: Stories to rank.
            interactions: Interaction log.

        Returns:
            RankerResult with stories in rank order.
        """
        self._log.info("ranker_started", stories_in=len(stories))

        start = time.perf_counter()
        story_ids = {s.id for s in stories}
        scores = dict.fromkeys(story_ids, 0.0)
        counts: dict[str, Counter[str]] = {sid: Counter() for sid in story_ids}
        total = ignored = 0

        for interaction in interactions:
            total += 1
            if interaction.story_id not in scores:
                ignored += 1
                continue
            weight = self._weights.get(interaction.interaction_type)
            if weight is None:
                continue
            scores[interaction.story_id] += weight
            counts[interaction.story_id][interaction.interaction_type] += 1

        ordered = sorted(
            stories,
            key=lambda s: (-scores[s.id], -s.created_at.timestamp()),
        )
        ranked = [
            RankedStory(
                story=story,
                score=scores[story.id],
                rank=position,
                interaction_counts=dict(counts[story.id]),
            )
            for position, story in enumerate(ordered, start=1)
        ]
        self._metrics.record_run(
            scores=[r.score for r in ranked],
            interactions_seen=total,
            interactions_ignored=ignored,
            duration_ms=(time.perf_counter() - start) * 1000,
        )

        result = RankerResult(
            ranked=ranked,
            ignored_interactions=ignored,
            output_checksum=self._compute_checksum(ranked),
        )
        self._log.info(
            "ranker_complete",
            stories_out=len(ranked),
            interactions=total,
            ignored_interactions=ignored,
            score_percentiles=self._metrics.score_percentiles(),
        )
        return result

    def rank_roundup(
        self,
        roundup: Roundup,
        stories: Iterable[Story],
        interactions: Iterable[Interaction],
    ) -> RankerResult:
        """Rank the fixed story set of a published roundup.

        Args:
            roundup: Roundup to rank.
            stories: Candidate stories; only the roundup's members are used.
            interactions: Interaction log.

        Returns:
            RankerResult; roundup members without a story are reported in
            ``missing_story_ids``.

        Raises:
            RoundupUnavailableError: If the roundup is not published.
        """
        if not roundup.is_published:
            self._log.warning("roundup_unavailable", roundup_id=roundup.id)
            raise RoundupUnavailableError(roundup.id)

        by_id = {s.id: s for s in stories}
        members: list[Story] = []
        missing: list[str] = []
        for story_id in dict.fromkeys(roundup.story_ids):
            story = by_id.get(story_id)
            if story is None:
                missing.append(story_id)
            else:
                members.append(story)

        if missing:
            self._log.warning(
                "roundup_stories_missing", roundup_id=roundup.id, story_ids=missing
            )
        self._metrics.record_missing(len(missing))

        result = self.rank(members, interactions)
        result.missing_story_ids = missing
        return result

    def _compute_checksum(self, ranked: list[RankedStory]) -> str:
        """Compute a deterministic checksum of the ranking.

        Args:
            ranked: Stories in rank order.

        Returns:
            SHA-256 hex digest.
        """
        data = [[r.story.id, r.score] for r in ranked]
        json_str = json.dumps(data, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(json_str.encode()).hexdigest()


def rank_stories_pure(
    stories: Sequence[Story],
    interactions: Iterable[Interaction],
    weights: dict[str, float] | None = None,
    run_id: str = "pure",
) -> RankerResult:
    """Pure function API for engagement ranking.

    Args:
        stories: Stories to rank.
        interactions: Interaction log.
        weights: Interaction weights.
        run_id: Run identifier.

    Returns:
        RankerResult with stories in rank order.
    """
    ranker = EngagementRanker(weights=weights, metrics=RankerMetrics(), run_id=run_id)
    return ranker.rank(stories, interactions)
