"""Pure feed assembly.

Turns pages of upstream entries into the render stream: placeholder
stories are dropped, repeated IDs are dropped, and side-content cards are
interleaved at the positions the slot registry assigns.
"""

from collections.abc import Iterable

import structlog

from src.assembler.metrics import FeedMetrics
from src.assembler.models import FeedSequence, SideContentPool
from src.content.models import (
    ContentItem,
    ContentKind,
    FeedEntry,
    ParliamentaryMention,
    SideContentCard,
)
from src.slots.registry import SlotRegistry


logger = structlog.get_logger()


def entry_key(entry: FeedEntry) -> str:
    """Get the render key of a story-like entry.

    Stories and parliamentary mentions have separate ID spaces, so the
    kind is part of the key.
    """
    if isinstance(entry, ParliamentaryMention):
        return f"mention-{entry.id}"
    return f"story-{entry.id}"


class FeedAssembler:
    """Builds feed sequences from pages of entries.

    Stateless apart from its collaborators: the same inputs always give the
    same sequence, which is what makes reassembly after a merge safe.
    """

    def __init__(
        self,
        registry: SlotRegistry,
        metrics: FeedMetrics | None = None,
        session_id: str = "",
    ) -> None:
        """Initialize the assembler.

        Args:
            registry: Slot registry for the session's topic.
            metrics: Metrics sink (default: the shared instance).
            session_id: Feed session identifier for logging.
        """
        self._registry = registry
        self._metrics = metrics or FeedMetrics.get_instance()
        self._log = logger.bind(component="assembler", session_id=session_id)

    @property
    def registry(self) -> SlotRegistry:
        """Get the slot registry."""
        return self._registry

    def assemble(
        self,
        entries: Iterable[FeedEntry],
        side_content: SideContentPool,
        generation: int = 0,
    ) -> FeedSequence:
        """Assemble a sequence from story index zero.

        Args:
            entries: Stories and mentions in upstream order.
            side_content: Available cards per card type.
            generation: Generation the new sequence belongs to.

        Returns:
            Fresh sequence.
        """
        return self.append_page(FeedSequence(generation=generation), entries, side_content)

    def append_page(
        self,
        sequence: FeedSequence,
        entries: Iterable[FeedEntry],
        side_content: SideContentPool,
    ) -> FeedSequence:
        """Append one page of entries to a sequence.

        Args:
            sequence: Sequence to extend; never modified.
            entries: Stories and mentions in upstream order.
            side_content: Available cards per card type.

        Returns:
            New sequence containing the old items followed by the page.
        """
        story_index = sequence.story_index
        seen = set(sequence.seen_ids)
        appended: list[ContentItem] = []
        side_cards = 0

        for entry in entries:
            if isinstance(entry, ParliamentaryMention):
                kind = ContentKind.PARLIAMENTARY_MENTION
            else:
                if entry.is_ghost:
                    self._metrics.record_ghost()
                    self._log.debug("ghost_story_suppressed", story_id=entry.id)
                    continue
                kind = ContentKind.STORY

            key = entry_key(entry)
            if key in seen:
                self._metrics.record_duplicate()
                self._log.warning("duplicate_content_id", key=key, story_index=story_index)
                continue
            seen.add(key)

            story_index += 1
            appended.append(
                ContentItem(kind=kind, key=key, story_index=story_index, payload=entry)
            )

            for item in self._side_content_at(story_index, side_content):
                appended.append(item)
                side_cards += 1

        self._metrics.record_page(items=len(appended), side_cards=side_cards)
        self._log.debug(
            "feed_page_appended",
            items=len(appended),
            side_cards=side_cards,
            story_index=story_index,
            revision=sequence.revision + 1,
        )
        return sequence.extended(appended, story_index, frozenset(seen))

    def _side_content_at(
        self, story_index: int, side_content: SideContentPool
    ) -> list[ContentItem]:
        """Get the cards claiming a story index, in table order."""
        items: list[ContentItem] = []
        for card_type in self._registry.cards_at(story_index):
            cards = side_content.get(card_type) or ()
            if not cards:
                # Occurrence is skipped, not deferred to the next slot.
                continue
            instance = self._registry.card_instance_index(card_type, story_index)
            card: SideContentCard = cards[instance % len(cards)]
            items.append(
                ContentItem(
                    kind=ContentKind.for_card(card_type),
                    key=f"{card_type.value}-{card.id}-{story_index}",
                    story_index=story_index,
                    payload=card,
                )
            )
        return items
