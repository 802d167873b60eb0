"""Slot registry resolving which side-content card occupies a story index."""

from collections.abc import Iterable

import structlog

from src.content.models import CardType, SideContentConfig
from src.slots.constants import DEFAULT_COLLISION_HORIZON, DEFAULT_SLOT_RULES
from src.slots.models import SlotCollision, SlotRule


logger = structlog.get_logger()


class SlotTableError(Exception):
    """Raised when a slot table cannot be built."""

    def __init__(self, message: str, card_type: CardType | None = None) -> None:
        """Initialize the error.

        Args:
            message: Human-readable error message.
            card_type: Card type the problem relates to.
        """
        self.card_type = card_type
        super().__init__(message)


class SlotRegistry:
    """Static table mapping story positions to side-content card types.

    A registry is built once per feed session and injected into the
    assembler, so topics with different side-content configuration can
    run concurrent sessions without sharing state.

    Both ``should_show`` and ``card_instance_index`` are pure functions of
    the table and the story index. Collisions between card types are only
    reported, never resolved.
    """

    def __init__(self, rules: Iterable[SlotRule] = DEFAULT_SLOT_RULES) -> None:
        """Initialize the registry.

        Args:
            rules: Slot rules in table order. Table order decides the order
                in which cards sharing a position would be emitted.

        Raises:
            SlotTableError: If a card type appears more than once.
        """
        self._rules: dict[CardType, SlotRule] = {}
        for rule in rules:
            if rule.card_type in self._rules:
                msg = f"Duplicate slot rule for card type '{rule.card_type.value}'"
                raise SlotTableError(msg, card_type=rule.card_type)
            self._rules[rule.card_type] = rule
        self._log = logger.bind(component="slots")

    @property
    def rules(self) -> tuple[SlotRule, ...]:
        """Get the rules in table order."""
        return tuple(self._rules.values())

    @property
    def card_types(self) -> tuple[CardType, ...]:
        """Get the registered card types in table order."""
        return tuple(self._rules)

    def rule_for(self, card_type: CardType) -> SlotRule | None:
        """Get the rule for a card type, if registered."""
        return self._rules.get(card_type)

    def should_show(self, card_type: CardType, story_index: int) -> bool:
        """Check if a card type occupies the slot after the given story index.

        Args:
            card_type: Card type to check.
            story_index: Number of stories rendered so far.

        Returns:
            True if the card type claims this story index.
        """
        rule = self._rules.get(card_type)
        if rule is None:
            return False

        if rule.every_n is None:
            return story_index == rule.single_position

        distance = story_index - rule.offset
        return distance >= rule.every_n and distance % rule.every_n == 0

    def card_instance_index(self, card_type: CardType, story_index: int) -> int:
        """Get which occurrence of a card type a story index represents.

        The first occurrence is 0, the second 1 and so on. Callers take it
        modulo the number of available cards for a deterministic round-robin.

        Args:
            card_type: Card type to resolve.
            story_index: Story index the card is shown at.

        Returns:
            Zero-based occurrence ordinal (0 for single cards).
        """
        rule = self._rules.get(card_type)
        if rule is None or rule.every_n is None:
            return 0
        return max(0, (story_index - rule.offset) // rule.every_n - 1)

    def cards_at(self, story_index: int) -> list[CardType]:
        """Get every card type claiming a story index, in table order."""
        return [c for c in self._rules if self.should_show(c, story_index)]

    def positions(
        self, card_type: CardType, horizon: int = DEFAULT_COLLISION_HORIZON
    ) -> list[int]:
        """Get all story indices in ``[0, horizon)`` claimed by a card type."""
        return [i for i in range(horizon) if self.should_show(card_type, i)]

    def collisions(
        self, horizon: int = DEFAULT_COLLISION_HORIZON
    ) -> list[SlotCollision]:
        """Detect story indices claimed by more than one card type.

        Args:
            horizon: Number of story indices to simulate.

        Returns:
            Collisions sorted by position.
        """
        found: list[SlotCollision] = []
        for position in range(horizon):
            claimants = self.cards_at(position)
            if len(claimants) > 1:
                found.append(SlotCollision(position, tuple(claimants)))
        return found

    def log_collision_report(
        self, horizon: int = DEFAULT_COLLISION_HORIZON
    ) -> list[SlotCollision]:
        """Simulate the first story indices and log any collisions.

        A collision silently drops a card type in production, so callers run
        this at startup and tests assert on the returned list.

        Args:
            horizon: Number of story indices to simulate.

        Returns:
            Collisions found.
        """
        found = self.collisions(horizon)
        if not found:
            self._log.info("slot_collision_report_clean", horizon=horizon)
            return found

        for collision in found:
            self._log.warning("slot_collision", horizon=horizon, **collision.to_dict())
        return found

    def position_map(self, horizon: int = DEFAULT_COLLISION_HORIZON) -> str:
        """Render a visual map of card positions for debugging."""
        lines = ["Feed card position map:", ""]
        for card_type in self._rules:
            positions = self.positions(card_type, horizon)
            rendered = ", ".join(str(p) for p in positions) if positions else "none"
            lines.append(f"{card_type.value}: {rendered}")
        return "\n".join(lines)

    def for_topic(self, config: SideContentConfig) -> "SlotRegistry":
        """Build a registry specialised for one topic.

        Disabled card types are dropped and cadence overrides replace the
        interval of repeating rules.

        Args:
            config: Topic side-content configuration.

        Returns:
            New registry; this one is left untouched.
        """
        rules: list[SlotRule] = []
        for rule in self._rules.values():
            if not config.is_enabled(rule.card_type):
                continue
            every_n = config.cadence.get(rule.card_type)
            if every_n is not None and rule.every_n is not None:
                rule = rule.model_copy(update={"every_n": every_n})
            rules.append(rule)
        return SlotRegistry(rules)
