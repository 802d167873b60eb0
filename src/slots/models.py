"""Data models for the slot registry."""

from dataclasses import dataclass
from typing import Annotated

from pydantic import Field, model_validator

from src.content.models import CardType
from src.data_model import StrictBaseModel


class SlotRule(StrictBaseModel):
    """Placement rule for one side-content card type.

    A repeating rule shows at story indices ``offset + k * every_n`` for
    ``k >= 1``, so a card never appears before ``every_n`` stories have
    rendered. A single rule shows exactly once at ``single_position``.

    Attributes:
        card_type: Card type the rule places.
        every_n: Interval between occurrences (repeating rules).
        offset: Residue of the occurrence positions (repeating rules).
        single_position: Story index for one-off cards.
        description: Human-readable purpose of the card.
    """

    card_type: CardType
    every_n: Annotated[int | None, Field(ge=1)] = None
    offset: Annotated[int, Field(ge=0)] = 0
    single_position: Annotated[int | None, Field(ge=1)] = None
    description: str = ""

    @model_validator(mode="after")
    def validate_shape(self) -> "SlotRule":
        """Exactly one of every_n or single_position must be set."""
        if (self.every_n is None) == (self.single_position is None):
            msg = (
                f"Slot rule for {self.card_type.value} needs exactly one of "
                "every_n or single_position"
            )
            raise ValueError(msg)
        return self

    @property
    def is_single(self) -> bool:
        """Whether this rule places a one-off card."""
        return self.single_position is not None


@dataclass(frozen=True)
class SlotCollision:
    """Two or more card types claiming the same story index.

    Attributes:
        position: Story index that is claimed more than once.
        card_types: Card types claiming it, in table order.
    """

    position: int
    card_types: tuple[CardType, ...]

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for logging.

        Returns:
            Dictionary with position and card type values.
        """
        return {
            "position": self.position,
            "card_types": [c.value for c in self.card_types],
        }
