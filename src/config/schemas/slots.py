"""Pydantic schema for slot table files."""

from typing import Annotated

from pydantic import Field, model_validator

from src.data_model import StrictBaseModel
from src.slots.constants import DEFAULT_COLLISION_HORIZON
from src.slots.models import SlotRule
from src.slots.registry import SlotRegistry


class SlotTableConfig(StrictBaseModel):
    """Root configuration for a slot table file.

    Attributes:
        rules: Slot rules in table order.
        horizon: Story indices simulated by the collision check.
        allow_collisions: Whether a table with collisions is accepted.
    """

    rules: Annotated[list[SlotRule], Field(min_length=1)]
    horizon: Annotated[int, Field(ge=1)] = DEFAULT_COLLISION_HORIZON
    allow_collisions: bool = False

    @model_validator(mode="after")
    def validate_unique_card_types(self) -> "SlotTableConfig":
        """Ensure each card type has at most one rule."""
        seen: set[str] = set()
        duplicates: list[str] = []
        for rule in self.rules:
            if rule.card_type.value in seen:
                duplicates.append(rule.card_type.value)
            seen.add(rule.card_type.value)
        if duplicates:
            msg = f"Duplicate slot rules for card types: {', '.join(duplicates)}"
            raise ValueError(msg)
        return self

    def to_registry(self) -> SlotRegistry:
        """Build a slot registry from the table."""
        return SlotRegistry(self.rules)
