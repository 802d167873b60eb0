"""Slot registry for side-content placement.

Maps "every Nth story" positions to side-content card types and reports
collisions between card types claiming the same position.
"""

from src.slots.constants import DEFAULT_COLLISION_HORIZON, DEFAULT_SLOT_RULES
from src.slots.models import SlotCollision, SlotRule
from src.slots.registry import SlotRegistry, SlotTableError


__all__ = [
    "DEFAULT_COLLISION_HORIZON",
    "DEFAULT_SLOT_RULES",
    "SlotCollision",
    "SlotRegistry",
    "SlotRule",
    "SlotTableError",
]
