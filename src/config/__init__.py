"""Configuration loading and validation module."""

from src.config.loader import ConfigValidationError, SlotTableLoader, load_slot_table
from src.config.schemas.slots import SlotTableConfig


__all__ = [
    "ConfigValidationError",
    "SlotTableConfig",
    "SlotTableLoader",
    "load_slot_table",
]
