"""Configuration schemas."""

from src.config.schemas.slots import SlotTableConfig


__all__ = ["SlotTableConfig"]
