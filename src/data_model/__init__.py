"""Shared data model primitives."""

from src.data_model.base import StrictBaseModel


__all__ = ["StrictBaseModel"]
