"""Shared Pydantic base models."""

from pydantic import BaseModel, ConfigDict


class StrictBaseModel(BaseModel):
    """Base model with strict, immutable defaults.

    Feed records are produced upstream and never mutated by the engine,
    so every model built on this base is frozen and rejects unknown fields.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")
