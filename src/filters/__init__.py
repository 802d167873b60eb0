"""Filter state machine for multi-facet feed filtering."""

from src.filters.models import FilterMode, FilterPhase, FilterState
from src.filters.state_machine import FilterListener, FilterStateMachine


__all__ = [
    "FilterListener",
    "FilterMode",
    "FilterPhase",
    "FilterState",
    "FilterStateMachine",
]
