"""Filter state machine for topic feeds.

A pure, synchronous state object: it never performs I/O. The feed session
observes changes through subscribed listeners and decides whether to
re-filter locally or refetch.
"""

from collections.abc import Callable, Iterable

import structlog

from src.content.models import Story
from src.facets.index import FacetIndex
from src.facets.models import FacetCount, FacetMatch, FacetType
from src.filters.models import FilterMode, FilterPhase, FilterState


logger = structlog.get_logger()

FilterListener = Callable[[FilterState], None]


class FilterStateMachine:
    """Holds the user's selected facet values.

    Phases: IDLE (nothing selected) -> FILTERING (>= 1 value selected)
    -> IDLE. Every effective change notifies subscribers exactly once;
    no-op operations notify nobody.
    """

    def __init__(self, index: FacetIndex, session_id: str = "") -> None:
        """Initialize the state machine in IDLE.

        Args:
            index: Facet index of the session's topic.
            session_id: Feed session identifier for logging.
        """
        self._index = index
        self._state = FilterState()
        self._listeners: list[FilterListener] = []
        self._log = logger.bind(component="filters", session_id=session_id)

    @property
    def state(self) -> FilterState:
        """Get the current filter state."""
        return self._state

    @property
    def phase(self) -> FilterPhase:
        """Get the current phase."""
        return FilterPhase.FILTERING if self._state.has_active_filters else FilterPhase.IDLE

    @property
    def has_active_filters(self) -> bool:
        """Whether any facet value is selected."""
        return self._state.has_active_filters

    def subscribe(self, listener: FilterListener) -> None:
        """Register a listener called with the new state after each change."""
        self._listeners.append(listener)

    def toggle(self, facet_type: FacetType, value: str) -> FilterState:
        """Add a value to a facet set, or remove it if already selected.

        Args:
            facet_type: Facet to change.
            value: Facet value.

        Returns:
            The resulting filter state.
        """
        value = value.strip()
        if not value:
            return self._state
        return self._replace(self._state.with_toggled(facet_type, value), "toggle")

    def remove(self, facet_type: FacetType, value: str) -> FilterState:
        """Remove a value from a facet set; a no-op if it is not selected."""
        value = value.strip()
        if value not in self._state.selected(facet_type):
            return self._state
        return self._replace(self._state.with_removed(facet_type, value), "remove")

    def clear_all(self) -> FilterState:
        """Reset all four facet sets and return to IDLE."""
        return self._replace(FilterState(), "clear_all")

    def apply_matches(self, matches: Iterable[FacetMatch]) -> FilterState:
        """Clear all filters and select every matched facet value.

        Applied as a single change so listeners refetch once.

        Args:
            matches: Facet matches from the matcher.

        Returns:
            The resulting filter state.
        """
        return self._replace(FilterState.from_matches(matches), "apply_matches")

    def classify(self, base_exhausted: bool) -> FilterMode:
        """Decide whether the current state can be served from loaded data.

        Args:
            base_exhausted: Whether the unfiltered stream is fully loaded.

        Returns:
            CLIENT when nothing is selected or all stories are already
            loaded, SERVER otherwise.
        """
        if not self._state.has_active_filters or base_exhausted:
            return FilterMode.CLIENT
        return FilterMode.SERVER

    def available_keywords(self, stories: Iterable[Story]) -> list[FacetCount]:
        """Get keywords observed in loaded stories, most frequent first."""
        return self._index.available(FacetType.KEYWORD, stories)

    def available_landmarks(self, stories: Iterable[Story]) -> list[FacetCount]:
        """Get landmarks observed in loaded stories, most frequent first."""
        return self._index.available(FacetType.LANDMARK, stories)

    def available_organizations(self, stories: Iterable[Story]) -> list[FacetCount]:
        """Get organizations observed in loaded stories, most frequent first."""
        return self._index.available(FacetType.ORGANIZATION, stories)

    def available_sources(self, stories: Iterable[Story]) -> list[FacetCount]:
        """Get source domains observed in loaded stories, most frequent first."""
        return self._index.available(FacetType.SOURCE, stories)

    def matches(self, story: Story) -> bool:
        """Check whether a story passes the current filter state."""
        return self._index.story_matches(story, self._state.selections())

    def _replace(self, new_state: FilterState, operation: str) -> FilterState:
        """Swap in a new state, logging phase changes and notifying listeners."""
        if new_state == self._state:
            return self._state

        old_phase = self.phase
        self._state = new_state
        new_phase = self.phase

        if old_phase != new_phase:
            self._log.info(
                "filter_phase_transition",
                from_phase=old_phase.value,
                to_phase=new_phase.value,
                operation=operation,
            )
        else:
            self._log.debug("filter_state_changed", operation=operation)

        for listener in self._listeners:
            listener(new_state)
        return new_state
