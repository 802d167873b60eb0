"""Data models for feed filtering."""

from collections.abc import Iterable
from enum import Enum

from pydantic import Field

from src.data_model import StrictBaseModel
from src.facets.models import FacetMatch, FacetType


class FilterPhase(str, Enum):
    """Phase of the filter state machine.

    - IDLE: no facet values selected
    - FILTERING: at least one facet value selected
    """

    IDLE = "IDLE"
    FILTERING = "FILTERING"


class FilterMode(str, Enum):
    """How a filter change must be served.

    - CLIENT: re-filter stories that are already loaded
    - SERVER: refetch the stream with the filters applied
    """

    CLIENT = "CLIENT"
    SERVER = "SERVER"


_FIELD_BY_FACET: dict[FacetType, str] = {
    FacetType.KEYWORD: "keywords",
    FacetType.LANDMARK: "landmarks",
    FacetType.ORGANIZATION: "organizations",
    FacetType.SOURCE: "sources",
}


class FilterState(StrictBaseModel):
    """Selected facet values.

    Union semantics within a facet, AND semantics across facets.

    Attributes:
        keywords: Selected keywords.
        landmarks: Selected landmarks.
        organizations: Selected organizations.
        sources: Selected source domains.
    """

    keywords: frozenset[str] = Field(default_factory=frozenset)
    landmarks: frozenset[str] = Field(default_factory=frozenset)
    organizations: frozenset[str] = Field(default_factory=frozenset)
    sources: frozenset[str] = Field(default_factory=frozenset)

    @classmethod
    def from_matches(cls, matches: Iterable[FacetMatch]) -> "FilterState":
        """Build a state selecting every matched facet value."""
        state = cls()
        for match in matches:
            if match.value not in state.selected(match.facet_type):
                state = state.with_toggled(match.facet_type, match.value)
        return state

    @property
    def has_active_filters(self) -> bool:
        """Whether any facet set is non-empty."""
        return bool(self.keywords or self.landmarks or self.organizations or self.sources)

    def selected(self, facet_type: FacetType) -> frozenset[str]:
        """Get the selected values of one facet."""
        selected: frozenset[str] = getattr(self, _FIELD_BY_FACET[facet_type])
        return selected

    def selections(self) -> dict[FacetType, frozenset[str]]:
        """Get selected values keyed by facet type."""
        return {facet: self.selected(facet) for facet in _FIELD_BY_FACET}

    def values(self) -> list[str]:
        """Get every selected value across facets, sorted."""
        return sorted(v for values in self.selections().values() for v in values)

    def with_toggled(self, facet_type: FacetType, value: str) -> "FilterState":
        """Return a copy with a value added, or removed if already selected."""
        current = self.selected(facet_type)
        updated = current - {value} if value in current else current | {value}
        return self.model_copy(update={_FIELD_BY_FACET[facet_type]: updated})

    def with_removed(self, facet_type: FacetType, value: str) -> "FilterState":
        """Return a copy without a value."""
        current = self.selected(facet_type)
        return self.model_copy(update={_FIELD_BY_FACET[facet_type]: current - {value}})
