"""Data models for facet matching."""

from dataclasses import dataclass
from enum import Enum


class FacetType(str, Enum):
    """The four filterable dimensions of a topic feed."""

    KEYWORD = "keyword"
    LANDMARK = "landmark"
    ORGANIZATION = "organization"
    SOURCE = "source"


@dataclass(frozen=True)
class FacetMatch:
    """A facet value found in a story's text.

    Attributes:
        facet_type: Facet group the value belongs to.
        value: The topic-configured value, as configured.
    """

    facet_type: FacetType
    value: str


@dataclass(frozen=True)
class FacetCount:
    """Occurrence count of a facet value across loaded stories.

    Attributes:
        value: Facet value (or source domain).
        count: Number of loaded stories it was observed in.
    """

    value: str
    count: int


@dataclass(frozen=True)
class FacetGroup:
    """Ordered candidate values for one facet type.

    Attributes:
        facet_type: Facet group.
        values: Topic-configured values, in configuration order.
    """

    facet_type: FacetType
    values: tuple[str, ...]
