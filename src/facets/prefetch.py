"""Best-effort cache of prefetched "more like this" results."""

from collections.abc import Iterable

import structlog

from src.content.models import StoryPage


logger = structlog.get_logger()

_SIGNATURE_SEPARATOR = "|"


def facet_signature(values: Iterable[str]) -> str:
    """Build the cache key for a combined facet value list.

    Args:
        values: Facet values, in any order and case.

    Returns:
        Sorted, lower-cased values joined into one key.
    """
    normalized = sorted({v.strip().lower() for v in values if v.strip()})
    return _SIGNATURE_SEPARATOR.join(normalized)


class PrefetchCache:
    """First-page results keyed by facet signature.

    Entries live for the lifetime of one feed session and are never
    invalidated; the staleness that implies is acceptable for a preview.
    """

    def __init__(self) -> None:
        """Initialize an empty cache."""
        self._entries: dict[str, StoryPage] = {}
        self._hits = 0
        self._misses = 0
        self._log = logger.bind(component="prefetch")

    def __len__(self) -> int:
        """Get the number of cached signatures."""
        return len(self._entries)

    def __contains__(self, signature: object) -> bool:
        """Check whether a signature is cached."""
        return signature in self._entries

    @property
    def hits(self) -> int:
        """Get the number of cache hits."""
        return self._hits

    @property
    def misses(self) -> int:
        """Get the number of cache misses."""
        return self._misses

    def put(self, signature: str, page: StoryPage) -> None:
        """Store a prefetched page.

        Args:
            signature: Facet signature the page was fetched for.
            page: First page of the filtered stream.
        """
        self._entries[signature] = page
        self._log.debug("prefetch_stored", signature=signature, stories=len(page.stories))

    def get(self, signature: str) -> StoryPage | None:
        """Look up a prefetched page.

        Args:
            signature: Facet signature of the current filter state.

        Returns:
            Cached page, or None on a miss.
        """
        page = self._entries.get(signature)
        if page is None:
            self._misses += 1
            return None
        self._hits += 1
        self._log.debug("prefetch_hit", signature=signature)
        return page

    def clear(self) -> None:
        """Drop every cached entry."""
        self._entries.clear()
