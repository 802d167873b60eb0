"""HTTP implementation of the feed source contracts.

Talks JSON to the hosted backend over ``httpx.AsyncClient`` and maps
transport and status failures onto ``SourceError`` classes.
"""

from collections.abc import Callable, Sequence
from datetime import datetime
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from src.content.models import (
    CardType,
    Interaction,
    ParliamentaryMention,
    SideContentCard,
    Story,
    StoryPage,
    Topic,
)
from src.filters.models import FilterState
from src.settings import FeedSettings
from src.sources.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_OK_MAX,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SERVER_ERROR_MIN,
    HTTP_STATUS_TOO_MANY_REQUESTS,
)
from src.sources.errors import SourceError, SourceErrorClass


logger = structlog.get_logger()

_STORY_LIST = TypeAdapter(list[Story])
_CARD_LIST = TypeAdapter(list[SideContentCard])
_MENTION_LIST = TypeAdapter(list[ParliamentaryMention])
_INTERACTION_LIST = TypeAdapter(list[Interaction])

T = TypeVar("T")


class HttpFeedBackend:
    """Feed backend speaking JSON over HTTP.

    The client is injectable so tests can mount an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the backend.

        Args:
            base_url: Backend root URL.
            timeout_seconds: Per-request timeout.
            client: Pre-built client (default: one owned by this backend).
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url,
            timeout=timeout_seconds,
            follow_redirects=True,
        )
        self._log = logger.bind(component="sources", backend="http")

    @classmethod
    def from_settings(cls, settings: FeedSettings) -> "HttpFeedBackend":
        """Build a backend from the configured base URL and timeout.

        Raises:
            ValueError: If no backend URL is configured.
        """
        if not settings.backend_base_url:
            msg = "FEED_BACKEND_BASE_URL is not set"
            raise ValueError(msg)
        return cls(settings.backend_base_url, timeout_seconds=settings.backend_timeout_seconds)

    async def aclose(self) -> None:
        """Close the underlying client if this backend created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpFeedBackend":
        """Enter the async context."""
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close the client on exit."""
        await self.aclose()

    async def fetch_topic(self, topic_id: str) -> Topic:
        """Fetch topic facets and side-content configuration."""
        data = await self._request("fetch_topic", "GET", f"/topics/{topic_id}")
        return self._parse("fetch_topic", lambda: Topic.model_validate(data))

    async def fetch_story_page(
        self,
        topic_id: str,
        filters: FilterState,
        cursor: str | None,
        limit: int,
    ) -> StoryPage:
        """Fetch one page of stories with server-side filters."""
        params: list[tuple[str, str | int]] = [("limit", limit)]
        if cursor:
            params.append(("cursor", cursor))
        for name, values in (
            ("keyword", filters.keywords),
            ("landmark", filters.landmarks),
            ("organization", filters.organizations),
            ("source", filters.sources),
        ):
            params.extend((name, v) for v in sorted(values))

        data = await self._request(
            "fetch_story_page", "GET", f"/topics/{topic_id}/stories", params=params
        )
        return self._parse("fetch_story_page", lambda: StoryPage.model_validate(data))

    async def fetch_stories_newer_than(self, topic_id: str, timestamp: datetime) -> list[Story]:
        """Fetch stories created after a timestamp."""
        data = await self._request(
            "fetch_stories_newer_than",
            "GET",
            f"/topics/{topic_id}/stories/newer",
            params=[("since", timestamp.isoformat())],
        )
        return self._parse(
            "fetch_stories_newer_than",
            lambda: _STORY_LIST.validate_python(_field(data, "stories")),
        )

    async def fetch_side_content(self, card_type: CardType, topic_id: str) -> list[SideContentCard]:
        """Fetch available cards of one type."""
        operation = f"fetch_side_content:{card_type.value}"
        data = await self._request(
            operation, "GET", f"/topics/{topic_id}/side-content/{card_type.value}"
        )
        return self._parse(operation, lambda: _CARD_LIST.validate_python(_field(data, "items")))

    async def fetch_parliamentary_mentions(self, topic_id: str) -> list[ParliamentaryMention]:
        """Fetch parliamentary mentions for a topic."""
        data = await self._request(
            "fetch_parliamentary_mentions",
            "GET",
            f"/topics/{topic_id}/parliamentary-mentions",
        )
        return self._parse(
            "fetch_parliamentary_mentions",
            lambda: _MENTION_LIST.validate_python(_field(data, "items")),
        )

    async def fetch_interactions(self, story_ids: Sequence[str]) -> list[Interaction]:
        """Fetch interactions for the given stories."""
        if not story_ids:
            return []
        data = await self._request(
            "fetch_interactions",
            "POST",
            "/interactions/query",
            json={"story_ids": list(story_ids)},
        )
        return self._parse(
            "fetch_interactions",
            lambda: _INTERACTION_LIST.validate_python(_field(data, "interactions")),
        )

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        params: list[tuple[str, str | int]] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Execute a request and decode its JSON body.

        Raises:
            SourceError: On transport failure, error status or invalid JSON.
        """
        log = self._log.bind(operation=operation, path=path)
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            log.warning("source_request_failed", error_class="NETWORK_TIMEOUT")
            raise SourceError(
                SourceErrorClass.NETWORK_TIMEOUT, f"Request timed out: {e}", operation=operation
            ) from e
        except httpx.ConnectError as e:
            log.warning("source_request_failed", error_class="CONNECTION_ERROR")
            raise SourceError(
                SourceErrorClass.CONNECTION_ERROR, f"Connection failed: {e}", operation=operation
            ) from e
        except httpx.HTTPError as e:
            log.warning("source_request_failed", error_class="UNKNOWN")
            raise SourceError(
                SourceErrorClass.UNKNOWN, f"Unexpected error: {e}", operation=operation
            ) from e

        error = _classify_status(response.status_code, operation)
        if error is not None:
            log.warning(
                "source_request_failed",
                error_class=error.error_class.value,
                status_code=response.status_code,
            )
            raise error

        try:
            return response.json()
        except ValueError as e:
            raise SourceError(
                SourceErrorClass.PARSE,
                f"Invalid JSON body: {e}",
                status_code=response.status_code,
                operation=operation,
            ) from e

    def _parse(self, operation: str, build: Callable[[], T]) -> T:
        """Validate a decoded body, mapping validation errors to PARSE."""
        try:
            return build()
        except (ValidationError, KeyError, TypeError) as e:
            self._log.warning("source_response_invalid", operation=operation, error=str(e))
            raise SourceError(
                SourceErrorClass.PARSE, f"Unexpected response shape: {e}", operation=operation
            ) from e


def _field(data: Any, name: str) -> Any:
    """Get a top-level field of a JSON object body."""
    if not isinstance(data, dict):
        msg = f"Expected a JSON object with '{name}'"
        raise TypeError(msg)
    return data[name]


def _classify_status(status_code: int, operation: str) -> SourceError | None:
    """Classify an HTTP status code as a source error.

    Args:
        status_code: HTTP status code.
        operation: Operation for error context.

    Returns:
        SourceError if the status indicates failure, None otherwise.
    """
    if HTTP_STATUS_OK_MIN <= status_code < HTTP_STATUS_OK_MAX:
        return None

    if status_code == HTTP_STATUS_TOO_MANY_REQUESTS:
        return SourceError(
            SourceErrorClass.RATE_LIMITED,
            "Rate limited (429 Too Many Requests)",
            status_code=status_code,
            operation=operation,
        )

    if HTTP_STATUS_BAD_REQUEST <= status_code < HTTP_STATUS_SERVER_ERROR_MIN:
        return SourceError(
            SourceErrorClass.HTTP_4XX,
            f"Client error ({status_code})",
            status_code=status_code,
            operation=operation,
        )

    if status_code >= HTTP_STATUS_SERVER_ERROR_MIN:
        return SourceError(
            SourceErrorClass.HTTP_5XX,
            f"Server error ({status_code})",
            status_code=status_code,
            operation=operation,
        )

    return SourceError(
        SourceErrorClass.UNKNOWN,
        f"Unexpected status ({status_code})",
        status_code=status_code,
        operation=operation,
    )
