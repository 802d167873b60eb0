"""Tests for the async feed session."""

import asyncio

import pytest
from structlog.testing import capture_logs

from src.assembler import (
    EmptyState,
    FeedMetrics,
    FeedSession,
    LoadOperation,
    SessionClosedError,
    SessionNotOpenError,
    SessionState,
)
from src.content.models import CardType, ContentKind, Story, TopicType
from src.facets.models import FacetType
from src.sources.errors import SourceError, SourceErrorClass
from tests.helpers.backends import GatedFeedBackend, settle
from tests.helpers.factories import (
    make_cards,
    make_mention,
    make_settings,
    make_story,
    make_topic,
)


TOPIC_ID = "eastbourne"


def _stories(count: int = 25) -> list[Story]:
    """Stories newest first; every fifth one is about the harbour."""
    return [
        make_story(
            f"s{i}",
            title=f"Harbour update {i}" if i % 5 == 0 else f"Town news {i}",
            minutes=i,
        )
        for i in range(1, count + 1)
    ]


def _backend(count: int = 25, parliamentary: bool = False) -> GatedFeedBackend:
    backend = GatedFeedBackend()
    backend.add_topic(make_topic(TOPIC_ID, parliamentary=parliamentary))
    backend.add_stories(TOPIC_ID, _stories(count))
    return backend


def _session(backend: GatedFeedBackend, **settings: object) -> FeedSession:
    return FeedSession(
        backend,
        TOPIC_ID,
        settings=make_settings(**settings),
        session_id="test-session",
    )


def _story_ids(session: FeedSession) -> list[str]:
    return [item.payload.id for item in session.sequence.story_items]


class TestOpenAndPaging:
    """Tests for opening and paginating a feed."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_open_loads_first_page(self) -> None:
        """Opening shows the first page followed by a load-more sentinel."""
        session = _session(_backend())

        assert await session.open()

        assert session.state == SessionState.READY
        assert _story_ids(session) == [f"s{i}" for i in range(1, 11)]
        assert session.has_more
        assert session.rendered_items[-1].kind == ContentKind.LOAD_MORE

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pages_append_in_order_until_exhausted(self) -> None:
        """Pages append in request order and the feed ends with a marker."""
        session = _session(_backend())
        await session.open()

        assert await session.load_more()
        assert await session.load_more()
        assert not await session.load_more()

        assert _story_ids(session) == [f"s{i}" for i in range(1, 26)]
        assert not session.has_more
        assert session.rendered_items[-1].kind == ContentKind.END_OF_FEED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_load_more_ignored_while_in_flight(self) -> None:
        """A second load_more during a fetch does nothing."""
        backend = _backend()
        session = _session(backend)
        await session.open()

        backend.hold()
        first = asyncio.create_task(session.load_more())
        await settle()
        assert session.is_loading_more

        assert not await session.load_more()
        backend.release()
        assert await first

        assert backend.call_count("fetch_story_page") == 2
        assert len(session.sequence.story_items) == 20

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_side_content_interleaved(self) -> None:
        """Cards from the backend are placed by the slot table."""
        backend = _backend()
        backend.set_side_content(TOPIC_ID, CardType.SENTIMENT, make_cards(CardType.SENTIMENT, 2))
        session = _session(backend)
        await session.open()

        items = session.sequence.items
        assert items[6].kind == ContentKind.SENTIMENT
        assert items[5].payload.id == "s6"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_side_content_failure_does_not_block_stories(self) -> None:
        """A failing card source leaves its type empty and the feed intact."""
        backend = _backend()
        backend.set_side_content(TOPIC_ID, CardType.INSIGHT, make_cards(CardType.INSIGHT, 1))
        backend.fail_next("fetch_side_content:sentiment")
        session = _session(backend)

        with capture_logs() as logs:
            assert await session.open()

        assert len(session.sequence.story_items) == 10
        assert ContentKind.INSIGHT in {i.kind for i in session.sequence.items}
        assert any(e["event"] == "side_content_unavailable" for e in logs)
        assert FeedMetrics.get_instance().side_content_failures == 1

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mentions_merged_into_first_page_by_date(self) -> None:
        """Mentions are placed among page-zero stories by content date."""
        backend = _backend(parliamentary=True)
        backend.add_mentions(
            TOPIC_ID, [make_mention("m1", minutes=0), make_mention("m2", minutes=100)]
        )
        session = _session(backend)
        await session.open()

        keys = session.sequence.keys
        assert keys[0] == "mention-m1"
        assert keys[11] == "mention-m2"
        assert session.sequence.story_index == 12

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mentions_only_for_regional_topics(self) -> None:
        """Keyword topics never fetch parliamentary mentions."""
        backend = GatedFeedBackend()
        backend.add_topic(
            make_topic(TOPIC_ID, parliamentary=True, topic_type=TopicType.KEYWORD)
        )
        backend.add_stories(TOPIC_ID, _stories(5))
        backend.add_mentions(TOPIC_ID, [make_mention("m1", minutes=0)])
        session = _session(backend)
        await session.open()

        assert backend.call_count("fetch_parliamentary_mentions") == 0
        assert not any(k.startswith("mention-") for k in session.sequence.keys)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_low_relevance_mentions_dropped_and_capped(self) -> None:
        """Mentions below the relevance floor are dropped; the newest are kept."""
        backend = _backend(count=5, parliamentary=True)
        backend.add_mentions(
            TOPIC_ID,
            [
                make_mention("m1", minutes=2, relevance=29.9),
                make_mention("m2", minutes=3, relevance=30.0),
                make_mention("m3", minutes=4, relevance=80.0),
                make_mention("m4", minutes=1, relevance=95.0),
            ],
        )
        session = _session(backend, mention_limit=2)
        await session.open()

        mentions = [k for k in session.sequence.keys if k.startswith("mention-")]
        assert mentions == ["mention-m4", "mention-m2"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unexpected_mention_failure_logged(self) -> None:
        """A non-source error from the mention fetch is logged like other side content."""
        backend = _backend(count=5, parliamentary=True)
        backend.fail_next("fetch_parliamentary_mentions", RuntimeError("bad row"))

        with capture_logs() as logs:
            session = _session(backend)
            assert await session.open()

        failures = [e for e in logs if e["event"] == "parliamentary_mentions_unavailable"]
        assert failures[0]["message"] == "bad row"
        assert len(session.sequence.story_items) == 5
        assert FeedMetrics.get_instance().side_content_failures == 1


class TestFailureAndRetry:
    """Tests for load errors and retry."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_failed_page_keeps_rendered_items(self) -> None:
        """A failed next page keeps earlier pages and can be retried."""
        backend = _backend()
        session = _session(backend)
        await session.open()
        backend.fail_next("fetch_story_page")

        assert not await session.load_more()

        assert session.state == SessionState.FAILED
        error = session.load_error
        assert error is not None
        assert (error.cursor, error.attempts, error.retryable) == ("10", 1, True)
        assert error.operation == LoadOperation.NEXT_PAGE
        assert len(session.sequence.story_items) == 10

        assert await session.retry()
        assert session.load_error is None
        assert _story_ids(session)[10:] == [f"s{i}" for i in range(11, 21)]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_load_more_ignored_after_failure(self) -> None:
        """Only retry resumes a failed feed."""
        backend = _backend()
        session = _session(backend)
        await session.open()
        backend.fail_next("fetch_story_page")
        await session.load_more()

        assert not await session.load_more()
        assert backend.call_count("fetch_story_page") == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_retry_budget_is_bounded(self) -> None:
        """Retry stops being offered after max_load_retries attempts."""
        backend = _backend()
        session = _session(backend, max_load_retries=1)
        await session.open()
        backend.fail_next("fetch_story_page", times=3)

        await session.load_more()
        assert session.load_error is not None
        assert session.load_error.retryable

        assert not await session.retry()
        assert session.load_error.attempts == 2
        assert not session.load_error.retryable
        assert not await session.retry()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_client_error_is_not_retryable(self) -> None:
        """Non-transient errors are reported without a retry affordance."""
        backend = _backend()
        session = _session(backend)
        await session.open()
        backend.fail_next(
            "fetch_story_page",
            SourceError(SourceErrorClass.HTTP_4XX, "Bad cursor", status_code=400),
        )

        await session.load_more()

        assert session.load_error is not None
        assert not session.load_error.retryable
        assert session.load_error.error_class == "HTTP_4XX"

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_first_page_failure_then_retry(self) -> None:
        """A failed first page is retried as a first page."""
        backend = _backend()
        backend.fail_next("fetch_story_page")
        session = _session(backend)

        assert not await session.open()
        assert session.load_error is not None
        assert session.load_error.operation == LoadOperation.FIRST_PAGE

        assert await session.retry()
        assert session.state == SessionState.READY
        assert len(session.sequence.story_items) == 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_topic_failure_then_retry(self) -> None:
        """A failed topic fetch is retried by reopening."""
        backend = _backend()
        backend.fail_next("fetch_topic")
        session = _session(backend)

        assert not await session.open()
        assert session.load_error is not None
        assert session.load_error.operation == LoadOperation.OPEN

        assert await session.retry()
        assert session.topic is not None


class TestFiltering:
    """Tests for filter changes."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_server_filter_refetches_first_page(self) -> None:
        """Filters over a partially loaded feed refetch with the filters."""
        backend = _backend()
        session = _session(backend)
        await session.open()

        await session.toggle_filter(FacetType.KEYWORD, "harbour")

        assert _story_ids(session) == ["s5", "s10", "s15", "s20", "s25"]
        assert not session.has_more
        assert backend.calls[-1].filters == ("harbour",)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_client_filter_when_fully_loaded(self) -> None:
        """Filters over an exhausted feed re-filter without fetching."""
        backend = _backend()
        session = _session(backend, page_size=50)
        await session.open()
        calls_before = backend.call_count("fetch_story_page")

        await session.toggle_filter(FacetType.KEYWORD, "harbour")

        assert backend.call_count("fetch_story_page") == calls_before
        assert _story_ids(session) == ["s5", "s10", "s15", "s20", "s25"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_clear_filters_restores_loaded_pages(self) -> None:
        """Clearing filters shows the retained unfiltered pages again."""
        backend = _backend()
        session = _session(backend)
        await session.open()
        await session.toggle_filter(FacetType.KEYWORD, "harbour")
        calls_before = backend.call_count("fetch_story_page")

        await session.clear_filters()

        assert backend.call_count("fetch_story_page") == calls_before
        assert _story_ids(session) == [f"s{i}" for i in range(1, 11)]
        assert session.has_more

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_remove_filter(self) -> None:
        """Removing the last value returns to the unfiltered feed."""
        session = _session(_backend())
        await session.open()
        await session.toggle_filter(FacetType.KEYWORD, "harbour")

        state = await session.remove_filter(FacetType.KEYWORD, "harbour")

        assert not state.has_active_filters
        assert len(session.sequence.story_items) == 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_mentions_hidden_while_filtering(self) -> None:
        """Parliamentary mentions only show in the unfiltered feed."""
        backend = _backend(parliamentary=True)
        backend.add_mentions(TOPIC_ID, [make_mention("m1", minutes=0)])
        session = _session(backend, page_size=50)
        await session.open()

        await session.toggle_filter(FacetType.KEYWORD, "harbour")

        assert not any(k.startswith("mention-") for k in session.sequence.keys)

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_stale_page_discarded_after_filter_change(self) -> None:
        """A page requested before a filter change is dropped on arrival."""
        backend = _backend()
        session = _session(backend)
        await session.open()

        backend.hold()
        pending = asyncio.create_task(session.load_more())
        await settle()
        await session.toggle_filter(FacetType.KEYWORD, "harbour")

        with capture_logs() as logs:
            backend.release()
            assert not await pending

        assert _story_ids(session) == ["s5", "s10", "s15", "s20", "s25"]
        assert any(e["event"] == "stale_page_discarded" for e in logs)
        assert FeedMetrics.get_instance().stale_pages_discarded == 1
        assert session.state == SessionState.READY

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_filters_require_open_session(self) -> None:
        """Filter operations need a loaded topic."""
        session = _session(_backend())
        with pytest.raises(SessionNotOpenError):
            await session.toggle_filter(FacetType.KEYWORD, "harbour")

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_available_facets_from_loaded_stories(self) -> None:
        """Available facet lists reflect the loaded stories."""
        session = _session(_backend())
        await session.open()

        keywords = session.available_keywords()

        assert [(c.value, c.count) for c in keywords] == [("harbour", 2)]
        assert [c.value for c in session.available_sources()] == ["example.com"]


class TestMoreLikeThis:
    """Tests for the "more like this" action."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_zero_matches_requests_filter_ui(self) -> None:
        """A story with no facet overlap opens the filter UI instead."""
        backend = _backend()
        session = _session(backend)
        await session.open()
        calls_before = len(backend.calls)

        matches = await session.more_like_this(make_story("x", title="Weather", content="Sunny"))

        assert matches == []
        assert session.filter_ui_requested
        assert not session.has_active_filters
        assert len(backend.calls) == calls_before

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_matches_replace_filters(self) -> None:
        """Matches replace the filters and scroll the feed to the top."""
        session = _session(_backend())
        await session.open()
        await session.toggle_filter(FacetType.SOURCE, "example.com")

        matches = await session.more_like_this(make_story("x", title="Harbour works at the Pier"))

        assert [m.value for m in matches] == ["Pier", "harbour"]
        assert session.filter_state.sources == frozenset()
        assert session.filter_state.landmarks == frozenset({"Pier"})
        assert session.scroll_to_top_requested

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_prefetch_serves_first_page(self) -> None:
        """A prefetched page is used instead of a new fetch."""
        backend = _backend()
        session = _session(backend)
        await session.open()
        story = make_story("s5", title="Harbour update 5")

        task = session.prefetch_for_story(story)
        assert task is not None
        await task
        calls_before = backend.call_count("fetch_story_page")

        await session.more_like_this(story)

        assert backend.call_count("fetch_story_page") == calls_before
        assert session.prefetch_cache.hits == 1
        assert _story_ids(session) == ["s5", "s10", "s15", "s20", "s25"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_prefetch_failure_is_silent(self) -> None:
        """A failed prefetch leaves the cache empty without raising."""
        backend = _backend()
        session = _session(backend)
        await session.open()
        backend.fail_next("fetch_story_page")

        task = session.prefetch_for_story(make_story("x", title="Harbour"))
        assert task is not None
        await task

        assert len(session.prefetch_cache) == 0

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_prefetch_skipped_without_matches(self) -> None:
        """No task is started for a story without facet overlap."""
        session = _session(_backend())
        await session.open()
        assert session.prefetch_for_story(make_story("x", title="Weather", content="Sun")) is None


class TestEmptyStateAndClose:
    """Tests for empty states and teardown."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_content(self) -> None:
        """A topic without stories reports NO_CONTENT."""
        session = _session(_backend(count=0))
        await session.open()
        assert session.empty_state == EmptyState.NO_CONTENT
        assert session.rendered_items[-1].kind == ContentKind.END_OF_FEED

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_no_matches(self) -> None:
        """Filters excluding everything report NO_MATCHES."""
        session = _session(_backend(), page_size=50)
        await session.open()
        await session.toggle_filter(FacetType.ORGANIZATION, "RNLI")
        assert session.empty_state == EmptyState.NO_MATCHES

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_loaded_feed_has_no_empty_state(self) -> None:
        """A feed with stories has no empty state."""
        session = _session(_backend())
        await session.open()
        assert session.empty_state is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_close_discards_late_results(self) -> None:
        """A page arriving after close is dropped."""
        backend = _backend()
        session = _session(backend)
        await session.open()

        backend.hold()
        pending = asyncio.create_task(session.load_more())
        await settle()
        await session.close()
        backend.release()

        assert not await pending
        assert session.state == SessionState.CLOSED
        assert len(session.sequence.story_items) == 10

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_closed_session_cannot_reopen(self) -> None:
        """open after close raises."""
        session = _session(_backend())
        await session.close()
        with pytest.raises(SessionClosedError):
            await session.open()

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_async_context_manager(self) -> None:
        """The session opens on enter and closes on exit."""
        async with _session(_backend()) as session:
            assert session.state == SessionState.READY
        assert session.state == SessionState.CLOSED
