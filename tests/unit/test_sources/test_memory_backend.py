"""Tests for the in-memory feed backend."""

import pytest

from src.content.models import FeedSort, Interaction
from src.filters.models import FilterState
from src.sources.errors import SourceError, SourceErrorClass
from src.sources.memory import InMemoryFeedBackend
from tests.helpers.factories import make_stories, make_story, make_topic


def _backend(sort: FeedSort = FeedSort.NEWEST_FIRST) -> InMemoryFeedBackend:
    backend = InMemoryFeedBackend(sort=sort)
    backend.add_topic(make_topic("t"))
    backend.add_stories("t", make_stories(5))
    return backend


class TestPaging:
    """Tests for cursor paging."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_pages_follow_cursor(self) -> None:
        """Cursors walk the sorted stream until it is exhausted."""
        backend = _backend()

        first = await backend.fetch_story_page("t", FilterState(), None, 2)
        second = await backend.fetch_story_page("t", FilterState(), first.next_cursor, 2)
        third = await backend.fetch_story_page("t", FilterState(), second.next_cursor, 2)

        assert [s.id for s in first.stories] == ["s1", "s2"]
        assert [s.id for s in second.stories] == ["s3", "s4"]
        assert [s.id for s in third.stories] == ["s5"]
        assert third.next_cursor is None

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_oldest_first(self) -> None:
        """The backend honors the configured sort."""
        page = await _backend(FeedSort.OLDEST_FIRST).fetch_story_page("t", FilterState(), None, 2)
        assert [s.id for s in page.stories] == ["s5", "s4"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_filters_applied_before_paging(self) -> None:
        """Filtered pages only contain matching stories."""
        backend = _backend()
        backend.add_stories("t", [make_story("h1", title="Ferry delays", minutes=10)])

        page = await backend.fetch_story_page(
            "t", FilterState(keywords=frozenset({"ferry"})), None, 10
        )

        assert [s.id for s in page.stories] == ["h1"]
        assert backend.calls[-1].filters == ("ferry",)


class TestScriptedFailures:
    """Tests for injected failures."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_fail_next_once(self) -> None:
        """A scripted failure affects only the next call."""
        backend = _backend()
        backend.fail_next("fetch_story_page")

        with pytest.raises(SourceError) as exc_info:
            await backend.fetch_story_page("t", FilterState(), None, 2)
        assert exc_info.value.error_class == SourceErrorClass.HTTP_5XX

        page = await backend.fetch_story_page("t", FilterState(), None, 2)
        assert len(page.stories) == 2
        assert backend.call_count("fetch_story_page") == 2

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_unknown_topic(self) -> None:
        """Fetching an unregistered topic is a client error."""
        with pytest.raises(SourceError) as exc_info:
            await InMemoryFeedBackend().fetch_topic("missing")
        assert exc_info.value.status_code == 404


class TestOtherSources:
    """Tests for freshness and interaction queries."""

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_newer_than(self) -> None:
        """Only stories after the timestamp are returned, newest first."""
        backend = _backend()
        threshold = make_stories(5)[2].created_at

        newer = await backend.fetch_stories_newer_than("t", threshold)

        assert [s.id for s in newer] == ["s1", "s2"]

    @pytest.mark.unit
    @pytest.mark.asyncio
    async def test_interactions_filtered_by_story(self) -> None:
        """Interactions are returned for the requested stories only."""
        backend = _backend()
        backend.add_interactions(
            [
                Interaction(story_id="s1", interaction_type="swipe"),
                Interaction(story_id="s9", interaction_type="swipe"),
            ]
        )

        result = await backend.fetch_interactions(["s1"])

        assert [i.story_id for i in result] == ["s1"]
