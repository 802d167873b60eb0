"""Feed session: one user's view of one topic feed.

Owns the paging cursor, the filter state, the side-content pool and the
assembled sequence. Every fetch is tagged with the generation current at
request time; results that come back after a filter change or a close are
discarded.
"""

import asyncio
import heapq
import uuid
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime

import structlog

from src.assembler.assembler import FeedAssembler
from src.assembler.errors import SessionClosedError, SessionNotOpenError
from src.assembler.metrics import FeedMetrics
from src.assembler.models import (
    EmptyState,
    FeedSequence,
    LoadError,
    LoadOperation,
)
from src.assembler.state_machine import SessionState, SessionStateMachine
from src.content.models import (
    CardType,
    ContentItem,
    FeedEntry,
    FeedSort,
    ParliamentaryMention,
    SideContentCard,
    Story,
    StoryPage,
    Topic,
    TopicType,
)
from src.facets.index import FacetIndex
from src.facets.matcher import FacetMatcher
from src.facets.models import FacetCount, FacetMatch, FacetType
from src.facets.prefetch import PrefetchCache, facet_signature
from src.filters.models import FilterMode, FilterState
from src.filters.state_machine import FilterStateMachine
from src.freshness.monitor import FreshnessMonitor
from src.settings import FeedSettings, get_settings
from src.slots.registry import SlotRegistry
from src.sources.errors import SourceError
from src.sources.protocols import FeedBackend


logger = structlog.get_logger()

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass
class _Stream:
    """Pages fetched for one filter state."""

    filters: FilterState
    pages: list[list[Story]] = field(default_factory=list)
    next_cursor: str | None = None
    started: bool = False

    @property
    def exhausted(self) -> bool:
        """Whether every page of the stream has been fetched."""
        return self.started and self.next_cursor is None

    @property
    def stories(self) -> list[Story]:
        """Get all fetched stories in page order."""
        return [story for page in self.pages for story in page]

    def accept(self, page: StoryPage) -> None:
        """Record a fetched page."""
        self.pages.append(list(page.stories))
        self.next_cursor = page.next_cursor
        self.started = True


def _entry_date(entry: FeedEntry) -> datetime:
    return entry.content_date


class FeedSession:
    """Async feed session for a single topic.

    Typical use::

        session = FeedSession(backend, "topic-1")
        await session.open()
        items = session.rendered_items
        await session.load_more()
    """

    def __init__(
        self,
        backend: FeedBackend,
        topic_id: str,
        settings: FeedSettings | None = None,
        registry: SlotRegistry | None = None,
        metrics: FeedMetrics | None = None,
        session_id: str | None = None,
    ) -> None:
        """Initialize an unloaded session.

        Args:
            backend: Source of topics, stories, side content and mentions.
            topic_id: Topic to show.
            settings: Feed settings (default: loaded from the environment).
            registry: Slot table before topic overrides (default: built-in).
            metrics: Metrics sink (default: the shared instance).
            session_id: Identifier for logging (default: random).
        """
        self._backend = backend
        self._topic_id = topic_id
        self._settings = settings or get_settings()
        self._session_id = session_id or uuid.uuid4().hex[:12]
        self._metrics = metrics or FeedMetrics.get_instance()
        self._base_registry = registry or SlotRegistry()
        self._machine = SessionStateMachine(self._session_id)
        self._assembler = FeedAssembler(self._base_registry, self._metrics, self._session_id)

        self._topic: Topic | None = None
        self._filters: FilterStateMachine | None = None
        self._matcher: FacetMatcher | None = None
        self._side_content: dict[CardType, list[SideContentCard]] = {}
        self._mentions: list[ParliamentaryMention] = []

        self._base = _Stream(FilterState())
        self._active = self._base
        self._sequence = FeedSequence()
        self._generation = 0
        self._load_error: LoadError | None = None
        self._merge_queued = False

        self._prefetch = PrefetchCache()
        self._prefetch_tasks: set[asyncio.Task[None]] = set()
        self._monitor = FreshnessMonitor(
            backend,
            topic_id,
            interval_seconds=self._settings.freshness_interval_seconds,
            session_id=self._session_id,
        )

        self.filter_ui_requested = False
        self.scroll_to_top_requested = False

        self._log = logger.bind(
            component="session", session_id=self._session_id, topic_id=topic_id
        )

    async def __aenter__(self) -> "FeedSession":
        """Open the session."""
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        """Close the session."""
        await self.close()

    # Exposed state

    @property
    def session_id(self) -> str:
        """Get the session identifier."""
        return self._session_id

    @property
    def state(self) -> SessionState:
        """Get the lifecycle state."""
        return self._machine.state

    @property
    def topic(self) -> Topic | None:
        """Get the loaded topic."""
        return self._topic

    @property
    def generation(self) -> int:
        """Get the current generation token."""
        return self._generation

    @property
    def sequence(self) -> FeedSequence:
        """Get the assembled sequence without the pagination marker."""
        return self._sequence

    @property
    def rendered_items(self) -> list[ContentItem]:
        """Get the render stream including the trailing marker."""
        return self._sequence.rendered(self.has_more)

    @property
    def has_more(self) -> bool:
        """Whether the visible stream has further pages."""
        return not self._active.exhausted

    @property
    def is_loading_more(self) -> bool:
        """Whether a follow-up page is in flight."""
        return self._machine.state == SessionState.LOADING_MORE

    @property
    def load_error(self) -> LoadError | None:
        """Get the pending load error, if the last fetch failed."""
        return self._load_error

    @property
    def filter_state(self) -> FilterState:
        """Get the selected facet values."""
        if self._filters is None:
            return FilterState()
        return self._filters.state

    @property
    def has_active_filters(self) -> bool:
        """Whether any facet value is selected."""
        return self.filter_state.has_active_filters

    @property
    def has_new_stories(self) -> bool:
        """Whether new stories are waiting to be merged."""
        return self._monitor.has_new_stories

    @property
    def new_story_count(self) -> int:
        """Get the number of stories waiting to be merged."""
        return self._monitor.new_story_count

    @property
    def monitor(self) -> FreshnessMonitor:
        """Get the freshness monitor."""
        return self._monitor

    @property
    def prefetch_cache(self) -> PrefetchCache:
        """Get the "more like this" prefetch cache."""
        return self._prefetch

    @property
    def merge_queued(self) -> bool:
        """Whether a merge is waiting for an in-flight fetch."""
        return self._merge_queued

    @property
    def empty_state(self) -> EmptyState | None:
        """Get the reason a settled feed shows no stories, if it shows none."""
        if self._machine.state != SessionState.READY or self._sequence.story_items:
            return None
        if self.has_active_filters:
            return EmptyState.NO_MATCHES
        return EmptyState.NO_CONTENT

    def available_keywords(self) -> list[FacetCount]:
        """Get keywords present in loaded stories, most frequent first."""
        return self._require_filters("list keywords").available_keywords(self._loaded_stories())

    def available_landmarks(self) -> list[FacetCount]:
        """Get landmarks present in loaded stories, most frequent first."""
        return self._require_filters("list landmarks").available_landmarks(self._loaded_stories())

    def available_organizations(self) -> list[FacetCount]:
        """Get organizations present in loaded stories, most frequent first."""
        return self._require_filters("list organizations").available_organizations(
            self._loaded_stories()
        )

    def available_sources(self) -> list[FacetCount]:
        """Get source domains present in loaded stories, most frequent first."""
        return self._require_filters("list sources").available_sources(self._loaded_stories())

    # Loading

    async def open(self) -> bool:
        """Load the topic, side content and first story page.

        Side-content types and parliamentary mentions are fetched
        concurrently with the first page; their failures only leave the
        affected type empty.

        Returns:
            True if the first page was loaded.

        Raises:
            SessionClosedError: If the session was closed.
        """
        if self._machine.is_terminal:
            raise SessionClosedError(self._session_id)
        if self._machine.state not in (SessionState.UNLOADED, SessionState.FAILED):
            return False

        generation = self._generation
        self._machine.to_loading()

        try:
            topic = await self._backend.fetch_topic(self._topic_id)
        except SourceError as e:
            if not self._is_stale(generation, "fetch_topic"):
                self._fail(LoadOperation.OPEN, None, e)
            return False
        if self._is_stale(generation, "fetch_topic"):
            return False

        self._configure(topic)
        side, page = await asyncio.gather(
            self._load_side_content(topic),
            self._fetch_page(self._base, None),
            return_exceptions=True,
        )
        if isinstance(side, BaseException):
            raise side
        if isinstance(page, SourceError):
            if not self._is_stale(generation, "fetch_story_page"):
                self._fail(LoadOperation.FIRST_PAGE, None, page)
            return False
        if isinstance(page, BaseException):
            raise page
        if self._is_stale(generation, "fetch_story_page"):
            return False

        self._base.accept(page)
        self._load_error = None
        self._rebuild()
        self._machine.to_ready()
        self._log.info(
            "feed_opened",
            stories=len(self._sequence.story_items),
            side_types=sorted(c.value for c, cards in self._side_content.items() if cards),
            mentions=len(self._mentions),
        )
        await self._run_queued_merge()
        return True

    async def load_more(self) -> bool:
        """Fetch and append the next page of the visible stream.

        Ignored while any fetch is in flight, after a failure (use
        ``retry``) and once the stream is exhausted.

        Returns:
            True if a page was appended.
        """
        if self._machine.state != SessionState.READY or not self.has_more:
            self._log.debug(
                "load_more_ignored",
                state=self._machine.state.value,
                has_more=self.has_more,
            )
            return False
        return await self._load_next()

    async def retry(self) -> bool:
        """Refetch the page whose fetch failed.

        Returns:
            True if the page was loaded.
        """
        error = self._load_error
        if error is None or not error.retryable or self._machine.state != SessionState.FAILED:
            return False

        self._log.info("feed_load_retry", **error.to_dict())
        if error.operation == LoadOperation.OPEN:
            return await self.open()
        if error.operation == LoadOperation.FIRST_PAGE:
            return await self._load_stream(self._target_stream())
        return await self._load_next()

    async def close(self) -> None:
        """Tear down the session; late results are discarded."""
        if self._machine.is_terminal:
            return
        self._generation += 1
        for task in list(self._prefetch_tasks):
            task.cancel()
        await self._monitor.stop()
        self._machine.to_closed()

    # Filters

    async def toggle_filter(self, facet_type: FacetType, value: str) -> FilterState:
        """Select a facet value, or deselect it if already selected."""
        filters = self._require_filters("toggle a filter")
        before = filters.state
        after = filters.toggle(facet_type, value)
        if after != before:
            await self._apply_filter_change()
        return after

    async def remove_filter(self, facet_type: FacetType, value: str) -> FilterState:
        """Deselect a facet value."""
        filters = self._require_filters("remove a filter")
        before = filters.state
        after = filters.remove(facet_type, value)
        if after != before:
            await self._apply_filter_change()
        return after

    async def clear_filters(self) -> FilterState:
        """Deselect every facet value."""
        filters = self._require_filters("clear filters")
        before = filters.state
        after = filters.clear_all()
        if after != before:
            await self._apply_filter_change()
        return after

    async def more_like_this(self, story: Story) -> list[FacetMatch]:
        """Replace the filters with the facet values found in a story.

        With no matches the filters are left alone and the filter UI is
        requested instead.

        Args:
            story: Story the action was invoked on.

        Returns:
            Matches applied as filters, possibly empty.
        """
        filters = self._require_filters("find similar stories")
        matches = self._require_matcher().compute_matches(story)
        if not matches:
            self.filter_ui_requested = True
            self._log.info("more_like_this_no_matches", story_id=story.id)
            return []

        self.scroll_to_top_requested = True
        before = filters.state
        if filters.apply_matches(matches) != before:
            await self._apply_filter_change()
        return matches

    def prefetch_for_story(self, story: Story) -> asyncio.Task[None] | None:
        """Warm the cache with the first page "more like this" would show.

        Args:
            story: Story the user is likely to act on.

        Returns:
            Background task, or None if nothing needs fetching.
        """
        if self._matcher is None or self._machine.is_terminal:
            return None
        matches = self._matcher.compute_matches(story)
        if not matches:
            return None
        filters = FilterState.from_matches(matches)
        signature = facet_signature(filters.values())
        if signature in self._prefetch:
            return None

        task = asyncio.create_task(self._prefetch_page(filters, signature))
        self._prefetch_tasks.add(task)
        task.add_done_callback(self._prefetch_tasks.discard)
        return task

    # Freshness

    async def check_for_new_stories(self) -> int:
        """Run one freshness check against the loaded stories.

        Returns:
            Number of stories waiting to be merged.
        """
        return await self._monitor.check(self._latest_created_at(), self._known_ids())

    def start_live_updates(self) -> None:
        """Start periodic freshness checks."""
        self._monitor.start(self._latest_created_at, self._known_ids)

    async def merge_new_stories(self) -> bool:
        """Splice pending new stories in at the top of the feed.

        If a fetch is in flight the merge is queued and performed once it
        settles. Slot positions are recomputed from story index zero.

        Returns:
            True if stories were merged now.
        """
        if not self._monitor.has_new_stories or self._topic is None:
            return False
        if self._machine.state in (SessionState.LOADING, SessionState.LOADING_MORE):
            if not self._merge_queued:
                self._log.info("merge_deferred", pending=self._monitor.new_story_count)
            self._merge_queued = True
            return False
        if self._machine.state not in (SessionState.READY, SessionState.FAILED):
            return False

        self._merge_queued = False
        stories = self._monitor.take_pending()
        streams = {id(s): s for s in (self._base, self._active)}
        for stream in streams.values():
            # Joined onto page zero so mentions are ordered against every story in it.
            if stream.pages:
                stream.pages[0] = [*stories, *stream.pages[0]]
            else:
                stream.pages.append(list(stories))
        self._rebuild()
        self._metrics.record_merge()
        self.scroll_to_top_requested = True
        self._log.info("new_stories_merged", count=len(stories))
        return True

    # Internals

    def _require_filters(self, operation: str) -> FilterStateMachine:
        if self._filters is None:
            raise SessionNotOpenError(self._session_id, operation)
        return self._filters

    def _require_matcher(self) -> FacetMatcher:
        if self._matcher is None:
            raise SessionNotOpenError(self._session_id, "match facets")
        return self._matcher

    def _configure(self, topic: Topic) -> None:
        """Build the per-topic collaborators."""
        self._topic = topic
        self._assembler = FeedAssembler(
            self._base_registry.for_topic(topic.side_content),
            self._metrics,
            self._session_id,
        )
        if self._filters is None:
            self._filters = FilterStateMachine(FacetIndex(topic), self._session_id)
            self._filters.subscribe(self._on_filters_changed)
        self._matcher = FacetMatcher(topic)

    def _on_filters_changed(self, state: FilterState) -> None:
        self._generation += 1
        self._load_error = None
        self._log.debug(
            "filter_generation_advanced",
            generation=self._generation,
            filters=state.values(),
        )

    async def _apply_filter_change(self) -> None:
        """Serve the current filter state locally or from the backend."""
        filters = self._require_filters("apply filters")
        mode = filters.classify(base_exhausted=self._base.exhausted)
        self._active = self._base
        self._rebuild()

        if mode == FilterMode.CLIENT:
            if self._machine.state != SessionState.READY:
                self._machine.to_ready()
            self._log.info("filters_applied", mode=mode.value, filters=filters.state.values())
            return

        self._log.info("filters_applied", mode=mode.value, filters=filters.state.values())
        await self._load_stream(_Stream(filters.state))

    def _target_stream(self) -> _Stream:
        """Get the stream a first-page retry should load."""
        filters = self._require_filters("reload the feed")
        if filters.classify(base_exhausted=self._base.exhausted) == FilterMode.SERVER:
            return _Stream(filters.state)
        return self._base

    async def _load_stream(self, stream: _Stream) -> bool:
        """Fetch the first page of a stream and make it the visible one."""
        generation = self._generation
        if self._machine.state != SessionState.LOADING:
            self._machine.to_loading()

        try:
            page = await self._fetch_page(stream, None)
        except SourceError as e:
            if not self._is_stale(generation, "fetch_story_page"):
                self._fail(LoadOperation.FIRST_PAGE, None, e)
            return False
        if self._is_stale(generation, "fetch_story_page"):
            return False

        stream.accept(page)
        self._active = stream
        self._load_error = None
        self._rebuild()
        self._machine.to_ready()
        await self._run_queued_merge()
        return True

    async def _load_next(self) -> bool:
        """Fetch the next page of the visible stream and append it."""
        stream = self._active
        if not stream.started:
            return await self._load_stream(stream)

        cursor = stream.next_cursor
        generation = self._generation
        self._machine.to_loading_more()

        try:
            page = await self._fetch_page(stream, cursor)
        except SourceError as e:
            if not self._is_stale(generation, "fetch_story_page"):
                self._fail(LoadOperation.NEXT_PAGE, cursor, e)
            return False
        if self._is_stale(generation, "fetch_story_page"):
            return False

        stream.accept(page)
        self._sequence = self._assembler.append_page(
            self._sequence, self._visible(page.stories), self._side_content
        )
        self._load_error = None
        self._machine.to_ready()
        await self._run_queued_merge()
        return True

    async def _fetch_page(self, stream: _Stream, cursor: str | None) -> StoryPage:
        """Fetch a page, serving filtered first pages from the prefetch cache."""
        if cursor is None and stream.filters.has_active_filters:
            cached = self._prefetch.get(facet_signature(stream.filters.values()))
            if cached is not None:
                return cached
        return await self._backend.fetch_story_page(
            self._topic_id, stream.filters, cursor, self._settings.page_size
        )

    async def _prefetch_page(self, filters: FilterState, signature: str) -> None:
        try:
            page = await self._backend.fetch_story_page(
                self._topic_id, filters, None, self._settings.page_size
            )
        except SourceError as e:
            self._log.debug("prefetch_failed", signature=signature, **e.to_dict())
            return
        self._prefetch.put(signature, page)

    async def _load_side_content(self, topic: Topic) -> None:
        """Fetch every enabled card type and the mentions, each independently."""
        card_types = self._assembler.registry.card_types
        results = await asyncio.gather(
            *(self._backend.fetch_side_content(c, topic.id) for c in card_types),
            return_exceptions=True,
        )
        for card_type, result in zip(card_types, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                self._metrics.record_side_content_failure()
                self._log.warning(
                    "side_content_unavailable", card_type=card_type.value, error=str(result)
                )
                self._side_content[card_type] = []
            else:
                self._side_content[card_type] = list(result)

        if topic.topic_type != TopicType.REGIONAL or not topic.parliamentary_tracking_enabled:
            return
        try:
            mentions = await self._backend.fetch_parliamentary_mentions(topic.id)
        except SourceError as e:
            self._metrics.record_side_content_failure()
            self._log.warning("parliamentary_mentions_unavailable", **e.to_dict())
            return
        except Exception as e:
            self._metrics.record_side_content_failure()
            self._log.warning(
                "parliamentary_mentions_unavailable", error_class="unknown", message=str(e)
            )
            return
        self._mentions = self._select_mentions(mentions)

    def _select_mentions(
        self, mentions: Iterable[ParliamentaryMention]
    ) -> list[ParliamentaryMention]:
        """Keep the newest sufficiently relevant mentions, up to the configured limit."""
        relevant = [
            m for m in mentions if m.relevance_score >= self._settings.mention_min_relevance
        ]
        relevant.sort(key=_entry_date, reverse=True)
        selected = relevant[: self._settings.mention_limit]
        self._log.debug(
            "parliamentary_mentions_selected", relevant=len(relevant), selected=len(selected)
        )
        return selected

    def _fail(self, operation: LoadOperation, cursor: str | None, error: SourceError) -> None:
        """Record a failed fetch and enter FAILED."""
        previous = self._load_error
        attempts = 1
        if previous is not None and previous.operation == operation and previous.cursor == cursor:
            attempts = previous.attempts + 1

        self._load_error = LoadError(
            cursor=cursor,
            attempts=attempts,
            message=error.message,
            retryable=error.is_transient and attempts <= self._settings.max_load_retries,
            operation=operation,
            error_class=error.error_class.value,
        )
        self._metrics.record_load_failure()
        self._log.warning("feed_load_failed", **self._load_error.to_dict())
        self._machine.to_failed()

    def _is_stale(self, generation: int, operation: str) -> bool:
        """Check whether a result belongs to a superseded generation."""
        if generation == self._generation and not self._machine.is_terminal:
            return False
        self._metrics.record_stale_page()
        self._log.info(
            "stale_page_discarded",
            operation=operation,
            request_generation=generation,
            current_generation=self._generation,
        )
        return True

    async def _run_queued_merge(self) -> None:
        if self._merge_queued:
            await self.merge_new_stories()

    def _visible(self, stories: Iterable[Story]) -> list[Story]:
        """Apply the current filter state to fetched stories."""
        if self._filters is None or not self._filters.has_active_filters:
            return list(stories)
        return [s for s in stories if self._filters.matches(s)]

    def _entries(self) -> list[FeedEntry]:
        """Get the entries of the visible stream, mentions merged into page zero."""
        if self.has_active_filters or not self._mentions or not self._active.pages:
            return list(self._visible(self._active.stories))

        newest_first = self._settings.sort == FeedSort.NEWEST_FIRST
        mentions = sorted(self._mentions, key=_entry_date, reverse=newest_first)
        first, *rest = self._active.pages
        entries: list[FeedEntry] = list(
            heapq.merge(first, mentions, key=_entry_date, reverse=newest_first)
        )
        for page in rest:
            entries.extend(page)
        return entries

    def _rebuild(self) -> None:
        """Reassemble the visible sequence from story index zero."""
        self._sequence = self._assembler.assemble(
            self._entries(), self._side_content, self._generation
        )

    def _loaded_stories(self) -> list[Story]:
        """Get distinct displayable stories fetched so far."""
        seen: dict[str, Story] = {}
        for story in [*self._base.stories, *self._active.stories]:
            if not story.is_ghost and story.id not in seen:
                seen[story.id] = story
        return list(seen.values())

    def _known_ids(self) -> set[str]:
        return {s.id for s in [*self._base.stories, *self._active.stories]}

    def _latest_created_at(self) -> datetime:
        stories = [*self._base.stories, *self._active.stories]
        if not stories:
            return _EPOCH
        return max(s.created_at for s in stories)
