"""Detection of stories published after the feed was loaded.

The monitor only collects; the feed session decides when to splice the
pending stories in, so the visible feed never jumps on its own.
"""

import asyncio
import contextlib
from collections.abc import Callable, Collection
from datetime import datetime

import structlog

from src.content.models import Story
from src.sources.errors import SourceError
from src.sources.protocols import StorySource


logger = structlog.get_logger()

LatestProvider = Callable[[], datetime]
KnownIdsProvider = Callable[[], Collection[str]]


class FreshnessMonitor:
    """Accumulates new stories for one topic.

    Checks run on demand via ``check`` or periodically once ``start`` has
    been called. A reconnect wakes the periodic loop for an immediate check.
    """

    def __init__(
        self,
        story_source: StorySource,
        topic_id: str,
        interval_seconds: float = 60.0,
        session_id: str = "",
    ) -> None:
        """Initialize the monitor.

        Args:
            story_source: Source queried for newer stories.
            topic_id: Topic to watch.
            interval_seconds: Delay between periodic checks.
            session_id: Feed session identifier for logging.
        """
        self._source = story_source
        self._topic_id = topic_id
        self._interval = interval_seconds
        self._pending: dict[str, Story] = {}
        self._task: asyncio.Task[None] | None = None
        self._wake = asyncio.Event()
        self._log = logger.bind(component="freshness", topic_id=topic_id, session_id=session_id)

    @property
    def has_new_stories(self) -> bool:
        """Whether any new stories are pending."""
        return bool(self._pending)

    @property
    def new_story_count(self) -> int:
        """Get the number of pending stories."""
        return len(self._pending)

    @property
    def new_story_ids(self) -> list[str]:
        """Get pending story IDs, newest first."""
        return list(self._pending)

    @property
    def is_running(self) -> bool:
        """Whether the periodic loop is active."""
        return self._task is not None and not self._task.done()

    async def check(self, latest_created_at: datetime, known_ids: Collection[str]) -> int:
        """Fetch stories newer than the given timestamp.

        Known and placeholder stories are ignored. A failed fetch is logged
        and leaves the pending set as it was.

        Args:
            latest_created_at: Creation time of the newest loaded story.
            known_ids: IDs already present in the feed.

        Returns:
            Number of pending stories after the check.
        """
        try:
            stories = await self._source.fetch_stories_newer_than(
                self._topic_id, latest_created_at
            )
        except SourceError as e:
            self._log.warning("freshness_check_failed", **e.to_dict())
            return self.new_story_count

        before = self.new_story_count
        for story in stories:
            if story.id in known_ids or story.id in self._pending or story.is_ghost:
                continue
            self._pending[story.id] = story

        if self.new_story_count > before:
            ordered = sorted(self._pending.values(), key=lambda s: s.created_at, reverse=True)
            self._pending = {s.id: s for s in ordered}
            self._log.info(
                "new_stories_detected",
                added=self.new_story_count - before,
                pending=self.new_story_count,
            )
        return self.new_story_count

    def take_pending(self) -> list[Story]:
        """Remove and return the pending stories, newest first."""
        pending = list(self._pending.values())
        self._pending.clear()
        return pending

    def start(self, latest: LatestProvider, known_ids: KnownIdsProvider) -> None:
        """Start periodic checks on the running event loop.

        Args:
            latest: Returns the newest loaded creation time at check time.
            known_ids: Returns the IDs currently in the feed.
        """
        if self.is_running:
            return
        self._task = asyncio.create_task(self._run(latest, known_ids))
        self._log.info("freshness_monitor_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        """Stop periodic checks and wait for the loop to exit."""
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        self._log.info("freshness_monitor_stopped")

    def notify_reconnect(self) -> None:
        """Request an immediate check after connectivity returns."""
        self._log.debug("freshness_reconnect")
        self._wake.set()

    async def _run(self, latest: LatestProvider, known_ids: KnownIdsProvider) -> None:
        """Periodic check loop."""
        while True:
            with contextlib.suppress(TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=self._interval)
            self._wake.clear()
            try:
                await self.check(latest(), known_ids())
            except Exception as e:
                self._log.exception("freshness_loop_error", error=str(e))
