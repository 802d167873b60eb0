"""CLI commands for the feed engine."""

import asyncio
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Any

import click
import structlog
from pydantic import BaseModel, Field, ValidationError

from src.assembler import FeedMetrics, FeedSession
from src.config.constants import COMPONENT_CLI
from src.config.error_hints import format_validation_error
from src.config.loader import ConfigValidationError, SlotTableLoader
from src.content.models import (
    CardType,
    ContentItem,
    Interaction,
    ParliamentaryMention,
    Roundup,
    SideContentCard,
    Story,
    Topic,
)
from src.facets.models import FacetType
from src.observability.logging import (
    bind_session_context,
    clear_session_context,
    configure_logging,
)
from src.ranker import EngagementRanker, RoundupUnavailableError
from src.settings import FeedSettings, get_settings
from src.slots.registry import SlotRegistry
from src.sources.memory import InMemoryFeedBackend


logger = structlog.get_logger()


class FeedFixture(BaseModel):
    """Offline feed data for ``feed preview``."""

    topic: Topic
    stories: list[Story] = Field(default_factory=list)
    side_content: dict[CardType, list[SideContentCard]] = Field(default_factory=dict)
    mentions: list[ParliamentaryMention] = Field(default_factory=list)


def _load_registry(
    table_path: Path | None, settings: FeedSettings
) -> tuple[SlotRegistry, int]:
    """Load the slot table, exiting with hints on failure.

    Args:
        table_path: Slot table file, or None for the configured default.
        settings: Feed settings.

    Returns:
        Registry and collision horizon.
    """
    path = table_path or settings.slot_table_path
    if path is None:
        return SlotRegistry(), settings.collision_horizon

    loader = SlotTableLoader(run_id=str(uuid.uuid4()))
    try:
        config = loader.load(path)
    except ConfigValidationError:
        click.echo(f"Slot table validation failed: {path}", err=True)
        for error in loader.validation_errors:
            click.echo(f"  - {format_validation_error(error)}", err=True)
        sys.exit(1)
    return config.to_registry(), config.horizon


def _read_json(path: Path) -> Any:
    """Read a JSON file, exiting on malformed content."""
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        click.echo(f"Error: {path} is not valid JSON: {e}", err=True)
        sys.exit(1)


def _describe(item: ContentItem) -> dict[str, object]:
    """Summarize a render item for preview output."""
    title = getattr(item.payload, "title", None) or getattr(item.payload, "vote_title", None)
    return {
        "kind": item.kind.value,
        "key": item.key,
        "story_index": item.story_index,
        "title": title,
    }


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", is_flag=True, default=False, help="Enable debug logging.")
@click.option("--json-logs", is_flag=True, default=False, help="Emit logs as JSON.")
def cli(verbose: bool, json_logs: bool) -> None:
    """Feed composition and filtering engine."""
    configure_logging(
        level=logging.DEBUG if verbose else logging.WARNING,
        json_format=json_logs,
    )


@cli.group()
def slots() -> None:
    """Inspect side-content slot tables."""


@slots.command("check")
@click.option(
    "--table",
    "table_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to a slot table YAML file (default: built-in table).",
)
@click.option("--horizon", type=click.IntRange(min=1), default=None, help="Positions to simulate.")
def slots_check(table_path: Path | None, horizon: int | None) -> None:
    """Report story positions claimed by more than one card type."""
    registry, default_horizon = _load_registry(table_path, get_settings())
    horizon = horizon or default_horizon
    collisions = registry.log_collision_report(horizon)

    if not collisions:
        click.echo(f"No slot collisions in the first {horizon} positions.")
        return

    click.echo(f"Found {len(collisions)} slot collision(s):", err=True)
    for collision in collisions:
        types = ", ".join(c.value for c in collision.card_types)
        click.echo(f"  - position {collision.position}: {types}", err=True)
    sys.exit(1)


@slots.command("map")
@click.option(
    "--table",
    "table_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to a slot table YAML file (default: built-in table).",
)
@click.option("--horizon", type=click.IntRange(min=1), default=None, help="Positions to simulate.")
def slots_map(table_path: Path | None, horizon: int | None) -> None:
    """Print the positions each card type occupies."""
    registry, default_horizon = _load_registry(table_path, get_settings())
    click.echo(registry.position_map(horizon or default_horizon))


@cli.group()
def roundup() -> None:
    """Work with roundup digests."""


@roundup.command("rank")
@click.option(
    "--roundup",
    "roundup_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="Roundup JSON file.",
)
@click.option(
    "--stories",
    "stories_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="JSON list of stories.",
)
@click.option(
    "--interactions",
    "interactions_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="JSON list of interactions.",
)
def roundup_rank(roundup_path: Path, stories_path: Path, interactions_path: Path) -> None:
    """Rank a published roundup by engagement and print JSON."""
    log = logger.bind(component=COMPONENT_CLI, command="roundup_rank")
    try:
        digest = Roundup.model_validate(_read_json(roundup_path))
        stories = [Story.model_validate(s) for s in _read_json(stories_path)]
        interactions = [Interaction.model_validate(i) for i in _read_json(interactions_path)]
    except ValidationError as e:
        log.warning("roundup_input_invalid", error_count=e.error_count())
        click.echo(f"Error: invalid input: {e}", err=True)
        sys.exit(1)

    try:
        result = EngagementRanker(run_id=digest.id).rank_roundup(digest, stories, interactions)
    except RoundupUnavailableError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    output = {
        "roundup_id": digest.id,
        "ranked": [r.to_dict() for r in result.ranked],
        "missing_story_ids": result.missing_story_ids,
        "checksum": result.output_checksum,
    }
    click.echo(json.dumps(output, indent=2))


@cli.group()
def feed() -> None:
    """Preview assembled feeds."""


@feed.command("preview")
@click.option(
    "--fixture",
    "fixture_path",
    required=True,
    type=click.Path(exists=True, path_type=Path),
    help="JSON file with topic, stories, side_content and mentions.",
)
@click.option("--pages", type=click.IntRange(min=1), default=1, help="Pages to load.")
@click.option(
    "--filter",
    "filters",
    multiple=True,
    metavar="FACET=VALUE",
    help="Facet filter, e.g. keyword=harbour (repeatable).",
)
@click.option(
    "--table",
    "table_path",
    type=click.Path(exists=True, path_type=Path),
    default=None,
    help="Path to a slot table YAML file (default: built-in table).",
)
def feed_preview(
    fixture_path: Path,
    pages: int,
    filters: tuple[str, ...],
    table_path: Path | None,
) -> None:
    """Assemble a feed from a fixture and print its render stream as JSON."""
    try:
        fixture = FeedFixture.model_validate(_read_json(fixture_path))
    except ValidationError as e:
        click.echo(f"Error: invalid fixture: {e}", err=True)
        sys.exit(1)

    selected: list[tuple[FacetType, str]] = []
    for raw in filters:
        facet, _, value = raw.partition("=")
        try:
            selected.append((FacetType(facet.strip().lower()), value.strip()))
        except ValueError:
            click.echo(f"Error: unknown facet '{facet}'", err=True)
            sys.exit(1)

    settings = get_settings()
    registry, _ = _load_registry(table_path, settings)

    backend = InMemoryFeedBackend(sort=settings.sort)
    backend.add_topic(fixture.topic)
    backend.add_stories(fixture.topic.id, fixture.stories)
    backend.add_mentions(fixture.topic.id, fixture.mentions)
    for card_type, cards in fixture.side_content.items():
        backend.set_side_content(fixture.topic.id, card_type, cards)

    output = asyncio.run(_preview(backend, fixture.topic.id, settings, registry, pages, selected))
    click.echo(json.dumps(output, indent=2))


async def _preview(
    backend: InMemoryFeedBackend,
    topic_id: str,
    settings: FeedSettings,
    registry: SlotRegistry,
    pages: int,
    selected: list[tuple[FacetType, str]],
) -> dict[str, object]:
    """Open a session, apply filters and load the requested pages."""
    session = FeedSession(backend, topic_id, settings=settings, registry=registry)
    bind_session_context(session.session_id, topic_id)
    try:
        await session.open()
        for facet_type, value in selected:
            await session.toggle_filter(facet_type, value)
        for _ in range(pages - 1):
            if not await session.load_more():
                break
        empty = session.empty_state
        return {
            "session_id": session.session_id,
            "state": session.state.value,
            "filters": session.filter_state.values(),
            "empty_state": empty.value if empty else None,
            "items": [_describe(item) for item in session.rendered_items],
            "metrics": FeedMetrics.get_instance().to_dict(),
        }
    finally:
        await session.close()
        clear_session_context()


def main() -> None:
    """Console script entry point."""
    cli()


if __name__ == "__main__":
    main()
