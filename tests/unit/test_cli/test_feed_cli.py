"""Tests for the feedengine CLI."""

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from src.cli.feed import cli


COLLIDING_TABLE = """\
horizon: 24
rules:
  - card_type: sentiment
    every_n: 6
  - card_type: quiz
    every_n: 4
"""


def _story(story_id: str, title: str, created_at: str) -> dict[str, object]:
    return {
        "id": story_id,
        "title": title,
        "slides": [{"id": f"{story_id}-slide-1", "slide_number": 1, "content": title}],
        "created_at": created_at,
        "source": {"url": "https://www.bournefree.co.uk/news"},
    }


def _fixture(story_count: int = 8) -> dict[str, object]:
    stories = [
        _story(
            f"s{i}",
            "Harbour wall repairs" if i % 2 == 0 else "Seafront market",
            f"2017-06-12T{23 - i:02d}:00:00Z",
        )
        for i in range(1, story_count + 1)
    ]
    return {
        "topic": {
            "id": "eastbourne",
            "name": "Eastbourne",
            "keywords": ["harbour", "market"],
            "landmarks": ["Pier"],
        },
        "stories": stories,
        "side_content": {
            "sentiment": [{"id": "c1", "card_type": "sentiment", "title": "Mood"}],
        },
    }


def _write_json(path: Path, data: object) -> Path:
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


@pytest.fixture
def runner() -> CliRunner:
    """Create a CLI runner."""
    return CliRunner()


class TestSlotsCommands:
    """Tests for the slots command group."""

    @pytest.mark.unit
    def test_check_default_table(self, runner: CliRunner) -> None:
        """The built-in table has no collisions."""
        result = runner.invoke(cli, ["slots", "check"])
        assert result.exit_code == 0
        assert "No slot collisions in the first 50 positions." in result.stdout

    @pytest.mark.unit
    def test_check_reports_collisions(self, runner: CliRunner, tmp_path: Path) -> None:
        """A colliding table fails validation with a hint."""
        table = tmp_path / "slots.yaml"
        table.write_text(COLLIDING_TABLE, encoding="utf-8")

        result = runner.invoke(cli, ["slots", "check", "--table", str(table)])

        assert result.exit_code == 1
        assert "position.12" in result.stderr
        assert "allow_collisions" in result.stderr

    @pytest.mark.unit
    def test_check_allowed_collisions_listed(self, runner: CliRunner, tmp_path: Path) -> None:
        """An opted-in colliding table loads but the check still fails."""
        table = tmp_path / "slots.yaml"
        table.write_text(COLLIDING_TABLE + "allow_collisions: true\n", encoding="utf-8")

        result = runner.invoke(cli, ["slots", "check", "--table", str(table)])

        assert result.exit_code == 1
        assert "position 12: sentiment, quiz" in result.stderr

    @pytest.mark.unit
    def test_map(self, runner: CliRunner) -> None:
        """The position map lists each card type's indices."""
        result = runner.invoke(cli, ["slots", "map", "--horizon", "30"])
        assert result.exit_code == 0
        assert "sentiment: 6, 12, 18, 24" in result.stdout
        assert "flashback: 16" in result.stdout
        assert "parliamentary_digest: 26" in result.stdout


class TestRoundupRank:
    """Tests for roundup rank."""

    @pytest.mark.unit
    def test_rank_outputs_json(self, runner: CliRunner, tmp_path: Path) -> None:
        """Ranked stories are printed in score order."""
        roundup = _write_json(
            tmp_path / "roundup.json",
            {
                "id": "r-1",
                "period_start": "2017-06-12T00:00:00Z",
                "period_end": "2017-06-13T00:00:00Z",
                "story_ids": ["a", "b", "gone"],
                "is_published": True,
            },
        )
        stories = _write_json(
            tmp_path / "stories.json",
            [
                _story("a", "Pier reopens", "2017-06-12T10:00:00Z"),
                _story("b", "Ferry", "2017-06-12T09:00:00Z"),
            ],
        )
        interactions = _write_json(
            tmp_path / "interactions.json",
            [{"story_id": "b", "interaction_type": "share_click"}],
        )

        result = runner.invoke(
            cli,
            [
                "roundup",
                "rank",
                "--roundup",
                str(roundup),
                "--stories",
                str(stories),
                "--interactions",
                str(interactions),
            ],
        )

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["roundup_id"] == "r-1"
        assert [r["story_id"] for r in output["ranked"]] == ["b", "a"]
        assert output["ranked"][0]["score"] == 3.0
        assert output["missing_story_ids"] == ["gone"]
        assert len(output["checksum"]) == 64

    @pytest.mark.unit
    def test_unpublished_roundup(self, runner: CliRunner, tmp_path: Path) -> None:
        """Unpublished roundups exit with an error."""
        roundup = _write_json(
            tmp_path / "roundup.json",
            {
                "id": "r-2",
                "period_start": "2017-06-12T00:00:00Z",
                "period_end": "2017-06-13T00:00:00Z",
            },
        )
        empty = _write_json(tmp_path / "empty.json", [])

        result = runner.invoke(
            cli,
            ["roundup", "rank", "--roundup", str(roundup), "--stories", str(empty),
             "--interactions", str(empty)],
        )

        assert result.exit_code == 1
        assert "not published" in result.stderr

    @pytest.mark.unit
    def test_invalid_json(self, runner: CliRunner, tmp_path: Path) -> None:
        """Malformed input files exit with an error."""
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")

        result = runner.invoke(
            cli,
            ["roundup", "rank", "--roundup", str(bad), "--stories", str(bad),
             "--interactions", str(bad)],
        )

        assert result.exit_code == 1
        assert "not valid JSON" in result.stderr


class TestFeedPreview:
    """Tests for feed preview."""

    @pytest.mark.unit
    def test_preview_first_page(self, runner: CliRunner, tmp_path: Path) -> None:
        """The render stream interleaves cards and ends with a marker."""
        fixture = _write_json(tmp_path / "feed.json", _fixture())

        result = runner.invoke(cli, ["feed", "preview", "--fixture", str(fixture)])

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["state"] == "READY"
        assert output["empty_state"] is None
        kinds = [item["kind"] for item in output["items"]]
        assert kinds[6] == "sentiment"
        assert output["items"][6]["key"] == "sentiment-c1-6"
        assert kinds[-1] == "end_of_feed"
        assert kinds.count("story") == 8
        assert output["metrics"]["side_cards_emitted"] == 1

    @pytest.mark.unit
    def test_preview_with_filter(self, runner: CliRunner, tmp_path: Path) -> None:
        """Filters narrow the stream to matching stories."""
        fixture = _write_json(tmp_path / "feed.json", _fixture())

        result = runner.invoke(
            cli, ["feed", "preview", "--fixture", str(fixture), "--filter", "keyword=harbour"]
        )

        assert result.exit_code == 0
        output = json.loads(result.stdout)
        assert output["filters"] == ["harbour"]
        titles = {item["title"] for item in output["items"] if item["kind"] == "story"}
        assert titles == {"Harbour wall repairs"}

    @pytest.mark.unit
    def test_preview_no_matches(self, runner: CliRunner, tmp_path: Path) -> None:
        """A filter nothing matches reports NO_MATCHES."""
        fixture = _write_json(tmp_path / "feed.json", _fixture())

        result = runner.invoke(
            cli, ["feed", "preview", "--fixture", str(fixture), "--filter", "landmark=Pier"]
        )

        output = json.loads(result.stdout)
        assert output["empty_state"] == "NO_MATCHES"

    @pytest.mark.unit
    def test_preview_unknown_facet(self, runner: CliRunner, tmp_path: Path) -> None:
        """Unknown facet names are rejected."""
        fixture = _write_json(tmp_path / "feed.json", _fixture())

        result = runner.invoke(
            cli, ["feed", "preview", "--fixture", str(fixture), "--filter", "colour=red"]
        )

        assert result.exit_code == 1
        assert "unknown facet" in result.stderr

    @pytest.mark.unit
    def test_preview_invalid_fixture(self, runner: CliRunner, tmp_path: Path) -> None:
        """Fixtures that fail validation are rejected."""
        fixture = _write_json(tmp_path / "feed.json", {"stories": []})

        result = runner.invoke(cli, ["feed", "preview", "--fixture", str(fixture)])

        assert result.exit_code == 1
        assert "invalid fixture" in result.stderr
