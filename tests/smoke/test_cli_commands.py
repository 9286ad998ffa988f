"""
Smoke Tests for CLI Commands.

These tests verify that CLI commands run without errors and produce output.
They don't validate correctness deeply - just that commands work.

Usage:
    pytest tests/smoke/test_cli_commands.py -v
    pytest tests/smoke/test_cli_commands.py -v -m smoke
"""

import json

import pytest
from typer.testing import CliRunner

from recall_engine.cli import app

# Mark all tests in this module as smoke tests
pytestmark = pytest.mark.smoke

NOW = "2025-03-01T09:00:00+00:00"

runner = CliRunner()


@pytest.fixture
def deck(tmp_path):
    data = {
        "topics": [
            {"id": "neuro", "name": "Neurology", "mastery_score": 12},
            {"id": "cardio", "name": "Cardiology", "mastery_score": 88},
        ],
        "items": [
            {"id": f"n{i}", "topic_id": "neuro", "front": f"Neuro question {i}",
             "back": "answer", "state": {"due": "2025-02-28T09:00:00+00:00",
                                         "stability": 0, "difficulty": 0}}
            for i in range(4)
        ] + [
            {"id": f"c{i}", "topic_id": "cardio", "front": f"Cardio question {i}",
             "back": "answer", "state": {"due": "2025-02-28T09:00:00+00:00",
                                         "stability": 0, "difficulty": 0}}
            for i in range(3)
        ],
        "outcomes": [
            {"item_id": "c0", "topic_id": "cardio", "rating": 2,
             "reviewed_at": "2025-02-27T09:00:00+00:00"},
        ],
    }
    path = tmp_path / "deck.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


class TestCLIHelp:
    def test_main_help(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "session" in result.output
        assert "review" in result.output


class TestSession:
    def test_session_runs(self, deck):
        result = runner.invoke(app, ["session", str(deck), "--size", "5", "--seed", "1", "--now", NOW])

        assert result.exit_code == 0, result.output
        assert "Review Session" in result.output

    def test_nothing_due(self, deck):
        result = runner.invoke(app, ["session", str(deck), "--now", "2025-01-01T00:00:00+00:00"])

        assert result.exit_code == 0
        assert "caught up" in result.output

    def test_missing_deck(self, tmp_path):
        result = runner.invoke(app, ["session", str(tmp_path / "missing.json")])
        assert result.exit_code != 0


class TestReview:
    def test_review_saves_deck(self, deck):
        result = runner.invoke(app, ["review", str(deck), "n1", "2", "--now", NOW])

        assert result.exit_code == 0, result.output
        saved = json.loads(deck.read_text(encoding="utf-8"))
        n1 = next(item for item in saved["items"] if item["id"] == "n1")
        assert n1["state"]["repetition_count"] == 1
        assert n1["state"]["phase"] == "learning"
        assert len(saved["outcomes"]) == 2

    def test_invalid_rating(self, deck):
        before = deck.read_text(encoding="utf-8")

        result = runner.invoke(app, ["review", str(deck), "n1", "9", "--now", NOW])

        assert result.exit_code == 1
        assert "Error" in result.output
        assert deck.read_text(encoding="utf-8") == before

    def test_unknown_item(self, deck):
        result = runner.invoke(app, ["review", str(deck), "zzz", "2", "--now", NOW])
        assert result.exit_code == 1


class TestReadOnlyCommands:
    def test_preview(self, deck):
        result = runner.invoke(app, ["preview", str(deck), "n0", "--now", NOW])

        assert result.exit_code == 0, result.output
        assert "Again" in result.output
        assert "Easy" in result.output

    def test_topics(self, deck):
        result = runner.invoke(app, ["topics", str(deck)])

        assert result.exit_code == 0, result.output
        assert "Neurology" in result.output

    def test_topics_reports_malformed_deck(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps({"topics": ["neuro"]}), encoding="utf-8")

        result = runner.invoke(app, ["topics", str(bad)])

        assert result.exit_code == 1
        assert "Error" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_stats(self, deck):
        result = runner.invoke(app, ["stats", str(deck), "--now", NOW])

        assert result.exit_code == 0, result.output
        assert "Study Statistics" in result.output
