"""Unit tests for InMemoryRepository and JSON deck files."""

import json
from datetime import timedelta

import pytest

from recall_engine.core.errors import DataUnavailableError, ValidationError
from recall_engine.core.models import Phase, ReviewOutcome
from recall_engine.storage.memory import InMemoryRepository


@pytest.fixture
def deck_path(tmp_path, now):
    deck = {
        "learner_id": "vet-student",
        "topics": [{"id": "neuro", "name": "Neurology"}],
        "items": [
            {"id": "n1", "topic_id": "neuro", "front": "Q1", "back": "A1"},
            {"id": "c1", "topic_id": "cardio", "front": "Q2", "back": "A2"},
        ],
        "outcomes": [
            {"item_id": "n1", "topic_id": "neuro", "rating": 2,
             "reviewed_at": (now - timedelta(days=1)).isoformat()},
        ],
    }
    path = tmp_path / "deck.json"
    path.write_text(json.dumps(deck), encoding="utf-8")
    return path


class TestDeckFiles:
    def test_load_fills_missing_state(self, deck_path, now):
        repo = InMemoryRepository.load_deck(deck_path, now=now)

        item = repo.fetch_item("n1")
        assert item.state.phase is Phase.NEW
        assert item.state.due == now
        assert repo.learner_id == "vet-student"

    def test_topics_created_for_items(self, deck_path, now):
        repo = InMemoryRepository.load_deck(deck_path, now=now)
        assert {t.topic_id for t in repo.topics()} == {"neuro", "cardio"}

    def test_save_and_reload(self, deck_path, tmp_path, now):
        repo = InMemoryRepository.load_deck(deck_path, now=now)
        repo.append_outcome(ReviewOutcome.record("c1", "cardio", 3, now))
        repo.persist_topic_score("cardio", 100.0, now)

        target = tmp_path / "saved.json"
        repo.save_deck(target)
        reloaded = InMemoryRepository.load_deck(target, now=now)

        assert reloaded.fetch_item("c1") == repo.fetch_item("c1")
        assert len(reloaded.outcomes()) == 2
        assert reloaded.fetch_topic("cardio").mastery_score == 100.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataUnavailableError):
            InMemoryRepository.load_deck(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(DataUnavailableError):
            InMemoryRepository.load_deck(path)

    def test_malformed_item(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"items": [{"id": "x"}]}), encoding="utf-8")

        with pytest.raises(ValidationError):
            InMemoryRepository.load_deck(path)

    @pytest.mark.parametrize(
        "deck",
        [
            {"topics": ["neuro"]},
            {"topics": [{"id": "neuro", "mastery_score": "high"}]},
            {"topics": [{"id": "neuro", "last_aggregated_at": 5}]},
            {"topics": {"id": "neuro"}},
            {"items": ["n1"]},
            {"items": [{"id": "n1", "topic_id": "neuro", "state": [1, 2]}]},
            {"items": [{"id": "n1", "topic_id": "neuro",
                        "state": {"due": 5, "stability": 0, "difficulty": 0}}]},
            {"outcomes": [3]},
        ],
    )
    def test_records_of_wrong_type(self, tmp_path, deck):
        path = tmp_path / "wrong.json"
        path.write_text(json.dumps(deck), encoding="utf-8")

        with pytest.raises(ValidationError):
            InMemoryRepository.load_deck(path)


class TestQueries:
    def test_recent_outcomes_newest_first_with_limit(self, now):
        outcomes = [ReviewOutcome.record("i", "t", 2, now + timedelta(hours=h)) for h in range(5)]
        repo = InMemoryRepository(outcomes=outcomes)

        recent = repo.fetch_recent_outcomes("t", limit=3)

        assert [o.reviewed_at for o in recent] == [
            now + timedelta(hours=4), now + timedelta(hours=3), now + timedelta(hours=2),
        ]

    def test_due_items_sorted_by_due(self, sample_repository, now):
        due = sample_repository.fetch_due_items("default", now)
        assert [i.item_id for i in due] == ["n1", "n2", "c1"]

    def test_unknown_topic(self):
        with pytest.raises(DataUnavailableError):
            InMemoryRepository().fetch_topic("ghost")
