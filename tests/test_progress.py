"""Tests for keystride.core.progress – JSON record persistence."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import pytest

from keystride.core.progress import JsonRecordStore, attempt_from_dict, attempt_to_dict
from keystride.core.records import AchievementBadge, AttemptRecord, PerformanceGrade, PersonalBestRecord
from keystride.core.scoring import ScoreSnapshot
from keystride.core.session import SessionMode, SessionResult
from keystride.core.tasks import TaskType

NOW = datetime(2026, 3, 4, 5, 6, 7, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def records_file(tmp_path: Path) -> Path:
    return tmp_path / "records.json"


@pytest.fixture()
def store(records_file: Path) -> JsonRecordStore:
    """Store backed by a temp file so tests don't touch ~/.keystride."""
    return JsonRecordStore(records_file)


def make_record(
    task_id: str = "task1-a",
    mode: SessionMode = SessionMode.TIME_ATTACK,
    completion_time: float = 72.5,
    is_personal_best: bool = True,
) -> AttemptRecord:
    score = ScoreSnapshot(
        gross_wpm=42.0,
        net_wpm=41.16,
        accuracy=98.0,
        quality_score=40.3368,
        completion_percentage=100.0,
        total_errors=3,
        error_rate=2.0,
        matched_words=48,
        total_words=50,
        kspc=1.12,
        backspace_rate=3.5,
        total_keystrokes=320,
        backspace_count=11,
    )
    result = SessionResult(
        task_id=task_id,
        task_type=TaskType.TASK1,
        mode=mode,
        timer_label="time_attack",
        user_input="The cat sat.",
        target_text="The cat sat.",
        completion_time=completion_time,
        paused_seconds=4.0,
        session_duration=completion_time + 4.0,
        score=score,
        correction_cost=11,
        total_keystrokes=320,
        peak_wpm=55.0,
        average_wpm=43.0,
        consistency_score=0.87,
        wpm_samples=700,
        started_at=NOW,
        completed_at=NOW,
        formula_issues=("net WPM drift",),
    )
    return AttemptRecord(
        result=result,
        is_personal_best=is_personal_best,
        improvement=3.25,
        grade=PerformanceGrade.B_PLUS,
        badges=frozenset({AchievementBadge.RECORD_BREAKER, AchievementBadge.SHARPSHOOTER}),
        retry_count=1,
    )


def make_best(task_id: str = "task1-a", mode: SessionMode = SessionMode.TIME_ATTACK) -> PersonalBestRecord:
    return PersonalBestRecord(task_id=task_id, mode=mode, accuracy=98.0, achieved_at=NOW, best_time=72.5)


# ---------------------------------------------------------------------------
# Fresh store
# ---------------------------------------------------------------------------

class TestFreshStore:
    def test_no_history(self, store: JsonRecordStore):
        assert store.fetch_history("task1-a", SessionMode.TIME_ATTACK) == []

    def test_no_best(self, store: JsonRecordStore):
        assert store.fetch_best("task1-a", SessionMode.TIME_ATTACK) is None

    def test_creates_parent_directory(self, tmp_path: Path):
        path = tmp_path / "nested" / "dir" / "records.json"
        JsonRecordStore(path)
        assert path.parent.is_dir()


# ---------------------------------------------------------------------------
# Saving and reloading
# ---------------------------------------------------------------------------

class TestSaveAndLoad:
    def test_attempt_persists(self, store: JsonRecordStore, records_file: Path):
        record = make_record()
        store.save_attempt(record)
        reloaded = JsonRecordStore(records_file)
        assert reloaded.fetch_history("task1-a", SessionMode.TIME_ATTACK) == [record]

    def test_history_is_ordered(self, store: JsonRecordStore, records_file: Path):
        first = make_record(completion_time=80.0)
        second = make_record(completion_time=70.0)
        store.save_attempt(first)
        store.save_attempt(second)
        history = JsonRecordStore(records_file).fetch_history("task1-a", SessionMode.TIME_ATTACK)
        assert [r.completion_time for r in history] == [80.0, 70.0]

    def test_best_persists(self, store: JsonRecordStore, records_file: Path):
        store.save_best(make_best())
        assert JsonRecordStore(records_file).fetch_best("task1-a", SessionMode.TIME_ATTACK) == make_best()

    def test_best_is_replaced(self, store: JsonRecordStore):
        store.save_best(make_best())
        newer = PersonalBestRecord("task1-a", SessionMode.TIME_ATTACK, accuracy=99.0, achieved_at=NOW, best_time=60.0)
        store.save_best(newer)
        assert store.fetch_best("task1-a", SessionMode.TIME_ATTACK) == newer

    def test_modes_are_separate(self, store: JsonRecordStore):
        store.save_best(make_best(mode=SessionMode.TIME_ATTACK))
        assert store.fetch_best("task1-a", SessionMode.STANDARD) is None

    def test_standard_best_keeps_wpm(self, store: JsonRecordStore, records_file: Path):
        standard = PersonalBestRecord("task1-a", SessionMode.STANDARD, accuracy=95.0, achieved_at=NOW, best_wpm=44.5)
        store.save_best(standard)
        loaded = JsonRecordStore(records_file).fetch_best("task1-a", SessionMode.STANDARD)
        assert loaded.best_wpm == 44.5
        assert loaded.best_time is None

    def test_file_layout(self, store: JsonRecordStore, records_file: Path):
        store.save_attempt(make_record())
        store.save_best(make_best())
        payload = json.loads(records_file.read_text(encoding="utf-8"))
        entry = payload["tasks"]["task1-a"]["time_attack"]
        assert len(entry["attempts"]) == 1
        assert entry["best"]["best_time"] == 72.5
        assert entry["attempts"][0]["badges"] == ["record_breaker", "sharpshooter"]

    def test_fetch_history_returns_copy(self, store: JsonRecordStore):
        store.save_attempt(make_record())
        store.fetch_history("task1-a", SessionMode.TIME_ATTACK).clear()
        assert len(store.fetch_history("task1-a", SessionMode.TIME_ATTACK)) == 1

    def test_all_bests(self, store: JsonRecordStore):
        store.save_best(make_best("a"))
        store.save_best(make_best("b"))
        assert {b.task_id for b in store.all_bests()} == {"a", "b"}


# ---------------------------------------------------------------------------
# Deleting
# ---------------------------------------------------------------------------

class TestDelete:
    def test_delete_task(self, store: JsonRecordStore, records_file: Path):
        store.save_attempt(make_record("a"))
        store.save_best(make_best("a"))
        store.save_attempt(make_record("b"))
        store.delete_task("a")
        reloaded = JsonRecordStore(records_file)
        assert reloaded.fetch_history("a", SessionMode.TIME_ATTACK) == []
        assert reloaded.fetch_best("a", SessionMode.TIME_ATTACK) is None
        assert len(reloaded.fetch_history("b", SessionMode.TIME_ATTACK)) == 1

    def test_reset(self, store: JsonRecordStore, records_file: Path):
        store.save_attempt(make_record())
        store.save_best(make_best())
        store.reset()
        reloaded = JsonRecordStore(records_file)
        assert reloaded.fetch_history("task1-a", SessionMode.TIME_ATTACK) == []
        assert reloaded.all_bests() == []


# ---------------------------------------------------------------------------
# Serialization helpers
# ---------------------------------------------------------------------------

class TestSerialization:
    def test_unknown_badges_dropped(self):
        raw = attempt_to_dict(make_record())
        raw["badges"].append("retired_badge")
        assert attempt_from_dict(raw).badges == make_record().badges

    def test_unknown_score_fields_dropped(self):
        raw = attempt_to_dict(make_record())
        raw["score"]["legacy_metric"] = 1.0
        assert attempt_from_dict(raw).result.score == make_record().result.score

    def test_optional_fields_default(self):
        raw = attempt_to_dict(make_record())
        for key in ("paused_seconds", "peak_wpm", "formula_issues", "retry_count", "improvement"):
            del raw[key]
        record = attempt_from_dict(raw)
        assert record.result.paused_seconds == 0.0
        assert record.result.formula_issues == ()
        assert record.retry_count == 0
        assert record.improvement is None


# ---------------------------------------------------------------------------
# Load edge cases
# ---------------------------------------------------------------------------

class TestLoadEdgeCases:
    def test_corrupt_json(self, records_file: Path, caplog: pytest.LogCaptureFixture):
        records_file.write_text("{not json", encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            store = JsonRecordStore(records_file)
        assert store.all_bests() == []
        assert "Could not load records" in caplog.text

    def test_top_level_not_dict(self, records_file: Path):
        records_file.write_text("[1, 2, 3]", encoding="utf-8")
        assert JsonRecordStore(records_file).all_bests() == []

    def test_missing_tasks_key(self, records_file: Path):
        records_file.write_text('{"version": 1}', encoding="utf-8")
        assert JsonRecordStore(records_file).fetch_history("x", SessionMode.STANDARD) == []

    def test_malformed_entry_skipped(self, records_file: Path, caplog: pytest.LogCaptureFixture):
        good = {"best": {"best_time": 50.0, "accuracy": 99.0, "achieved_at": NOW.isoformat()}}
        payload = {
            "tasks": {
                "good": {"time_attack": good},
                "bad": {"time_attack": {"best": {"accuracy": 90.0}}},
                "worse": {"not_a_mode": {}},
                "worst": "nope",
            }
        }
        records_file.write_text(json.dumps(payload), encoding="utf-8")
        with caplog.at_level(logging.WARNING):
            store = JsonRecordStore(records_file)
        assert store.fetch_best("good", SessionMode.TIME_ATTACK).best_time == 50.0
        assert store.fetch_best("bad", SessionMode.TIME_ATTACK) is None
        assert "Skipping malformed records" in caplog.text

    def test_unwritable_path_logs(self, tmp_path: Path, caplog: pytest.LogCaptureFixture):
        target = tmp_path / "records.json"
        target.mkdir()
        with caplog.at_level(logging.WARNING):
            store = JsonRecordStore(target)
            store.save_best(make_best())
        assert "Could not save records" in caplog.text
        assert store.fetch_best("task1-a", SessionMode.TIME_ATTACK) == make_best()
