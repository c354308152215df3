"""Tests for keystride.core.tasks – YAML task catalogue."""

from __future__ import annotations

import dataclasses
from pathlib import Path

import pytest
import yaml

from keystride.core.errors import InvalidTaskError
from keystride.core.tasks import TaskRepository, TaskType, TimeAttackDifficulty, TypingTask


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def tasks_dir(tmp_path: Path) -> Path:
    d = tmp_path / "data" / "tasks"
    d.mkdir(parents=True)
    return d


def _write_yaml(path: Path, data: dict) -> None:
    path.write_text(yaml.dump(data, allow_unicode=True, default_flow_style=False), encoding="utf-8")


def _words(n: int) -> str:
    return " ".join(["word"] * n)


# ---------------------------------------------------------------------------
# TaskType / TimeAttackDifficulty
# ---------------------------------------------------------------------------

class TestTaskType:
    def test_names(self):
        assert TaskType.TASK1.short_name == "Task 1"
        assert TaskType.TASK2.display_name == "Task 2 (250 words)"

    def test_baselines(self):
        assert TaskType.TASK1.baseline_seconds == 90.0
        assert TaskType.TASK2.baseline_seconds == 150.0

    def test_from_value(self):
        assert TaskType("task2") is TaskType.TASK2


class TestDifficulty:
    def test_limits(self):
        assert TimeAttackDifficulty.BEGINNER.recommended_time_limit == 120.0
        assert TimeAttackDifficulty.EXPERT.recommended_time_limit == 60.0
        assert TimeAttackDifficulty.ADVANCED.target_wpm == 60.0

    @pytest.mark.parametrize(
        "words,band,expected",
        [
            (100, 6.5, TimeAttackDifficulty.BEGINNER),
            (160, 7.0, TimeAttackDifficulty.INTERMEDIATE),
            (220, 7.5, TimeAttackDifficulty.ADVANCED),
            (260, 8.5, TimeAttackDifficulty.EXPERT),
            (260, 7.0, TimeAttackDifficulty.INTERMEDIATE),
        ],
    )
    def test_task_difficulty(self, words, band, expected):
        task = TypingTask(id="t", title="T", task_type=TaskType.TASK1, text=_words(words), target_band=band)
        assert task.difficulty is expected


# ---------------------------------------------------------------------------
# TypingTask dataclass
# ---------------------------------------------------------------------------

class TestTypingTask:
    def test_word_count(self):
        task = TypingTask(id="t", title="T", task_type=TaskType.TASK1, text="one  two\nthree")
        assert task.word_count == 3

    def test_frozen(self):
        task = TypingTask(id="t", title="T", task_type=TaskType.TASK1, text="x")
        with pytest.raises(dataclasses.FrozenInstanceError):
            task.text = "y"


# ---------------------------------------------------------------------------
# TaskRepository – loading
# ---------------------------------------------------------------------------

class TestTaskRepository:
    def test_bundled_tasks_load(self):
        repo = TaskRepository()
        tasks = repo.all()
        assert len(tasks) >= 2
        assert {t.task_type for t in tasks} == {TaskType.TASK1, TaskType.TASK2}
        for task in tasks:
            assert task.text == task.text.strip()
            assert task.word_count > 100

    def test_loads_fields(self, tasks_dir: Path):
        _write_yaml(
            tasks_dir / "task1-chart.yaml",
            {"id": "chart", "title": " Chart ", "type": "Task1", "band": 7.5, "text": "The chart shows.\n"},
        )
        task = TaskRepository(tasks_dir).get("chart")
        assert task == TypingTask(
            id="chart", title="Chart", task_type=TaskType.TASK1, text="The chart shows.", target_band=7.5
        )

    def test_id_defaults_to_stem(self, tasks_dir: Path):
        _write_yaml(tasks_dir / "task2-essay.yaml", {"title": "Essay", "type": "task2", "text": "Some text"})
        assert TaskRepository(tasks_dir).get("task2-essay").task_type is TaskType.TASK2

    def test_sorted_by_number(self, tasks_dir: Path):
        for name in ("task10-x", "task2-y", "task1-z"):
            _write_yaml(tasks_dir / f"{name}.yaml", {"title": name, "text": "abc"})
        assert [t.id for t in TaskRepository(tasks_dir).all()] == ["task1-z", "task2-y", "task10-x"]

    def test_ignores_other_files(self, tasks_dir: Path):
        _write_yaml(tasks_dir / "task1.yaml", {"title": "One", "text": "abc"})
        _write_yaml(tasks_dir / "notes.yaml", {"title": "Nope"})
        assert len(TaskRepository(tasks_dir).all()) == 1

    def test_unknown_id_raises_key_error(self, tasks_dir: Path):
        _write_yaml(tasks_dir / "task1.yaml", {"title": "One", "text": "abc"})
        with pytest.raises(KeyError):
            TaskRepository(tasks_dir).get("missing")


# ---------------------------------------------------------------------------
# TaskRepository – malformed files
# ---------------------------------------------------------------------------

class TestTaskRepositoryErrors:
    def test_missing_directory(self, tmp_path: Path):
        with pytest.raises(FileNotFoundError):
            TaskRepository(tmp_path / "absent")

    def test_empty_directory(self, tasks_dir: Path):
        with pytest.raises(InvalidTaskError, match="No task files"):
            TaskRepository(tasks_dir)

    def test_empty_file(self, tasks_dir: Path):
        (tasks_dir / "task1.yaml").write_text("", encoding="utf-8")
        with pytest.raises(InvalidTaskError, match="task1.yaml"):
            TaskRepository(tasks_dir)

    def test_missing_title(self, tasks_dir: Path):
        _write_yaml(tasks_dir / "task1.yaml", {"text": "abc"})
        with pytest.raises(InvalidTaskError, match="title"):
            TaskRepository(tasks_dir)

    def test_blank_text(self, tasks_dir: Path):
        _write_yaml(tasks_dir / "task1.yaml", {"title": "One", "text": "   "})
        with pytest.raises(InvalidTaskError, match="text"):
            TaskRepository(tasks_dir)

    def test_unknown_type(self, tasks_dir: Path):
        _write_yaml(tasks_dir / "task1.yaml", {"title": "One", "type": "task3", "text": "abc"})
        with pytest.raises(InvalidTaskError, match="unknown task type"):
            TaskRepository(tasks_dir)

    def test_band_must_be_number(self, tasks_dir: Path):
        _write_yaml(tasks_dir / "task1.yaml", {"title": "One", "band": "high", "text": "abc"})
        with pytest.raises(InvalidTaskError, match="band"):
            TaskRepository(tasks_dir)

    def test_duplicate_ids(self, tasks_dir: Path):
        _write_yaml(tasks_dir / "task1-a.yaml", {"id": "same", "title": "A", "text": "abc"})
        _write_yaml(tasks_dir / "task2-b.yaml", {"id": "same", "title": "B", "text": "abc"})
        with pytest.raises(InvalidTaskError, match="duplicate"):
            TaskRepository(tasks_dir)

    def test_invalid_task_error_is_value_error(self, tasks_dir: Path):
        with pytest.raises(ValueError):
            TaskRepository(tasks_dir)
