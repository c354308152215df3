from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import yaml

from keystride.core.errors import InvalidTaskError


class TaskType(str, Enum):
    TASK1 = "task1"
    TASK2 = "task2"

    @property
    def display_name(self) -> str:
        return f"Task {self.value[-1]} ({self.target_words} words)"

    @property
    def short_name(self) -> str:
        return f"Task {self.value[-1]}"

    @property
    def target_words(self) -> int:
        return 150 if self is TaskType.TASK1 else 250

    @property
    def baseline_seconds(self) -> float:
        """Default grading baseline; overridable through ``EngineConfig``."""
        return 90.0 if self is TaskType.TASK1 else 150.0


class TimeAttackDifficulty(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"
    EXPERT = "expert"

    @property
    def recommended_time_limit(self) -> float:
        return {
            TimeAttackDifficulty.BEGINNER: 120.0,
            TimeAttackDifficulty.INTERMEDIATE: 90.0,
            TimeAttackDifficulty.ADVANCED: 75.0,
            TimeAttackDifficulty.EXPERT: 60.0,
        }[self]

    @property
    def target_wpm(self) -> float:
        return {
            TimeAttackDifficulty.BEGINNER: 30.0,
            TimeAttackDifficulty.INTERMEDIATE: 45.0,
            TimeAttackDifficulty.ADVANCED: 60.0,
            TimeAttackDifficulty.EXPERT: 80.0,
        }[self]


@dataclass(frozen=True)
class TypingTask:
    """A reference passage to reproduce."""

    id: str
    title: str
    task_type: TaskType
    text: str
    target_band: float = 7.0

    @property
    def word_count(self) -> int:
        return len(self.text.split())

    @property
    def difficulty(self) -> TimeAttackDifficulty:
        words = self.word_count
        band = self.target_band
        if words < 150 and band < 7.0:
            return TimeAttackDifficulty.BEGINNER
        if 200 <= words < 250 and 7.5 <= band < 8.0:
            return TimeAttackDifficulty.ADVANCED
        if words >= 250 and band >= 8.0:
            return TimeAttackDifficulty.EXPERT
        return TimeAttackDifficulty.INTERMEDIATE


class TaskRepository:
    def __init__(self, base_dir: Optional[Path] = None) -> None:
        self._base_dir = base_dir or Path(__file__).resolve().parent.parent / "data" / "tasks"
        self._tasks = self._load_tasks()

    def all(self) -> List[TypingTask]:
        return list(self._tasks.values())

    def get(self, task_id: str) -> TypingTask:
        return self._tasks[task_id]

    def _load_tasks(self) -> Dict[str, TypingTask]:
        base_dir = self._base_dir
        if not base_dir.exists():
            raise FileNotFoundError(f"Tasks directory not found: {base_dir}")

        tasks: Dict[str, TypingTask] = {}

        def _sort_key(p: Path) -> tuple[int, str]:
            m = re.match(r"^task(\d+)", p.stem)
            if m:
                return (int(m.group(1)), p.stem)
            return (10**9, p.stem)

        for task_path in sorted(base_dir.glob("task*.yaml"), key=_sort_key):
            raw = yaml.safe_load(task_path.read_text(encoding="utf-8"))
            if not raw or not isinstance(raw, dict):
                raise InvalidTaskError(f"{task_path.name}: expected YAML with 'title', 'type' and 'text'")
            title = raw.get("title")
            text = raw.get("text")
            if not title or not isinstance(title, str):
                raise InvalidTaskError(f"{task_path.name}: missing or invalid 'title'")
            if not isinstance(text, str) or not text.strip():
                raise InvalidTaskError(f"{task_path.name}: missing 'text'")
            try:
                task_type = TaskType(str(raw.get("type", "task1")).strip().lower())
            except ValueError:
                raise InvalidTaskError(f"{task_path.name}: unknown task type {raw.get('type')!r}") from None
            band = raw.get("band", 7.0)
            if isinstance(band, bool) or not isinstance(band, (int, float)):
                raise InvalidTaskError(f"{task_path.name}: 'band' must be a number")
            task_id = str(raw.get("id") or task_path.stem).strip()
            if task_id in tasks:
                raise InvalidTaskError(f"{task_path.name}: duplicate task id {task_id!r}")
            # folded YAML blocks keep a trailing newline
            tasks[task_id] = TypingTask(
                id=task_id,
                title=title.strip(),
                task_type=task_type,
                text=text.strip(),
                target_band=float(band),
            )

        if not tasks:
            raise InvalidTaskError(f"No task files (task*.yaml) found in {base_dir}")
        return tasks
