from __future__ import annotations

import json
import logging
from dataclasses import asdict, fields
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from keystride.core.records import (
    AchievementBadge,
    AttemptRecord,
    PerformanceGrade,
    PersonalBestRecord,
)
from keystride.core.scoring import ScoreSnapshot
from keystride.core.session import SessionMode, SessionResult
from keystride.core.tasks import TaskType

logger = logging.getLogger(__name__)

DEFAULT_RECORDS_PATH = Path.home() / ".keystride" / "records.json"

_Key = Tuple[str, SessionMode]


class JsonRecordStore:
    """Stores attempts and personal bests per (task, mode). Persists to disk.
    File: ~/.keystride/records.json unless another path is given."""

    def __init__(self, file_path: Optional[Path] = None) -> None:
        self._file_path = file_path or DEFAULT_RECORDS_PATH
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        self._history, self._bests = self._load()

    def fetch_history(self, task_id: str, mode: SessionMode) -> List[AttemptRecord]:
        """Attempts for the pair, oldest first."""
        return list(self._history.get((task_id, mode), []))

    def fetch_best(self, task_id: str, mode: SessionMode) -> Optional[PersonalBestRecord]:
        return self._bests.get((task_id, mode))

    def all_bests(self) -> List[PersonalBestRecord]:
        return list(self._bests.values())

    def save_attempt(self, record: AttemptRecord) -> None:
        self._history.setdefault((record.task_id, record.mode), []).append(record)
        self._save()

    def save_best(self, record: PersonalBestRecord) -> None:
        self._bests[record.key] = record
        self._save()

    def delete_task(self, task_id: str) -> None:
        """Remove every attempt and best for one task."""
        self._history = {k: v for k, v in self._history.items() if k[0] != task_id}
        self._bests = {k: v for k, v in self._bests.items() if k[0] != task_id}
        self._save()

    def reset(self) -> None:
        """Clear all records."""
        self._history = {}
        self._bests = {}
        self._save()

    def _load(self) -> Tuple[Dict[_Key, List[AttemptRecord]], Dict[_Key, PersonalBestRecord]]:
        history: Dict[_Key, List[AttemptRecord]] = {}
        bests: Dict[_Key, PersonalBestRecord] = {}
        if not self._file_path.exists():
            return history, bests
        try:
            payload = json.loads(self._file_path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Could not load records from %s: %s", self._file_path, e)
            return history, bests
        if not isinstance(payload, dict):
            logger.warning("Ignoring records file %s: unexpected layout", self._file_path)
            return history, bests

        for task_id, modes in payload.get("tasks", {}).items():
            if not isinstance(modes, dict):
                continue
            for mode_value, entry in modes.items():
                try:
                    mode = SessionMode(mode_value)
                    key = (task_id, mode)
                    history[key] = [attempt_from_dict(item) for item in entry.get("attempts", [])]
                    if entry.get("best"):
                        bests[key] = best_from_dict(task_id, mode, entry["best"])
                except (KeyError, TypeError, ValueError, AttributeError) as e:
                    logger.warning("Skipping malformed records for %s/%s: %s", task_id, mode_value, e)
        return history, bests

    def _save(self) -> None:
        self._file_path.parent.mkdir(parents=True, exist_ok=True)
        tasks: Dict[str, Dict[str, Any]] = {}
        for (task_id, mode), attempts in self._history.items():
            entry = tasks.setdefault(task_id, {}).setdefault(mode.value, {})
            entry["attempts"] = [attempt_to_dict(a) for a in attempts]
        for (task_id, mode), best in self._bests.items():
            entry = tasks.setdefault(task_id, {}).setdefault(mode.value, {})
            entry["best"] = best_to_dict(best)
        payload = {"version": 1, "tasks": tasks}
        try:
            self._file_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning("Could not save records to %s: %s", self._file_path, e)


def best_to_dict(best: PersonalBestRecord) -> Dict[str, Any]:
    return {
        "best_time": best.best_time,
        "best_wpm": best.best_wpm,
        "accuracy": best.accuracy,
        "achieved_at": best.achieved_at.isoformat(),
    }


def best_from_dict(task_id: str, mode: SessionMode, raw: Dict[str, Any]) -> PersonalBestRecord:
    best_time = raw.get("best_time")
    best_wpm = raw.get("best_wpm")
    return PersonalBestRecord(
        task_id=task_id,
        mode=mode,
        accuracy=float(raw.get("accuracy", 0.0)),
        achieved_at=datetime.fromisoformat(raw["achieved_at"]),
        best_time=None if best_time is None else float(best_time),
        best_wpm=None if best_wpm is None else float(best_wpm),
    )


def attempt_to_dict(record: AttemptRecord) -> Dict[str, Any]:
    result = record.result
    return {
        "task_id": result.task_id,
        "task_type": result.task_type.value,
        "mode": result.mode.value,
        "timer_label": result.timer_label,
        "user_input": result.user_input,
        "target_text": result.target_text,
        "completion_time": result.completion_time,
        "paused_seconds": result.paused_seconds,
        "session_duration": result.session_duration,
        "score": asdict(result.score),
        "correction_cost": result.correction_cost,
        "total_keystrokes": result.total_keystrokes,
        "peak_wpm": result.peak_wpm,
        "average_wpm": result.average_wpm,
        "consistency_score": result.consistency_score,
        "wpm_samples": result.wpm_samples,
        "started_at": result.started_at.isoformat(),
        "completed_at": result.completed_at.isoformat(),
        "formula_issues": list(result.formula_issues),
        "is_personal_best": record.is_personal_best,
        "improvement": record.improvement,
        "grade": record.grade.value,
        "badges": sorted(b.value for b in record.badges),
        "retry_count": record.retry_count,
    }


def attempt_from_dict(raw: Dict[str, Any]) -> AttemptRecord:
    score_fields = {f.name for f in fields(ScoreSnapshot)}
    score = ScoreSnapshot(**{k: v for k, v in raw.get("score", {}).items() if k in score_fields})
    result = SessionResult(
        task_id=str(raw["task_id"]),
        task_type=TaskType(raw.get("task_type", TaskType.TASK1.value)),
        mode=SessionMode(raw["mode"]),
        timer_label=str(raw.get("timer_label", "")),
        user_input=str(raw.get("user_input", "")),
        target_text=str(raw.get("target_text", "")),
        completion_time=float(raw["completion_time"]),
        paused_seconds=float(raw.get("paused_seconds", 0.0)),
        session_duration=float(raw.get("session_duration", raw["completion_time"])),
        score=score,
        correction_cost=int(raw.get("correction_cost", 0)),
        total_keystrokes=int(raw.get("total_keystrokes", 0)),
        peak_wpm=float(raw.get("peak_wpm", 0.0)),
        average_wpm=float(raw.get("average_wpm", 0.0)),
        consistency_score=float(raw.get("consistency_score", 0.0)),
        wpm_samples=int(raw.get("wpm_samples", 0)),
        started_at=datetime.fromisoformat(raw["started_at"]),
        completed_at=datetime.fromisoformat(raw["completed_at"]),
        formula_issues=tuple(raw.get("formula_issues", [])),
    )
    improvement = raw.get("improvement")
    return AttemptRecord(
        result=result,
        is_personal_best=bool(raw.get("is_personal_best", False)),
        improvement=None if improvement is None else float(improvement),
        grade=PerformanceGrade(raw.get("grade", PerformanceGrade.D.value)),
        badges=frozenset(AchievementBadge(b) for b in raw.get("badges", []) if b in _BADGE_VALUES),
        retry_count=int(raw.get("retry_count", 0)),
    )


_BADGE_VALUES = {b.value for b in AchievementBadge}
