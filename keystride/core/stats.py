"""Aggregates over stored attempts and personal bests."""

from __future__ import annotations

import statistics
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple

from keystride.core.records import AttemptRecord, PersonalBestRecord, time_rating
from keystride.core.session import SessionMode, SessionResult

SUCCESS_ACCURACY = 95.0


def format_duration(seconds: Optional[float]) -> str:
    """``m:ss.ss``; ``--:--`` when there is no value."""
    if seconds is None or seconds == float("inf"):
        return "--:--"
    minutes = int(seconds) // 60
    rest = seconds - minutes * 60
    return f"{minutes}:{rest:05.2f}"


@dataclass(frozen=True)
class AttemptStats:
    task_id: str
    mode: SessionMode
    attempts: int
    personal_best: Optional[PersonalBestRecord]
    last_attempt: Optional[AttemptRecord]
    average_time: Optional[float]
    average_wpm: Optional[float]
    success_rate: float
    best_attempt: Optional[AttemptRecord] = None

    @classmethod
    def from_history(
        cls,
        task_id: str,
        mode: SessionMode,
        history: Sequence[AttemptRecord],
        personal_best: Optional[PersonalBestRecord],
    ) -> "AttemptStats":
        best_attempt = None
        for record in history:
            if record.is_personal_best:
                best_attempt = record
        return cls(
            task_id=task_id,
            mode=mode,
            attempts=len(history),
            personal_best=personal_best,
            last_attempt=history[-1] if history else None,
            average_time=statistics.fmean(r.completion_time for r in history) if history else None,
            average_wpm=statistics.fmean(r.net_wpm for r in history) if history else None,
            success_rate=(
                sum(1 for r in history if r.accuracy >= SUCCESS_ACCURACY) / len(history) * 100.0 if history else 0.0
            ),
            best_attempt=best_attempt,
        )

    @property
    def has_attempts(self) -> bool:
        return self.attempts > 0

    @property
    def has_room_for_improvement(self) -> bool:
        if self.personal_best is None:
            return True
        if self.personal_best.accuracy < 98.0:
            return True
        return self.best_attempt is not None and self.best_attempt.correction_cost > 2

    @property
    def recommended_action(self) -> str:
        if not self.has_attempts:
            return "Try your first attempt!"
        if self.has_room_for_improvement:
            return "Practice for better accuracy"
        return "Challenge a harder task"


@dataclass(frozen=True)
class OverallStats:
    total_tasks: int
    total_attempts: int
    average_best_time: Optional[float]
    fastest_time: Optional[float]
    slowest_time: Optional[float]
    average_accuracy: float

    @classmethod
    def from_bests(cls, bests: Sequence[PersonalBestRecord], total_attempts: int = 0) -> "OverallStats":
        times = [b.best_time for b in bests if b.best_time is not None]
        return cls(
            total_tasks=len({b.task_id for b in bests}),
            total_attempts=total_attempts,
            average_best_time=statistics.fmean(times) if times else None,
            fastest_time=min(times, default=None),
            slowest_time=max(times, default=None),
            average_accuracy=statistics.fmean(b.accuracy for b in bests) if bests else 0.0,
        )

    @property
    def has_data(self) -> bool:
        return self.total_tasks > 0

    @property
    def overall_rating(self) -> str:
        if not self.has_data:
            return "No data"
        speed = 1.0 if self.average_best_time is None else time_rating(self.average_best_time)
        total = (speed + self.average_accuracy / 100.0) / 2.0
        if total >= 0.9:
            return "Excellent Typist"
        if total >= 0.8:
            return "Advanced"
        if total >= 0.7:
            return "Intermediate"
        if total >= 0.6:
            return "Beginner"
        return "Learning"


@dataclass(frozen=True)
class MetricDelta:
    """Change of the headline metrics against an earlier attempt.

    Positive values always mean "better": faster time, higher WPM and
    accuracy, fewer corrections.
    """

    time: Optional[float]
    net_wpm: float
    accuracy: float
    corrections: int

    @classmethod
    def between(cls, result: SessionResult, previous: AttemptRecord) -> "MetricDelta":
        time_delta = None
        if result.mode is SessionMode.TIME_ATTACK:
            time_delta = previous.completion_time - result.completion_time
        return cls(
            time=time_delta,
            net_wpm=result.net_wpm - previous.net_wpm,
            accuracy=result.accuracy - previous.accuracy,
            corrections=previous.correction_cost - result.correction_cost,
        )


def compare_attempts(
    result: SessionResult, history: Sequence[AttemptRecord]
) -> Tuple[Optional[MetricDelta], Optional[MetricDelta]]:
    """Deltas against the previous attempt and against the last personal best."""
    if not history:
        return None, None
    previous = MetricDelta.between(result, history[-1])
    bests = [r for r in history if r.is_personal_best]
    best = MetricDelta.between(result, bests[-1]) if bests else None
    return previous, best
