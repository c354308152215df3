"""Personal bests, performance grades and achievement badges."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import FrozenSet, List, Optional, Protocol, Sequence, Set, Tuple

from keystride.core.config import EngineConfig
from keystride.core.session import SessionMode, SessionResult

logger = logging.getLogger(__name__)

SPEED_DEMON_SECONDS = 10.0
SPEED_DEMON_WPM = 10.0
FLASH_FINISH_SECONDS = 60.0
LIGHTNING_SECONDS = 45.0
HOT_STREAK_LENGTH = 3
PERSISTENT_ATTEMPTS = 10
CONSISTENT_SCORE = 0.9


class AchievementBadge(str, Enum):
    # speed
    SPEED_DEMON = "speed_demon"
    LIGHTNING = "lightning"
    FLASH_FINISH = "flash_finish"
    RECORD_BREAKER = "record_breaker"
    # accuracy
    PERFECTIONIST = "perfectionist"
    SHARPSHOOTER = "sharpshooter"
    STEADY_HANDS = "steady_hands"
    # efficiency
    FLAWLESS = "flawless"
    EFFICIENT = "efficient"
    ONE_SHOT = "one_shot"
    # consistency
    HOT_STREAK = "hot_streak"
    CONSISTENT = "consistent"
    IMPROVED = "improved"
    # special
    FIRST_TIMER = "first_timer"
    PERSISTENT = "persistent"
    CHAMPION = "champion"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def description(self) -> str:
        return _BADGE_DESCRIPTIONS[self]

    @property
    def color(self) -> str:
        if self in (AchievementBadge.SPEED_DEMON, AchievementBadge.LIGHTNING, AchievementBadge.FLASH_FINISH):
            return "orange"
        if self in (AchievementBadge.RECORD_BREAKER, AchievementBadge.CHAMPION):
            return "gold"
        if self in (AchievementBadge.PERFECTIONIST, AchievementBadge.SHARPSHOOTER, AchievementBadge.STEADY_HANDS):
            return "green"
        if self in (AchievementBadge.FLAWLESS, AchievementBadge.EFFICIENT, AchievementBadge.ONE_SHOT):
            return "blue"
        if self in (AchievementBadge.HOT_STREAK, AchievementBadge.CONSISTENT, AchievementBadge.IMPROVED):
            return "purple"
        return "gray"


_BADGE_DESCRIPTIONS = {
    AchievementBadge.SPEED_DEMON: "Beat your personal best by a wide margin",
    AchievementBadge.LIGHTNING: "Finished in 45 seconds or less",
    AchievementBadge.FLASH_FINISH: "Finished within one minute",
    AchievementBadge.RECORD_BREAKER: "Set a new personal best",
    AchievementBadge.PERFECTIONIST: "100% accuracy",
    AchievementBadge.SHARPSHOOTER: "98% accuracy or better",
    AchievementBadge.STEADY_HANDS: "95% accuracy or better",
    AchievementBadge.FLAWLESS: "No corrections at all",
    AchievementBadge.EFFICIENT: "Two corrections or fewer",
    AchievementBadge.ONE_SHOT: "Top grade on the first attempt",
    AchievementBadge.HOT_STREAK: "Three personal bests in a row",
    AchievementBadge.CONSISTENT: "Kept a steady pace throughout",
    AchievementBadge.IMPROVED: "Better than your previous attempt",
    AchievementBadge.FIRST_TIMER: "Completed your first attempt",
    AchievementBadge.PERSISTENT: "Ten or more attempts on one task",
    AchievementBadge.CHAMPION: "Top grade with near-perfect accuracy",
}


class PerformanceGrade(str, Enum):
    A_PLUS = "A+"
    A = "A"
    B_PLUS = "B+"
    B = "B"
    C_PLUS = "C+"
    C = "C"
    D = "D"

    @classmethod
    def from_score(cls, total: float) -> "PerformanceGrade":
        for threshold, grade in _GRADE_BANDS:
            if total >= threshold:
                return grade
        return cls.D

    @property
    def is_top_tier(self) -> bool:
        return self in (PerformanceGrade.A_PLUS, PerformanceGrade.A)


_GRADE_BANDS = (
    (0.95, PerformanceGrade.A_PLUS),
    (0.90, PerformanceGrade.A),
    (0.85, PerformanceGrade.B_PLUS),
    (0.80, PerformanceGrade.B),
    (0.75, PerformanceGrade.C_PLUS),
    (0.70, PerformanceGrade.C),
)


def grade_score(completion_time: float, accuracy: float, corrections: int, baseline_seconds: float) -> float:
    """Weighted 0-1 score: 50% time, 30% accuracy, 20% corrections."""
    if completion_time <= 0:
        time_score = 1.0
    elif completion_time == float("inf"):
        time_score = 0.0
    else:
        time_score = min(1.0, baseline_seconds / completion_time)
    accuracy_score = max(0.0, min(accuracy, 100.0)) / 100.0
    correction_score = max(0.0, 1.0 - corrections / 10.0)
    return time_score * 0.5 + accuracy_score * 0.3 + correction_score * 0.2


def time_rating(seconds: float) -> float:
    """1.0 up to one minute, falling linearly to 0.5 at two minutes."""
    if seconds <= 60.0:
        return 1.0
    if seconds >= 120.0:
        return 0.5
    return 1.0 - (seconds - 60.0) / 60.0 * 0.5


def effective_completion_time(result: SessionResult) -> float:
    """Completion time used for grading.

    Time Attack uses the measured time; Standard sessions project the time
    needed for the whole text from the completion percentage.
    """
    if result.mode is SessionMode.TIME_ATTACK:
        return result.completion_time
    completion = result.score.completion_percentage
    if completion <= 0:
        return float("inf")
    return result.completion_time * 100.0 / completion


@dataclass(frozen=True)
class PersonalBestRecord:
    """Best result for one ``(task_id, mode)`` pair."""

    task_id: str
    mode: SessionMode
    accuracy: float
    achieved_at: datetime
    best_time: Optional[float] = None
    best_wpm: Optional[float] = None

    @property
    def key(self) -> Tuple[str, SessionMode]:
        return (self.task_id, self.mode)

    @property
    def performance_rating(self) -> str:
        """Coarse label mixing best time and accuracy."""
        speed = 1.0 if self.best_time is None else time_rating(self.best_time)
        total = (speed + self.accuracy / 100.0) / 2.0
        if total >= 0.9:
            return "Excellent"
        if total >= 0.8:
            return "Great"
        if total >= 0.7:
            return "Good"
        if total >= 0.6:
            return "Fair"
        return "Needs improvement"


@dataclass(frozen=True)
class AttemptRecord:
    """Finalized attempt handed to persistence."""

    result: SessionResult
    is_personal_best: bool
    improvement: Optional[float]
    grade: PerformanceGrade
    badges: FrozenSet[AchievementBadge] = field(default_factory=frozenset)
    retry_count: int = 0

    @property
    def task_id(self) -> str:
        return self.result.task_id

    @property
    def mode(self) -> SessionMode:
        return self.result.mode

    @property
    def completion_time(self) -> float:
        return self.result.completion_time

    @property
    def accuracy(self) -> float:
        return self.result.accuracy

    @property
    def net_wpm(self) -> float:
        return self.result.net_wpm

    @property
    def correction_cost(self) -> int:
        return self.result.correction_cost

    @property
    def achieved_at(self) -> datetime:
        return self.result.completed_at


@dataclass(frozen=True)
class Evaluation:
    is_new_best: bool
    improvement: Optional[float]
    badges: FrozenSet[AchievementBadge]
    grade: PerformanceGrade


class RecordRepository(Protocol):
    """Storage for attempts and personal bests keyed by ``(task_id, mode)``."""

    def fetch_history(self, task_id: str, mode: SessionMode) -> List[AttemptRecord]: ...

    def fetch_best(self, task_id: str, mode: SessionMode) -> Optional[PersonalBestRecord]: ...

    def save_attempt(self, record: AttemptRecord) -> None: ...

    def save_best(self, record: PersonalBestRecord) -> None: ...

    def delete_task(self, task_id: str) -> None: ...


class RecordEvaluator:
    """Classifies a finished attempt against the personal best and history."""

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self._config = config or EngineConfig()

    def is_new_best(self, result: SessionResult, prior_best: Optional[PersonalBestRecord]) -> bool:
        if prior_best is None:
            return True
        if result.mode is SessionMode.TIME_ATTACK:
            if prior_best.best_time is None:
                return result.accuracy >= self._config.time_attack_accuracy_floor
            return (
                result.completion_time < prior_best.best_time
                and result.accuracy >= self._config.time_attack_accuracy_floor
            )
        if prior_best.best_wpm is None:
            return result.accuracy >= self._config.standard_accuracy_floor
        return result.net_wpm > prior_best.best_wpm and result.accuracy >= self._config.standard_accuracy_floor

    def improvement(self, result: SessionResult, prior_best: Optional[PersonalBestRecord]) -> Optional[float]:
        if prior_best is None:
            return None
        if result.mode is SessionMode.TIME_ATTACK:
            if prior_best.best_time is None:
                return None
            return prior_best.best_time - result.completion_time
        if prior_best.best_wpm is None:
            return None
        return result.net_wpm - prior_best.best_wpm

    def grade(self, result: SessionResult) -> PerformanceGrade:
        baseline = self._config.baseline_for(result.task_type.value)
        total = grade_score(effective_completion_time(result), result.accuracy, result.correction_cost, baseline)
        return PerformanceGrade.from_score(total)

    def evaluate(
        self,
        result: SessionResult,
        prior_best: Optional[PersonalBestRecord],
        history: Sequence[AttemptRecord],
    ) -> Evaluation:
        is_new_best = self.is_new_best(result, prior_best)
        improvement = self.improvement(result, prior_best)
        grade = self.grade(result)
        badges = self._badges(result, is_new_best, improvement, grade, history)
        return Evaluation(is_new_best=is_new_best, improvement=improvement, badges=badges, grade=grade)

    def finalize(
        self,
        result: SessionResult,
        prior_best: Optional[PersonalBestRecord],
        history: Sequence[AttemptRecord],
        retry_count: int = 0,
    ) -> Tuple[AttemptRecord, Optional[PersonalBestRecord]]:
        """Evaluate and build the attempt record plus the new best, if any."""
        evaluation = self.evaluate(result, prior_best, history)
        record = AttemptRecord(
            result=result,
            is_personal_best=evaluation.is_new_best,
            improvement=evaluation.improvement,
            grade=evaluation.grade,
            badges=evaluation.badges,
            retry_count=retry_count,
        )
        new_best = None
        if evaluation.is_new_best:
            timed = result.mode is SessionMode.TIME_ATTACK
            new_best = PersonalBestRecord(
                task_id=result.task_id,
                mode=result.mode,
                accuracy=result.accuracy,
                achieved_at=result.completed_at,
                best_time=result.completion_time if timed else None,
                best_wpm=None if timed else result.net_wpm,
            )
            logger.info("New personal best for %s (%s)", result.task_id, result.mode.value)
        return record, new_best

    def _badges(
        self,
        result: SessionResult,
        is_new_best: bool,
        improvement: Optional[float],
        grade: PerformanceGrade,
        history: Sequence[AttemptRecord],
    ) -> FrozenSet[AchievementBadge]:
        badges: Set[AchievementBadge] = set()
        timed = result.mode is SessionMode.TIME_ATTACK
        accuracy = result.accuracy
        corrections = result.correction_cost

        if not history:
            badges.add(AchievementBadge.FIRST_TIMER)
            if grade.is_top_tier:
                badges.add(AchievementBadge.ONE_SHOT)

        if is_new_best:
            badges.add(AchievementBadge.RECORD_BREAKER)
            margin = SPEED_DEMON_SECONDS if timed else SPEED_DEMON_WPM
            if improvement is not None and improvement >= margin:
                badges.add(AchievementBadge.SPEED_DEMON)

        if timed and result.completion_time <= FLASH_FINISH_SECONDS:
            badges.add(AchievementBadge.FLASH_FINISH)
        if timed and result.completion_time <= LIGHTNING_SECONDS:
            badges.add(AchievementBadge.LIGHTNING)

        if accuracy >= 100.0:
            badges.add(AchievementBadge.PERFECTIONIST)
        elif accuracy >= 98.0:
            badges.add(AchievementBadge.SHARPSHOOTER)
        elif accuracy >= 95.0:
            badges.add(AchievementBadge.STEADY_HANDS)

        if corrections == 0:
            badges.add(AchievementBadge.FLAWLESS)
        elif corrections <= 2:
            badges.add(AchievementBadge.EFFICIENT)

        recent = list(history[-(HOT_STREAK_LENGTH - 1):])
        if is_new_best and len(recent) == HOT_STREAK_LENGTH - 1 and all(r.is_personal_best for r in recent):
            badges.add(AchievementBadge.HOT_STREAK)

        if result.wpm_samples >= 3 and result.consistency_score >= CONSISTENT_SCORE:
            badges.add(AchievementBadge.CONSISTENT)

        if history and _beats(result, history[-1]):
            badges.add(AchievementBadge.IMPROVED)

        if len(history) + 1 >= PERSISTENT_ATTEMPTS:
            badges.add(AchievementBadge.PERSISTENT)

        if grade is PerformanceGrade.A_PLUS and accuracy >= 98.0 and corrections <= 1:
            badges.add(AchievementBadge.CHAMPION)

        return frozenset(badges)


def _beats(result: SessionResult, previous: AttemptRecord) -> bool:
    if result.mode is SessionMode.TIME_ATTACK:
        return result.completion_time < previous.completion_time
    return result.net_wpm > previous.net_wpm
