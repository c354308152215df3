from __future__ import annotations

import logging
import re
import statistics
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, List, Optional, Tuple

from keystride.core.config import EngineConfig
from keystride.core.errors import InvalidTaskError
from keystride.core.scoring import ScoreSnapshot, ScoringEngine, validate_formula
from keystride.core.tasks import TaskType, TypingTask

logger = logging.getLogger(__name__)

# WPM samples before this much active time are dominated by the epsilon floor.
_MIN_SAMPLE_SECONDS = 1.0
_WHITESPACE_RUN = re.compile(r"\s+")


class SessionState(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class SessionMode(str, Enum):
    STANDARD = "standard"
    TIME_ATTACK = "time_attack"


@dataclass(frozen=True)
class TimerMode:
    """Countdown used by Standard sessions: the fixed exam timer or a practice timer."""

    name: str
    duration: float

    @classmethod
    def exam(cls, duration: float = 120.0) -> "TimerMode":
        return cls(name="exam", duration=duration)

    @classmethod
    def practice(cls, seconds: float) -> "TimerMode":
        return cls(name="practice", duration=float(seconds))

    @property
    def label(self) -> str:
        if self.name == "exam":
            return "exam"
        return f"practice({int(self.duration)}s)"


class SessionEventKind(str, Enum):
    STARTED = "started"
    PAUSED = "paused"
    RESUMED = "resumed"
    TIME_UP = "time_up"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class SessionResult:
    """Frozen outcome of a completed session."""

    task_id: str
    task_type: TaskType
    mode: SessionMode
    timer_label: str
    user_input: str
    target_text: str
    completion_time: float
    paused_seconds: float
    session_duration: float
    score: ScoreSnapshot
    correction_cost: int
    total_keystrokes: int
    peak_wpm: float
    average_wpm: float
    consistency_score: float
    wpm_samples: int
    started_at: datetime
    completed_at: datetime
    formula_issues: Tuple[str, ...] = ()

    @property
    def accuracy(self) -> float:
        return self.score.accuracy

    @property
    def net_wpm(self) -> float:
        return self.score.net_wpm

    @property
    def is_exportable(self) -> bool:
        """False when the score cross-checks failed."""
        return not self.formula_issues


@dataclass(frozen=True)
class SessionEvent:
    kind: SessionEventKind
    result: Optional[SessionResult] = None


def normalize_for_match(text: str) -> str:
    """Trim and collapse whitespace runs; used for Time Attack exact matching."""
    return _WHITESPACE_RUN.sub(" ", text.strip())


class SessionController:
    """State machine for one typing test.

    ``IDLE -> ACTIVE -> (PAUSED <-> ACTIVE) -> COMPLETED``; a completed
    session can be started again. Time advances only through ``tick`` while
    ACTIVE, so paused intervals never count towards elapsed time. Operations
    called from a state that does not allow them are ignored.

    Transitions are reported as :class:`SessionEvent` objects collected in an
    outbox; call :meth:`take_events` to drain it.

    Keystrokes are a raw tally fed through :meth:`register_keystroke`; they
    are never inferred from text changes.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        scorer: Optional[ScoringEngine] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or EngineConfig()
        self._scorer = scorer or ScoringEngine()
        self._clock = clock
        self._events: List[SessionEvent] = []
        self._state = SessionState.IDLE
        self._task: Optional[TypingTask] = None
        self._mode = SessionMode.STANDARD
        self._timer_mode = TimerMode.exam(self._config.exam_duration_seconds)
        self._final: Optional[SessionResult] = None
        self._reset_attempt()

    def _reset_attempt(self) -> None:
        self._user_input = ""
        self._elapsed = 0.0
        self._remaining: Optional[float] = None
        self._total_keystrokes = 0
        self._correction_cost = 0
        self._wpm_samples: List[float] = []
        self._score = ScoreSnapshot()
        self._paused_seconds = 0.0
        self._paused_since: Optional[float] = None
        self._started_clock = 0.0
        self._started_at = datetime.now(timezone.utc)
        self._completion_pending = False
        self._grace_elapsed = 0.0

    # ------------------------------------------------------------------
    # Read-only state
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def timer_mode(self) -> TimerMode:
        return self._timer_mode

    @property
    def task(self) -> Optional[TypingTask]:
        return self._task

    @property
    def user_input(self) -> str:
        return self._user_input

    @property
    def elapsed(self) -> float:
        """Active seconds, excluding paused intervals."""
        return self._elapsed

    @property
    def remaining(self) -> Optional[float]:
        """Seconds left on the countdown; ``None`` in Time Attack mode."""
        return self._remaining

    @property
    def paused_seconds(self) -> float:
        paused = self._paused_seconds
        if self._paused_since is not None:
            paused += self._clock() - self._paused_since
        return paused

    @property
    def total_keystrokes(self) -> int:
        return self._total_keystrokes

    @property
    def correction_cost(self) -> int:
        return self._correction_cost

    @property
    def score(self) -> ScoreSnapshot:
        return self._score

    @property
    def progress(self) -> float:
        """Share of the reference text typed so far, from 0.0 to 1.0."""
        if self._task is None or not self._task.text:
            return 0.0
        return min(len(self._user_input), len(self._task.text)) / len(self._task.text)

    @property
    def can_finish(self) -> bool:
        """Whether :meth:`end` would finalize the attempt now.

        Time Attack only accepts an early finish once enough of the text is
        typed (``EngineConfig.time_attack_finish_progress``).
        """
        if self._state not in (SessionState.ACTIVE, SessionState.PAUSED):
            return False
        if self._mode is SessionMode.TIME_ATTACK and not self._completion_pending:
            return self.progress >= self._config.time_attack_finish_progress
        return True

    @property
    def is_completion_pending(self) -> bool:
        return self._completion_pending

    @property
    def final_result(self) -> Optional[SessionResult]:
        return self._final

    def take_events(self) -> List[SessionEvent]:
        """Return and clear the events emitted since the last call."""
        events, self._events = self._events, []
        return events

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(
        self,
        task: Optional[TypingTask],
        mode: SessionMode = SessionMode.STANDARD,
        timer_mode: Optional[TimerMode] = None,
    ) -> None:
        """Begin a new attempt from IDLE or COMPLETED.

        Raises:
            InvalidTaskError: if there is no task or its text is blank.
        """
        if task is None or not task.text.strip():
            raise InvalidTaskError("Cannot start a session without a reference text")
        if self._state not in (SessionState.IDLE, SessionState.COMPLETED):
            logger.debug("Ignoring start() while %s", self._state.value)
            return

        self._reset_attempt()
        self._task = task
        self._mode = mode
        self._timer_mode = timer_mode or TimerMode.exam(self._config.exam_duration_seconds)
        self._final = None
        if mode is SessionMode.STANDARD:
            self._remaining = self._timer_mode.duration
        self._started_clock = self._clock()
        self._started_at = datetime.now(timezone.utc)
        self._score = self._rescore()
        self._state = SessionState.ACTIVE
        logger.info("Session started: task=%s mode=%s timer=%s", task.id, mode.value, self._timer_mode.label)
        self._emit(SessionEventKind.STARTED)

    def tick(self, delta_seconds: float) -> Optional[ScoreSnapshot]:
        """Advance the session clock and refresh the live score."""
        if self._state is not SessionState.ACTIVE:
            return None
        delta = max(0.0, delta_seconds)

        if self._completion_pending:
            self._grace_elapsed += delta
            if self._grace_elapsed >= self._config.time_attack_grace_seconds:
                self._complete()
            return self._score

        self._elapsed += delta
        self._score = self._rescore()
        if self._elapsed >= _MIN_SAMPLE_SECONDS:
            self._wpm_samples.append(self._score.net_wpm)

        if self._mode is SessionMode.STANDARD and self._remaining is not None:
            self._remaining = max(0.0, self._timer_mode.duration - self._elapsed)
            if self._remaining <= 0.0:
                logger.info("Time up after %.1fs", self._elapsed)
                self._emit(SessionEventKind.TIME_UP)
                self._complete()
        return self._score

    def update_input(self, text: str) -> Optional[ScoreSnapshot]:
        """Replace the typed text and recompute the score immediately."""
        if self._state is not SessionState.ACTIVE or self._completion_pending:
            return None
        self._user_input = text
        self._score = self._rescore()

        if self._mode is SessionMode.TIME_ATTACK and self._task is not None:
            if normalize_for_match(text) == normalize_for_match(self._task.text):
                self._completion_pending = True
                self._grace_elapsed = 0.0
                logger.info("Exact match reached at %.2fs", self._elapsed)
                if self._config.time_attack_grace_seconds <= 0:
                    self._complete()
        return self._score

    def register_keystroke(self, is_deletion: bool = False) -> None:
        """Count one raw key press; deletions also count as corrections."""
        if self._state is not SessionState.ACTIVE or self._completion_pending:
            return
        self._total_keystrokes += 1
        if is_deletion:
            self._correction_cost += 1

    def pause(self) -> None:
        if self._state is not SessionState.ACTIVE or self._completion_pending:
            logger.debug("Ignoring pause() while %s", self._state.value)
            return
        self._paused_since = self._clock()
        self._state = SessionState.PAUSED
        self._emit(SessionEventKind.PAUSED)

    def resume(self) -> None:
        if self._state is not SessionState.PAUSED:
            logger.debug("Ignoring resume() while %s", self._state.value)
            return
        if self._paused_since is not None:
            self._paused_seconds += self._clock() - self._paused_since
            self._paused_since = None
        self._state = SessionState.ACTIVE
        self._emit(SessionEventKind.RESUMED)

    def stop(self) -> None:
        """Abort the attempt without producing a result."""
        if self._state not in (SessionState.ACTIVE, SessionState.PAUSED):
            return
        task_id = self._task.id if self._task else None
        self._reset_attempt()
        self._task = None
        self._final = None
        self._state = SessionState.IDLE
        logger.info("Session aborted: task=%s", task_id)
        self._emit(SessionEventKind.ABORTED)

    def end(self) -> Optional[SessionResult]:
        """Finish now and return the finalized result.

        Ignored in Time Attack until the finish threshold is reached.
        """
        if self._state not in (SessionState.ACTIVE, SessionState.PAUSED):
            return None
        if not self.can_finish:
            logger.info(
                "Ignoring end(): Time Attack finish needs %.0f%% of the text, typed %.0f%%",
                self._config.time_attack_finish_progress * 100.0,
                self.progress * 100.0,
            )
            return None
        return self._complete()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _rescore(self) -> ScoreSnapshot:
        target = self._task.text if self._task else ""
        return self._scorer.score(
            self._user_input,
            target,
            self._elapsed,
            total_keystrokes=self._total_keystrokes,
            backspace_count=self._correction_cost,
        )

    def _complete(self) -> Optional[SessionResult]:
        task = self._task
        if task is None:
            return None
        if self._paused_since is not None:
            self._paused_seconds += self._clock() - self._paused_since
            self._paused_since = None

        snapshot = self._rescore()
        self._score = snapshot
        check = validate_formula(snapshot, len(task.text), self._config.formula_tolerance)
        if not check.is_valid:
            logger.warning("Score failed integrity checks for task %s: %s", task.id, "; ".join(check.issues))

        samples = self._wpm_samples
        peak = max(samples, default=snapshot.net_wpm)
        average = statistics.fmean(samples) if samples else snapshot.net_wpm
        result = SessionResult(
            task_id=task.id,
            task_type=task.task_type,
            mode=self._mode,
            timer_label="time_attack" if self._mode is SessionMode.TIME_ATTACK else self._timer_mode.label,
            user_input=self._user_input,
            target_text=task.text,
            completion_time=self._elapsed,
            paused_seconds=self._paused_seconds,
            session_duration=self._clock() - self._started_clock,
            score=snapshot,
            correction_cost=self._correction_cost,
            total_keystrokes=self._total_keystrokes,
            peak_wpm=peak,
            average_wpm=average,
            consistency_score=consistency_score(samples),
            wpm_samples=len(samples),
            started_at=self._started_at,
            completed_at=datetime.now(timezone.utc),
            formula_issues=check.issues,
        )
        self._final = result
        self._completion_pending = False
        self._state = SessionState.COMPLETED
        logger.info(
            "Session completed: task=%s time=%.2fs net_wpm=%.1f accuracy=%.1f%%",
            result.task_id,
            result.completion_time,
            result.net_wpm,
            result.accuracy,
        )
        self._emit(SessionEventKind.COMPLETED, result)
        return result

    def _emit(self, kind: SessionEventKind, result: Optional[SessionResult] = None) -> None:
        self._events.append(SessionEvent(kind=kind, result=result))


def consistency_score(samples: List[float]) -> float:
    """1.0 for a perfectly steady pace, falling with the coefficient of variation.

    Fewer than three samples give 0.0.
    """
    if len(samples) < 3:
        return 0.0
    mean = statistics.fmean(samples)
    if mean <= 0:
        return 0.0
    variation = statistics.pstdev(samples) / mean * 100.0
    return max(0.0, 1.0 - variation / 100.0)
