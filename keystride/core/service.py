"""Coordinates a session with record keeping for the current task."""

from __future__ import annotations

import logging
from typing import List, Optional

from keystride.core.config import EngineConfig
from keystride.core.records import AttemptRecord, PersonalBestRecord, RecordEvaluator, RecordRepository
from keystride.core.scoring import ScoreSnapshot
from keystride.core.session import (
    SessionController,
    SessionEvent,
    SessionEventKind,
    SessionMode,
    SessionResult,
    SessionState,
    TimerMode,
)
from keystride.core.stats import AttemptStats
from keystride.core.tasks import TypingTask

logger = logging.getLogger(__name__)

MIN_ESTIMATE_PROGRESS = 0.1


class PracticeCoordinator:
    """Runs sessions for one learner and files every completed attempt.

    Wraps a :class:`SessionController`: transitions are delegated to it, and
    its events are drained after every call. A COMPLETED event is evaluated
    against the stored personal best and history, then saved through the
    repository. Processed events are re-queued for :meth:`take_events`.
    """

    def __init__(
        self,
        repository: RecordRepository,
        config: Optional[EngineConfig] = None,
        controller: Optional[SessionController] = None,
        evaluator: Optional[RecordEvaluator] = None,
    ) -> None:
        self._config = config or EngineConfig()
        self._repository = repository
        self._controller = controller or SessionController(self._config)
        self._evaluator = evaluator or RecordEvaluator(self._config)
        self._events: List[SessionEvent] = []
        self._task: Optional[TypingTask] = None
        self._mode = SessionMode.STANDARD
        self._timer_mode: Optional[TimerMode] = None
        self._history: List[AttemptRecord] = []
        self._best: Optional[PersonalBestRecord] = None
        self._last_record: Optional[AttemptRecord] = None
        self._retry_count = 0

    @property
    def controller(self) -> SessionController:
        return self._controller

    @property
    def config(self) -> EngineConfig:
        return self._config

    @property
    def task(self) -> Optional[TypingTask]:
        return self._task

    @property
    def mode(self) -> SessionMode:
        return self._mode

    @property
    def is_active(self) -> bool:
        return self._controller.state in (SessionState.ACTIVE, SessionState.PAUSED)

    @property
    def personal_best(self) -> Optional[PersonalBestRecord]:
        return self._best

    @property
    def history(self) -> List[AttemptRecord]:
        return list(self._history)

    @property
    def last_record(self) -> Optional[AttemptRecord]:
        return self._last_record

    @property
    def retry_count(self) -> int:
        return self._retry_count

    def take_events(self) -> List[SessionEvent]:
        events, self._events = self._events, []
        return events

    # ------------------------------------------------------------------
    # Session control
    # ------------------------------------------------------------------

    def start(
        self,
        task: TypingTask,
        mode: SessionMode = SessionMode.STANDARD,
        timer_mode: Optional[TimerMode] = None,
    ) -> None:
        if self.is_active:
            logger.debug("Ignoring start(): a session is already running")
            return
        self._task = task
        self._mode = mode
        self._timer_mode = timer_mode
        self._last_record = None
        self._history = self._repository.fetch_history(task.id, mode)
        self._best = self._repository.fetch_best(task.id, mode)
        self._controller.start(task, mode, timer_mode)
        self._drain()

    def retry(self) -> None:
        """Start the current task again; counts towards ``retry_count``."""
        if self._task is None:
            return
        if self.is_active:
            self.stop()
        self._retry_count += 1
        self.start(self._task, self._mode, self._timer_mode)

    def switch_task(
        self,
        task: TypingTask,
        mode: Optional[SessionMode] = None,
        timer_mode: Optional[TimerMode] = None,
    ) -> None:
        if self.is_active:
            self.stop()
        self._retry_count = 0
        self.start(task, mode or self._mode, timer_mode)

    def tick(self, delta_seconds: float) -> Optional[ScoreSnapshot]:
        snapshot = self._controller.tick(delta_seconds)
        self._drain()
        return snapshot

    def update_input(self, text: str) -> Optional[ScoreSnapshot]:
        snapshot = self._controller.update_input(text)
        self._drain()
        return snapshot

    def register_keystroke(self, is_deletion: bool = False) -> None:
        self._controller.register_keystroke(is_deletion)

    def pause(self) -> None:
        self._controller.pause()
        self._drain()

    def resume(self) -> None:
        self._controller.resume()
        self._drain()

    def stop(self) -> None:
        self._controller.stop()
        self._drain()

    def end(self) -> Optional[AttemptRecord]:
        """Finish the running session now and return the filed record."""
        result = self._controller.end()
        self._drain()
        return self._last_record if result is not None else None

    # ------------------------------------------------------------------
    # Live helpers
    # ------------------------------------------------------------------

    def estimated_completion_time(self) -> Optional[float]:
        """Projected total time from the share of the text typed so far."""
        if not self.is_active or not self._controller.user_input:
            return None
        progress = self._controller.progress
        if progress < MIN_ESTIMATE_PROGRESS:
            return None
        return self._controller.elapsed / progress

    def pace_rating(self) -> str:
        estimate = self.estimated_completion_time()
        if estimate is None or self._task is None:
            return "No data"
        target = self._task.difficulty.recommended_time_limit
        accuracy = self._controller.score.accuracy
        if estimate <= target * 0.8 and accuracy >= 98.0:
            return "Excellent pace"
        if estimate <= target and accuracy >= 95.0:
            return "Good pace"
        if estimate <= target * 1.2 and accuracy >= 90.0:
            return "Fair pace"
        return "Needs improvement"

    def new_record_possible(self) -> bool:
        best = self._best
        if best is None:
            return True
        score = self._controller.score
        if self._mode is SessionMode.TIME_ATTACK:
            estimate = self.estimated_completion_time()
            if estimate is None or best.best_time is None:
                return True
            return estimate < best.best_time and score.accuracy >= self._config.time_attack_accuracy_floor
        if best.best_wpm is None:
            return True
        return score.net_wpm > best.best_wpm and score.accuracy >= self._config.standard_accuracy_floor

    def stats(self) -> Optional[AttemptStats]:
        if self._task is None:
            return None
        return AttemptStats.from_history(self._task.id, self._mode, self._history, self._best)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _drain(self) -> None:
        for event in self._controller.take_events():
            if event.kind is SessionEventKind.COMPLETED and event.result is not None:
                self._file(event.result)
            self._events.append(event)

    def _file(self, result: SessionResult) -> None:
        record, new_best = self._evaluator.finalize(result, self._best, self._history, self._retry_count)
        self._repository.save_attempt(record)
        if new_best is not None:
            self._repository.save_best(new_best)
            self._best = new_best
        self._history.append(record)
        self._last_record = record
        logger.info(
            "Attempt filed: task=%s grade=%s badges=%s",
            record.task_id,
            record.grade.value,
            ",".join(sorted(b.value for b in record.badges)) or "-",
        )
