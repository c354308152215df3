"""Qt bridge that drives a practice session from the event loop."""

from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from PySide6.QtCore import QObject, QTimer, Signal

from keystride.core.alignment import compare
from keystride.core.errors import InvalidInputError
from keystride.core.service import PracticeCoordinator
from keystride.core.session import SessionEventKind, SessionMode, TimerMode
from keystride.core.tasks import TypingTask

logger = logging.getLogger(__name__)


class SessionDriver(QObject):
    """Ticks a :class:`PracticeCoordinator` from a ``QTimer``.

    Each tick passes the measured monotonic time since the previous tick.
    The reference point is reset on start and resume, so time spent paused
    never reaches the session clock. Session events are re-emitted as Qt
    signals; ``completed`` carries the filed ``AttemptRecord``.

    Lives on the GUI thread only.
    """

    started = Signal()
    paused = Signal()
    resumed = Signal()
    time_up = Signal()
    completed = Signal(object)
    aborted = Signal()
    score_changed = Signal(object)
    comparison_changed = Signal(object)

    def __init__(
        self,
        coordinator: PracticeCoordinator,
        clock: Callable[[], float] = time.monotonic,
        parent: Optional[QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._coordinator = coordinator
        self._clock = clock
        self._last_tick: Optional[float] = None
        self._timer = QTimer(self)
        self._timer.setInterval(coordinator.config.tick_interval_ms)
        self._timer.timeout.connect(self.tick)

    @property
    def coordinator(self) -> PracticeCoordinator:
        return self._coordinator

    @property
    def is_running(self) -> bool:
        return self._timer.isActive()

    def start(
        self,
        task: TypingTask,
        mode: SessionMode = SessionMode.STANDARD,
        timer_mode: Optional[TimerMode] = None,
    ) -> None:
        if self._coordinator.is_active:
            logger.debug("Ignoring start(): a session is already running")
            return
        self._coordinator.start(task, mode, timer_mode)
        self._dispatch()
        self._begin_ticking()
        self._emit_comparison("")

    def retry(self) -> None:
        self._coordinator.retry()
        self._dispatch()
        self._begin_ticking()
        self._emit_comparison("")

    def set_input(self, text: str) -> None:
        snapshot = self._coordinator.update_input(text)
        if snapshot is not None:
            self.score_changed.emit(snapshot)
            self._emit_comparison(text)
        self._dispatch()

    def key_pressed(self, is_deletion: bool = False) -> None:
        self._coordinator.register_keystroke(is_deletion)

    def pause(self) -> None:
        self._coordinator.pause()
        self._dispatch()

    def resume(self) -> None:
        self._coordinator.resume()
        self._last_tick = self._clock()
        self._dispatch()

    def stop(self) -> None:
        self._coordinator.stop()
        self._dispatch()

    def end(self) -> None:
        self._coordinator.end()
        self._dispatch()

    def tick(self) -> None:
        now = self._clock()
        delta = 0.0 if self._last_tick is None else now - self._last_tick
        self._last_tick = now
        snapshot = self._coordinator.tick(delta)
        if snapshot is not None:
            self.score_changed.emit(snapshot)
        self._dispatch()

    def _begin_ticking(self) -> None:
        if not self._coordinator.is_active:
            return
        self._last_tick = self._clock()
        self._timer.start()

    def _emit_comparison(self, text: str) -> None:
        task = self._coordinator.task
        if task is None:
            return
        try:
            result = compare(task.text, text, max_length=self._coordinator.config.max_alignment_length)
        except InvalidInputError as e:
            logger.warning("Skipping highlight refresh: %s", e)
            return
        self.comparison_changed.emit(result)

    def _dispatch(self) -> None:
        for event in self._coordinator.take_events():
            kind = event.kind
            if kind is SessionEventKind.STARTED:
                self.started.emit()
            elif kind is SessionEventKind.PAUSED:
                self.paused.emit()
            elif kind is SessionEventKind.RESUMED:
                self.resumed.emit()
            elif kind is SessionEventKind.TIME_UP:
                self.time_up.emit()
            elif kind is SessionEventKind.COMPLETED:
                self._timer.stop()
                self._last_tick = None
                self.completed.emit(self._coordinator.last_record)
            elif kind is SessionEventKind.ABORTED:
                self._timer.stop()
                self._last_tick = None
                self.aborted.emit()
