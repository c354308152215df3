"""Practice window: task picker, colour-coded target text, input box and live stats."""

from __future__ import annotations

import html
import logging
from typing import Optional

from PySide6.QtCore import Qt
from PySide6.QtGui import QCloseEvent, QKeyEvent
from PySide6.QtWidgets import (
    QComboBox,
    QFrame,
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPlainTextEdit,
    QProgressBar,
    QPushButton,
    QTextBrowser,
    QVBoxLayout,
    QWidget,
)

from keystride.core.alignment import ComparisonResult
from keystride.core.analysis import analyze_errors
from keystride.core.errors import InvalidInputError
from keystride.core.records import AttemptRecord
from keystride.core.scoring import ScoreSnapshot
from keystride.core.service import PracticeCoordinator
from keystride.core.session import SessionMode, SessionState, TimerMode
from keystride.core.stats import format_duration
from keystride.core.tasks import TaskRepository, TypingTask
from keystride.ui.colors import BADGE_COLORS, HighlightColors, Palette, accuracy_color
from keystride.ui.highlight import comparison_to_html
from keystride.ui.session_driver import SessionDriver

logger = logging.getLogger(__name__)

_DELETION_KEYS = (Qt.Key.Key_Backspace, Qt.Key.Key_Delete)


class StatTile(QFrame):
    """Small card with a caption and a large value."""

    def __init__(self, caption: str, parent: Optional[QWidget] = None) -> None:
        super().__init__(parent)
        self.setObjectName("statTile")
        self.setStyleSheet(
            f"""
            QFrame#statTile {{
                background: {Palette.SURFACE};
                border: 1px solid {Palette.BORDER};
                border-radius: 10px;
            }}
            """
        )
        layout = QVBoxLayout(self)
        layout.setContentsMargins(12, 8, 12, 8)
        layout.setSpacing(2)
        self._caption = QLabel(caption)
        self._caption.setStyleSheet(f"color: {Palette.TEXT_MUTED}; font-size: 11px; border: none;")
        self._value = QLabel("-")
        self._value.setStyleSheet(f"color: {Palette.TEXT_PRIMARY}; font-size: 22px; font-weight: 700; border: none;")
        layout.addWidget(self._caption)
        layout.addWidget(self._value)

    def set_value(self, text: str, color: Optional[str] = None) -> None:
        self._value.setText(text)
        self._value.setStyleSheet(
            f"color: {color or Palette.TEXT_PRIMARY}; font-size: 22px; font-weight: 700; border: none;"
        )


class PracticeWindow(QMainWindow):
    """Single-screen typing test window.

    Keystrokes are counted in an event filter on the input box before the
    text changes, so corrections are tallied even when they leave the text
    unchanged (for example Backspace on an empty box).
    """

    def __init__(self, tasks: TaskRepository, coordinator: PracticeCoordinator) -> None:
        super().__init__()
        self._tasks = tasks
        self._coordinator = coordinator
        self._driver = SessionDriver(coordinator, parent=self)
        self._config = coordinator.config

        self.setWindowTitle("Keystride")
        self._build_ui()
        self._connect_driver()
        self._populate_pickers()
        self._refresh_buttons()

    # ------------------------------------------------------------------
    # Layout
    # ------------------------------------------------------------------

    def _build_ui(self) -> None:
        root = QWidget()
        root.setStyleSheet(f"background: {Palette.BG};")
        layout = QVBoxLayout(root)
        layout.setContentsMargins(20, 16, 20, 16)
        layout.setSpacing(12)

        controls = QHBoxLayout()
        self.task_picker = QComboBox()
        self.mode_picker = QComboBox()
        self.timer_picker = QComboBox()
        self.start_button = QPushButton("Start")
        self.pause_button = QPushButton("Pause")
        self.stop_button = QPushButton("Stop")
        self.finish_button = QPushButton("Finish")
        self.retry_button = QPushButton("Retry")
        for widget in (self.task_picker, self.mode_picker, self.timer_picker):
            controls.addWidget(widget)
        controls.addStretch(1)
        for button in (self.start_button, self.pause_button, self.stop_button, self.finish_button, self.retry_button):
            button.setCursor(Qt.PointingHandCursor)
            button.setStyleSheet(
                f"""
                QPushButton {{
                    background: {Palette.PRIMARY};
                    color: white;
                    border: none;
                    border-radius: 8px;
                    padding: 6px 14px;
                    font-weight: 600;
                }}
                QPushButton:hover {{ background: {Palette.PRIMARY_DARK}; }}
                QPushButton:disabled {{ background: {Palette.BORDER}; color: {Palette.TEXT_MUTED}; }}
                """
            )
            controls.addWidget(button)
        layout.addLayout(controls)

        self.start_button.clicked.connect(self._start)
        self.pause_button.clicked.connect(self._toggle_pause)
        self.stop_button.clicked.connect(self._driver.stop)
        self.finish_button.clicked.connect(self._driver.end)
        self.retry_button.clicked.connect(self._retry)
        self.mode_picker.currentIndexChanged.connect(self._on_mode_changed)

        tiles = QHBoxLayout()
        self.time_tile = StatTile("Time")
        self.gross_tile = StatTile("Gross WPM")
        self.net_tile = StatTile("Net WPM")
        self.accuracy_tile = StatTile("Accuracy")
        self.corrections_tile = StatTile("Corrections")
        self.pace_tile = StatTile("Pace")
        for tile in (
            self.time_tile,
            self.gross_tile,
            self.net_tile,
            self.accuracy_tile,
            self.corrections_tile,
            self.pace_tile,
        ):
            tiles.addWidget(tile)
        layout.addLayout(tiles)

        self.progress_bar = QProgressBar()
        self.progress_bar.setRange(0, 100)
        self.progress_bar.setTextVisible(True)
        self.progress_bar.setFormat("%p% of words")
        layout.addWidget(self.progress_bar)

        self.target_view = QTextBrowser()
        self.target_view.setStyleSheet(
            f"background: {Palette.SURFACE}; border: 1px solid {Palette.BORDER}; "
            f"border-radius: 10px; padding: 10px; font-size: 16px;"
        )
        layout.addWidget(self.target_view, 2)

        self.input_box = QPlainTextEdit()
        self.input_box.setPlaceholderText("Press Start, then type the text above here")
        self.input_box.setStyleSheet(
            f"background: {Palette.SURFACE}; border: 2px solid {Palette.BORDER}; "
            f"border-radius: 10px; padding: 8px; font-size: 16px;"
        )
        self.input_box.installEventFilter(self)
        self.input_box.textChanged.connect(self._on_text_changed)
        layout.addWidget(self.input_box, 2)

        self.summary_label = QLabel("")
        self.summary_label.setWordWrap(True)
        self.summary_label.setTextFormat(Qt.RichText)
        self.summary_label.setStyleSheet(f"color: {Palette.TEXT_SECONDARY}; font-size: 13px;")
        layout.addWidget(self.summary_label)

        self.setCentralWidget(root)
        self.resize(1100, 760)

    def _connect_driver(self) -> None:
        self._driver.started.connect(self._on_started)
        self._driver.paused.connect(self._refresh_buttons)
        self._driver.resumed.connect(self._refresh_buttons)
        self._driver.time_up.connect(lambda: self.statusBar().showMessage("Time is up", 4000))
        self._driver.completed.connect(self._on_completed)
        self._driver.aborted.connect(self._on_aborted)
        self._driver.score_changed.connect(self._on_score_changed)
        self._driver.comparison_changed.connect(self._on_comparison_changed)

    def _populate_pickers(self) -> None:
        for task in self._tasks.all():
            self.task_picker.addItem(f"{task.task_type.short_name}: {task.title}", task.id)
        self.mode_picker.addItem("Standard", SessionMode.STANDARD)
        self.mode_picker.addItem("Time Attack", SessionMode.TIME_ATTACK)
        self.timer_picker.addItem(f"Exam ({int(self._config.exam_duration_seconds)}s)", None)
        for seconds in self._config.practice_durations:
            self.timer_picker.addItem(f"Practice ({int(seconds)}s)", seconds)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def _selected_task(self) -> Optional[TypingTask]:
        task_id = self.task_picker.currentData()
        return self._tasks.get(task_id) if task_id else None

    def _selected_timer(self) -> TimerMode:
        seconds = self.timer_picker.currentData()
        if seconds is None:
            return TimerMode.exam(self._config.exam_duration_seconds)
        return TimerMode.practice(seconds)

    def _start(self) -> None:
        task = self._selected_task()
        if task is None:
            return
        mode = self.mode_picker.currentData()
        self._set_input_text("")
        self.summary_label.setText("")
        self._driver.start(task, mode, self._selected_timer())
        self.input_box.setFocus()

    def _retry(self) -> None:
        self._set_input_text("")
        self.summary_label.setText("")
        self._driver.retry()
        self.input_box.setFocus()

    def _toggle_pause(self) -> None:
        if self._coordinator.controller.state is SessionState.PAUSED:
            self._driver.resume()
            self.input_box.setFocus()
        else:
            self._driver.pause()

    def _on_mode_changed(self) -> None:
        self.timer_picker.setEnabled(self.mode_picker.currentData() is SessionMode.STANDARD)

    def eventFilter(self, obj, event) -> bool:
        """Count raw keystrokes on the input box before Qt applies them."""
        if obj is self.input_box and event.type() == event.Type.KeyPress:
            if self._coordinator.controller.state is not SessionState.ACTIVE:
                return True
            self._on_key_press(event)
        return super().eventFilter(obj, event)

    def _on_key_press(self, event: QKeyEvent) -> None:
        key = event.key()
        if key in _DELETION_KEYS:
            self._driver.key_pressed(is_deletion=True)
        elif key in (Qt.Key.Key_Return, Qt.Key.Key_Enter, Qt.Key.Key_Tab) or (event.text() and event.text().isprintable()):
            self._driver.key_pressed()

    def _on_text_changed(self) -> None:
        if self._coordinator.controller.state is not SessionState.ACTIVE:
            return
        self._driver.set_input(self.input_box.toPlainText())

    def _set_input_text(self, text: str) -> None:
        self.input_box.blockSignals(True)
        self.input_box.setPlainText(text)
        self.input_box.blockSignals(False)

    # ------------------------------------------------------------------
    # Driver signals
    # ------------------------------------------------------------------

    def _on_started(self) -> None:
        task = self._coordinator.task
        self.statusBar().showMessage(f"Started {task.title}" if task else "Started", 3000)
        self._refresh_buttons()

    def _on_score_changed(self, snapshot: ScoreSnapshot) -> None:
        controller = self._coordinator.controller
        if controller.remaining is not None:
            self.time_tile.set_value(format_duration(controller.remaining))
        else:
            self.time_tile.set_value(format_duration(controller.elapsed))
        self.gross_tile.set_value(f"{snapshot.gross_wpm:.0f}")
        self.net_tile.set_value(f"{snapshot.net_wpm:.0f}")
        self.accuracy_tile.set_value(f"{snapshot.accuracy:.1f}%", accuracy_color(snapshot.accuracy))
        self.corrections_tile.set_value(str(controller.correction_cost))
        self.pace_tile.set_value(self._coordinator.pace_rating())
        self.progress_bar.setValue(int(round(snapshot.completion_percentage)))
        self.finish_button.setEnabled(controller.can_finish)

    def _on_comparison_changed(self, result: ComparisonResult) -> None:
        self.target_view.setHtml(comparison_to_html(result, show_cursor=True))

    def _on_completed(self, record: Optional[AttemptRecord]) -> None:
        self._refresh_buttons()
        if record is None:
            return
        self._on_score_changed(record.result.score)
        self.time_tile.set_value(format_duration(record.completion_time))
        self.summary_label.setText(self._summary_html(record))

    def _on_aborted(self) -> None:
        self.statusBar().showMessage("Session stopped", 3000)
        self._refresh_buttons()

    def _summary_html(self, record: AttemptRecord) -> str:
        parts = [f"<b>Grade {html.escape(record.grade.value)}</b>"]
        if record.is_personal_best:
            parts.append(f'<span style="color:{Palette.GOLD};">New personal best!</span>')
        if record.improvement is not None:
            unit = "s" if record.mode is SessionMode.TIME_ATTACK else " WPM"
            parts.append(f"Change vs best: {record.improvement:+.1f}{unit}")
        if not record.result.is_exportable:
            parts.append(f'<span style="color:{HighlightColors.INCORRECT};">Score failed integrity checks</span>')
        badges = " ".join(
            f'<span style="color:{BADGE_COLORS[b.color]};">{html.escape(b.display_name)}</span>'
            for b in sorted(record.badges, key=lambda b: b.value)
        )
        lines = [" &middot; ".join(parts)]
        if badges:
            lines.append(f"Badges: {badges}")
        try:
            analysis = analyze_errors(
                record.result.user_input,
                record.result.target_text,
                max_length=self._config.max_alignment_length,
            )
        except InvalidInputError as e:
            logger.warning("Skipping error analysis: %s", e)
        else:
            if analysis.most_common:
                common = ", ".join(c.display_name for c in analysis.most_common)
                lines.append(f"Most common mistakes: {html.escape(common)}")
            for tip in analysis.suggestions:
                lines.append(html.escape(tip))
        stats = self._coordinator.stats()
        if stats is not None:
            lines.append(
                f"Attempts: {stats.attempts} &middot; success rate {stats.success_rate:.0f}% "
                f"&middot; {html.escape(stats.recommended_action)}"
            )
        return "<br>".join(lines)

    def _refresh_buttons(self) -> None:
        state = self._coordinator.controller.state
        running = state in (SessionState.ACTIVE, SessionState.PAUSED)
        self.start_button.setEnabled(not running)
        self.task_picker.setEnabled(not running)
        self.mode_picker.setEnabled(not running)
        self.timer_picker.setEnabled(not running and self.mode_picker.currentData() is SessionMode.STANDARD)
        self.pause_button.setEnabled(running)
        self.pause_button.setText("Resume" if state is SessionState.PAUSED else "Pause")
        self.stop_button.setEnabled(running)
        self.finish_button.setEnabled(self._coordinator.controller.can_finish)
        self.retry_button.setEnabled(self._coordinator.task is not None)
        self.input_box.setReadOnly(state is not SessionState.ACTIVE)

    def closeEvent(self, event: QCloseEvent) -> None:
        """Abort any running session so nothing is filed half-way."""
        self._driver.stop()
        super().closeEvent(event)
