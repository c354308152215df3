"""Application entry point and setup for the Keystride typing trainer."""

import logging
import sys

from PySide6.QtGui import QGuiApplication
from PySide6.QtWidgets import QApplication

from keystride.core.config import load_config
from keystride.core.progress import JsonRecordStore
from keystride.core.service import PracticeCoordinator
from keystride.core.tasks import TaskRepository
from keystride.ui.main_window import PracticeWindow


def configure_logging() -> None:
    """Configure application-wide logging with a standard format."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def run() -> None:
    """Initialize the application, load tasks and records, and show the window."""
    configure_logging()
    app = QApplication(sys.argv)
    app.setApplicationName("Keystride")
    app.setApplicationDisplayName("Keystride")

    config = load_config()
    tasks = TaskRepository()
    coordinator = PracticeCoordinator(JsonRecordStore(), config)

    window = PracticeWindow(tasks=tasks, coordinator=coordinator)
    screen = QGuiApplication.primaryScreen()
    if screen is not None:
        geometry = screen.availableGeometry()
        window.resize(min(1100, geometry.width()), min(760, geometry.height()))
    window.show()

    sys.exit(app.exec())


if __name__ == "__main__":
    run()
