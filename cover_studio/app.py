"""
Application entry point, logging setup and the dark slate theme.

Usage:
    python -m cover_studio.app
    cover-studio          (after pip install)
"""

import logging
import os
import sys

from PyQt6.QtWidgets import QApplication

from cover_studio.config import APP_TITLE
from cover_studio.main_window import MainWindow

SLATE_STYLESHEET = """
    QMainWindow, QWidget { background: #1e293b; color: #e2e8f0; font-size: 10pt; }
    QScrollArea { border: none; }
    QGroupBox { border: 1px solid #334155; border-radius: 6px; margin-top: 10px; padding-top: 14px; font-weight: bold; }
    QGroupBox::title { subcontrol-origin: margin; left: 10px; padding: 0 4px; color: #a5b4fc; }
    QPlainTextEdit, QComboBox, QListWidget { background: #0f172a; border: 1px solid #334155; border-radius: 6px; }
    QPlainTextEdit:focus, QComboBox:focus { border-color: #6366f1; }
    QListWidget::item { padding: 4px; border-radius: 4px; }
    QListWidget::item:selected { background: #4f46e5; }
    QPushButton { background: #334155; border: 1px solid #475569; border-radius: 6px; padding: 6px 12px; }
    QPushButton:hover { background: #475569; }
    QPushButton:pressed { background: #1e293b; }
    QPushButton:checked { background: #4f46e5; border-color: #818cf8; }
    QPushButton:disabled { color: #64748b; }
    QFrame[frameShape="6"] { border: 1px solid #334155; border-radius: 8px; }
    QSlider::groove:horizontal { height: 4px; background: #334155; border-radius: 2px; }
    QSlider::handle:horizontal { background: #6366f1; width: 12px; margin: -5px 0; border-radius: 6px; }
    QToolBar { background: #0f172a; border-bottom: 1px solid #334155; spacing: 4px; padding: 4px; }
    QStatusBar { background: #0f172a; border-top: 1px solid #334155; color: #94a3b8; }
"""


def configure_logging():
    """Root logging setup; level from COVER_STUDIO_LOG_LEVEL (default INFO)."""
    level = os.environ.get("COVER_STUDIO_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def main():
    configure_logging()
    app = QApplication(sys.argv)
    app.setApplicationName(APP_TITLE)
    app.setStyleSheet(SLATE_STYLESHEET)

    window = MainWindow()
    window.show()

    try:
        sys.exit(app.exec())
    except (SystemExit, KeyboardInterrupt):
        pass


if __name__ == "__main__":
    main()
