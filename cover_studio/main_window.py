"""
Main application window.

Left: the content assistant (platform, draft text, titles, keywords,
candidate images).  Right: the multi-ratio export editor for the selected
image.  All slow work runs on the QThreads from ``workers``; results for a
request the user has since superseded are dropped.
"""

import html
from pathlib import Path

from PIL import Image
from PyQt6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QHBoxLayout, QGridLayout,
    QListWidget, QListWidgetItem, QPushButton, QLabel, QFileDialog,
    QSplitter, QGroupBox, QMessageBox, QStatusBar, QToolBar, QComboBox,
    QPlainTextEdit, QApplication, QScrollArea,
)
from PyQt6.QtCore import Qt, QSize, QTimer, pyqtSignal
from PyQt6.QtGui import QAction, QIcon

from cover_studio.config import APP_TITLE, IMAGE_EXTENSIONS, PRESELECTED_KEYWORDS, THUMBNAIL_SIZE
from cover_studio.crop_state import CropStateManager
from cover_studio.crop_widget import ImageLoaderThread, pil_to_qpixmap
from cover_studio.exporter import ExportOrchestrator
from cover_studio.image_io import short_ref
from cover_studio.models import (
    ASPECT_RATIOS, AnalysisResult, ImageResult, ImageSource, KeywordItem, Platform,
)
from cover_studio.ratio_panel import RatioPanel
from cover_studio.settings import load_settings, save_settings
from cover_studio.workers import AnalysisWorker, ExportWorker, ImageFetchWorker, ThumbnailWorker

# Duration of the "copied" feedback on title buttons (ms)
_COPIED_FEEDBACK_MS = 2000


class MainWindow(QMainWindow):
    # Export failures arrive from worker threads; routed through a signal
    export_failed = pyqtSignal(str)

    def __init__(self):
        super().__init__()
        self.setWindowTitle(APP_TITLE)
        self.setMinimumSize(1000, 640)

        # Screen-aware startup size, clamped to 80% of screen
        preferred_w, preferred_h = 1600, 960
        screen = QApplication.primaryScreen()
        if screen is not None:
            avail = screen.availableGeometry()
            preferred_w = min(preferred_w, int(avail.width() * 0.8))
            preferred_h = min(preferred_h, int(avail.height() * 0.8))
        self.resize(preferred_w, preferred_h)

        self._settings = load_settings()
        self._states = CropStateManager()
        self._orchestrator = ExportOrchestrator(
            self._states, Path(self._settings["export_dir"]), notify=self.export_failed.emit,
        )
        self.export_failed.connect(lambda msg: self._show_notice("Export failed", msg))

        # Content assistant state
        self._analysis: AnalysisResult | None = None
        self._selected_keywords: list[KeywordItem] = []
        self._images: list[ImageResult] = []
        self._page = 1

        # Background workers (kept referenced while running)
        self._analysis_worker: AnalysisWorker | None = None
        self._fetch_worker: ImageFetchWorker | None = None
        self._thumb_worker: ThumbnailWorker | None = None
        self._loader: ImageLoaderThread | None = None
        self._export_worker: ExportWorker | None = None
        self._fetch_generation = 0
        self._fetching = False
        self._notice: QMessageBox | None = None

        self._build_ui()
        self._update_button_states()

    # =========================================================================
    # UI construction
    # =========================================================================

    def _build_ui(self):
        self._build_toolbar()

        central = QWidget()
        self.setCentralWidget(central)
        main_layout = QHBoxLayout(central)
        main_layout.setContentsMargins(4, 4, 4, 4)

        splitter = QSplitter(Qt.Orientation.Horizontal)
        main_layout.addWidget(splitter)
        splitter.addWidget(self._build_assistant_panel())
        splitter.addWidget(self._build_editor_panel())
        splitter.setSizes([460, 1100])

        self._status = QStatusBar()
        self.setStatusBar(self._status)
        self._status.showMessage("Paste your draft, pick a platform, then analyse.")

    def _build_toolbar(self):
        toolbar = QToolBar("Main")
        toolbar.setMovable(False)
        self.addToolBar(toolbar)

        act_open = QAction("📂 Open Local Image", self)
        act_open.triggered.connect(self._open_local_image)
        toolbar.addAction(act_open)

        act_output = QAction("💾 Set Export Folder", self)
        act_output.triggered.connect(self._select_export_folder)
        toolbar.addAction(act_output)

    def _build_assistant_panel(self) -> QWidget:
        inner = QWidget()
        layout = QVBoxLayout(inner)
        layout.setContentsMargins(0, 0, 0, 0)

        # --- Input ---
        input_group = QGroupBox("1. Platform && draft")
        input_layout = QVBoxLayout(input_group)
        self._platform_combo = QComboBox()
        for p in Platform:
            self._platform_combo.addItem(p.value, p)
        self._platform_combo.setCurrentText(self._settings["platform"])
        self._platform_combo.currentIndexChanged.connect(self._on_platform_changed)
        input_layout.addWidget(self._platform_combo)

        self._text_edit = QPlainTextEdit()
        self._text_edit.setPlaceholderText("Paste your article or script here…")
        self._text_edit.setMinimumHeight(140)
        input_layout.addWidget(self._text_edit)

        self._analyze_btn = QPushButton("✨ Analyse")
        self._analyze_btn.clicked.connect(self._analyze)
        input_layout.addWidget(self._analyze_btn)

        self._error_label = QLabel("")
        self._error_label.setWordWrap(True)
        self._error_label.setStyleSheet("color: #d32f2f;")
        self._error_label.hide()
        input_layout.addWidget(self._error_label)
        layout.addWidget(input_group)

        # --- Titles ---
        self._titles_group = QGroupBox("2. Titles")
        self._titles_layout = QVBoxLayout(self._titles_group)
        self._titles_group.hide()
        layout.addWidget(self._titles_group)

        # --- Keywords ---
        self._keywords_group = QGroupBox("3. Keywords (select for image search)")
        self._keywords_layout = QGridLayout(self._keywords_group)
        self._keyword_buttons: list[QPushButton] = []
        self._keywords_group.hide()
        layout.addWidget(self._keywords_group)

        # --- Images ---
        self._images_group = QGroupBox("4. Cover images")
        images_layout = QVBoxLayout(self._images_group)
        source_row = QHBoxLayout()
        self._source_combo = QComboBox()
        for s in (ImageSource.AI_GENERATION, ImageSource.STOCK_LIBRARY):
            self._source_combo.addItem(s.value, s)
        self._source_combo.setCurrentText(self._settings["image_source"])
        self._source_combo.currentIndexChanged.connect(self._on_image_source_changed)
        source_row.addWidget(self._source_combo, stretch=1)
        self._fetch_btn = QPushButton("Get images")
        self._fetch_btn.clicked.connect(lambda: self._fetch_images(refresh=False))
        source_row.addWidget(self._fetch_btn)
        self._refresh_btn = QPushButton("↻")
        self._refresh_btn.setToolTip("Next page")
        self._refresh_btn.clicked.connect(lambda: self._fetch_images(refresh=True))
        source_row.addWidget(self._refresh_btn)
        images_layout.addLayout(source_row)

        self._image_list = QListWidget()
        self._image_list.setViewMode(QListWidget.ViewMode.IconMode)
        self._image_list.setIconSize(QSize(THUMBNAIL_SIZE, THUMBNAIL_SIZE))
        self._image_list.setResizeMode(QListWidget.ResizeMode.Adjust)
        self._image_list.setMovement(QListWidget.Movement.Static)
        self._image_list.setMinimumHeight(THUMBNAIL_SIZE + 40)
        self._image_list.currentRowChanged.connect(self._on_image_selected)
        images_layout.addWidget(self._image_list)
        self._images_group.hide()
        layout.addWidget(self._images_group)

        layout.addStretch()

        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        scroll.setWidget(inner)
        scroll.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        scroll.setFrameShape(scroll.Shape.NoFrame)
        return scroll

    def _build_editor_panel(self) -> QWidget:
        panel = QWidget()
        layout = QVBoxLayout(panel)
        layout.setContentsMargins(0, 0, 0, 0)

        header = QHBoxLayout()
        title = QLabel("Multi-size export")
        title.setStyleSheet("font-weight: bold; font-size: 12pt;")
        header.addWidget(title)
        header.addStretch()
        self._export_all_btn = QPushButton("⬇ Download all")
        self._export_all_btn.clicked.connect(self._export_all)
        header.addWidget(self._export_all_btn)
        layout.addLayout(header)

        self._export_dir_label = QLabel("")
        self._export_dir_label.setStyleSheet("color: #aaa; font-size: 8pt;")
        layout.addWidget(self._export_dir_label)
        self._update_export_dir_label()

        grid = QHBoxLayout()
        self._ratio_panels: list[RatioPanel] = []
        for spec in ASPECT_RATIOS:
            ratio_panel = RatioPanel(spec, self._states)
            ratio_panel.download_requested.connect(self._export_one)
            grid.addWidget(ratio_panel, stretch=1)
            self._ratio_panels.append(ratio_panel)
        layout.addLayout(grid, stretch=1)
        return panel

    # =========================================================================
    # Settings
    # =========================================================================

    def _save_settings(self):
        try:
            save_settings(self._settings)
        except (OSError, ValueError) as exc:
            self._status.showMessage(f"Could not save settings: {exc}")

    def _on_platform_changed(self, _index: int):
        self._settings["platform"] = self._current_platform().value
        self._save_settings()

    def _on_image_source_changed(self, _index: int):
        self._settings["image_source"] = self._current_image_source().value
        self._save_settings()

        # Results of the previous source (and any fetch in flight) no longer apply
        self._fetch_generation += 1
        self._fetching = False
        self._page = 1
        self._clear_images()
        self._select_source(None)
        self._update_button_states()

    def _current_platform(self) -> Platform:
        return self._platform_combo.currentData()

    def _current_image_source(self) -> ImageSource:
        return self._source_combo.currentData()

    def _select_export_folder(self):
        folder = QFileDialog.getExistingDirectory(self, "Select Export Folder", str(self._orchestrator.output_dir))
        if folder:
            self._orchestrator.output_dir = Path(folder)
            self._settings["export_dir"] = folder
            self._save_settings()
            self._update_export_dir_label()

    def _update_export_dir_label(self):
        self._export_dir_label.setText(f"Export folder: {self._orchestrator.output_dir}")

    # =========================================================================
    # Step 1: analysis
    # =========================================================================

    def _analyze(self):
        text = self._text_edit.toPlainText()
        if not text.strip():
            self._set_error("Please enter some text to analyse.")
            return
        self._set_error(None)

        # A new analysis discards everything downstream
        self._analysis = None
        self._selected_keywords = []
        self._page = 1
        self._clear_images()
        self._select_source(None)
        self._titles_group.hide()
        self._keywords_group.hide()
        self._images_group.hide()

        self._analyze_btn.setEnabled(False)
        self._analyze_btn.setText("Analysing…")
        self._analysis_worker = AnalysisWorker(text, self._current_platform(), self)
        self._analysis_worker.finished.connect(self._on_analysis_done)
        self._analysis_worker.error.connect(self._on_analysis_error)
        self._analysis_worker.start()

    def _on_analysis_done(self, result: AnalysisResult):
        self._reset_analyze_button()
        self._analysis = result
        self._selected_keywords = list(result.keywords[:PRESELECTED_KEYWORDS])
        self._populate_titles(result)
        self._populate_keywords(result)
        self._images_group.show()
        self._status.showMessage("Analysis complete. Pick keywords and fetch cover images.")
        self._update_button_states()

    def _on_analysis_error(self, message: str):
        self._reset_analyze_button()
        self._set_error(message or "Analysis failed, please try again.")
        self._update_button_states()

    def _reset_analyze_button(self):
        self._analyze_btn.setEnabled(True)
        self._analyze_btn.setText("✨ Analyse")

    def _set_error(self, message: str | None):
        if message:
            self._error_label.setText(message)
            self._error_label.show()
        else:
            self._error_label.clear()
            self._error_label.hide()

    def _populate_titles(self, result: AnalysisResult):
        _clear_layout(self._titles_layout)
        for title in result.titles:
            row = QHBoxLayout()
            label = QLabel(
                f"<b>{html.escape(title.text)}</b><br>"
                f"<span style='color:#888'>{html.escape(title.reason)}</span>"
            )
            label.setWordWrap(True)
            label.setTextInteractionFlags(Qt.TextInteractionFlag.TextSelectableByMouse)
            row.addWidget(label, stretch=1)
            copy_btn = QPushButton("Copy")
            copy_btn.clicked.connect(lambda _checked=False, t=title.text, b=copy_btn: self._copy_title(t, b))
            row.addWidget(copy_btn)
            self._titles_layout.addLayout(row)
        self._titles_group.show()

    def _copy_title(self, text: str, button: QPushButton):
        QApplication.clipboard().setText(text)
        button.setText("Copied ✓")
        QTimer.singleShot(_COPIED_FEEDBACK_MS, lambda: button.setText("Copy"))

    def _populate_keywords(self, result: AnalysisResult):
        _clear_layout(self._keywords_layout)
        self._keyword_buttons = []
        for i, kw in enumerate(result.keywords):
            btn = QPushButton(f"#{kw.cn}")
            btn.setToolTip(kw.en)
            btn.setCheckable(True)
            btn.setChecked(kw in self._selected_keywords)
            btn.toggled.connect(lambda checked, k=kw: self._toggle_keyword(k, checked))
            self._keywords_layout.addWidget(btn, i // 2, i % 2)
            self._keyword_buttons.append(btn)
        self._keywords_group.show()

    def _toggle_keyword(self, keyword: KeywordItem, checked: bool):
        exists = any(k.cn == keyword.cn for k in self._selected_keywords)
        if checked and not exists:
            self._selected_keywords.append(keyword)
        elif not checked:
            self._selected_keywords = [k for k in self._selected_keywords if k.cn != keyword.cn]
        self._update_button_states()

    # =========================================================================
    # Step 2: candidate images
    # =========================================================================

    def _fetch_images(self, refresh: bool):
        if self._analysis is None or not self._selected_keywords:
            return
        self._set_error(None)
        self._page = self._page + 1 if refresh else 1
        self._clear_images()
        self._select_source(None)

        self._fetch_generation += 1
        generation = self._fetch_generation
        terms = [k.en for k in self._selected_keywords]
        self._fetching = True
        self._update_button_states()
        self._status.showMessage("Fetching images…")

        self._fetch_worker = ImageFetchWorker(self._current_image_source(), terms, self._page, self)
        self._fetch_worker.finished.connect(lambda images, g=generation: self._on_images_fetched(g, images))
        self._fetch_worker.error.connect(lambda msg, g=generation: self._on_fetch_error(g, msg))
        self._fetch_worker.start()

    def _on_images_fetched(self, generation: int, images: list[ImageResult]):
        if generation != self._fetch_generation:
            return
        self._fetching = False
        self._images = images
        self._update_button_states()
        if not images:
            self._status.showMessage("No images found. Try other keywords or switch to AI generation.")
            return

        placeholder = QIcon()
        for img in images:
            item = QListWidgetItem(placeholder, "")
            item.setToolTip(img.source.value)
            item.setSizeHint(QSize(THUMBNAIL_SIZE + 12, THUMBNAIL_SIZE + 12))
            self._image_list.addItem(item)
        self._status.showMessage(f"{len(images)} image(s) found (page {self._page}). Click one to edit.")

        self._thumb_worker = ThumbnailWorker(images, self)
        self._thumb_worker.thumbnail_ready.connect(
            lambda index, thumb, g=generation: self._on_thumbnail_ready(g, index, thumb)
        )
        self._thumb_worker.thumbnail_failed.connect(
            lambda index, g=generation: self._on_thumbnail_failed(g, index)
        )
        self._thumb_worker.start()

    def _on_fetch_error(self, generation: int, message: str):
        if generation != self._fetch_generation:
            return
        self._fetching = False
        self._set_error("Image generation/search failed, please switch source and retry.")
        self._status.showMessage(f"Image fetch failed: {message}")
        self._update_button_states()

    def _on_thumbnail_ready(self, generation: int, index: int, thumb: Image.Image):
        if generation != self._fetch_generation:
            return
        item = self._image_list.item(index)
        if item is not None:
            item.setIcon(QIcon(pil_to_qpixmap(thumb)))

    def _on_thumbnail_failed(self, generation: int, index: int):
        if generation != self._fetch_generation:
            return
        item = self._image_list.item(index)
        if item is not None:
            item.setText("Load failed")

    def _clear_images(self):
        self._images = []
        self._image_list.blockSignals(True)
        self._image_list.clear()
        self._image_list.blockSignals(False)

    def _on_image_selected(self, row: int):
        if row < 0 or row >= len(self._images):
            return
        self._select_source(self._images[row].url)

    def _open_local_image(self):
        patterns = " ".join(f"*{ext}" for ext in sorted(IMAGE_EXTENSIONS))
        path, _ = QFileDialog.getOpenFileName(self, "Open Image", "", f"Images ({patterns})")
        if path:
            self._select_source(path)

    # =========================================================================
    # Step 3: export editor
    # =========================================================================

    def _select_source(self, ref: str | None):
        """Switch the editor to *ref*; every ratio starts from defaults."""
        if ref is not None and ref == self._states.source:
            return
        self._states.reset(ref)
        for ratio_panel in self._ratio_panels:
            ratio_panel.clear()
        self._update_button_states()
        if ref is None:
            return

        for ratio_panel in self._ratio_panels:
            ratio_panel.set_loading(True)

        if self._loader is not None:
            try:
                self._loader.finished.disconnect()
                self._loader.error.disconnect()
            except (TypeError, RuntimeError):
                pass  # Already disconnected or destroyed

        self._loader = ImageLoaderThread(ref, self)
        self._loader.finished.connect(lambda img, r=ref: self._on_source_loaded(r, img))
        self._loader.error.connect(lambda err, r=ref: self._on_source_load_error(r, err))
        self._loader.start()
        self._status.showMessage(f"Loading {short_ref(ref)}…")

    def _on_source_loaded(self, ref: str, img: Image.Image):
        if ref != self._states.source:
            return  # User picked another image before loading finished
        pixmap = pil_to_qpixmap(img)
        for ratio_panel in self._ratio_panels:
            ratio_panel.set_image(pixmap, img.width, img.height)
        self._status.showMessage(f"Image {img.width}×{img.height} ready. Adjust each ratio, then download.")
        self._update_button_states()

    def _on_source_load_error(self, ref: str, error: str):
        if ref != self._states.source:
            return
        for ratio_panel in self._ratio_panels:
            ratio_panel.set_loading(False)
        self._status.showMessage(f"Failed to load image: {error}")

    def _export_one(self, key: str):
        if self._orchestrator.processing:
            return
        job = self._orchestrator.job_for(key)
        if job is None:
            return
        self._start_export([(key, job)], single=True)

    def _export_all(self):
        if self._orchestrator.processing:
            return
        self._start_export(self._orchestrator.plan_batch(), single=False)

    def _start_export(self, jobs, single: bool):
        self._export_worker = ExportWorker(self._orchestrator, jobs, single, self)
        self._export_worker.finished.connect(self._on_export_done)
        # Raised here so the UI locks before the thread runs; the orchestrator clears it
        self._orchestrator.processing = True
        self._update_button_states()
        self._status.showMessage("Exporting…")
        self._export_worker.start()

    def _on_export_done(self, written: list[Path]):
        self._update_button_states()
        if written:
            names = ", ".join(p.name for p in written)
            self._status.showMessage(f"Saved {len(written)} file(s) to {self._orchestrator.output_dir}: {names}")
        else:
            self._status.showMessage("Nothing exported.")

    # =========================================================================
    # Helpers
    # =========================================================================

    def _update_button_states(self):
        has_keywords = self._analysis is not None and bool(self._selected_keywords)
        self._fetch_btn.setEnabled(has_keywords and not self._fetching)
        self._refresh_btn.setEnabled(has_keywords and not self._fetching and bool(self._images))

        has_image = self._ratio_panels[0].crop_view.has_image() if self._ratio_panels else False
        self._export_all_btn.setEnabled(has_image and not self._orchestrator.processing)
        self._export_all_btn.setText("Exporting…" if self._orchestrator.processing else "⬇ Download all")
        for ratio_panel in self._ratio_panels:
            ratio_panel.set_download_enabled(has_image)

    def _show_notice(self, title: str, message: str):
        """Non-blocking user notice."""
        self._status.showMessage(message)
        self._notice = QMessageBox(QMessageBox.Icon.Warning, title, message, QMessageBox.StandardButton.Ok, self)
        self._notice.setModal(False)
        self._notice.show()

    def closeEvent(self, event):
        """Save settings and let running workers finish before closing.

        Results arriving after close are dropped: every worker's signals are
        disconnected before waiting, and the wait has no timeout so no QThread
        is destroyed while still running.
        """
        self._save_settings()
        self.hide()
        for worker in (self._analysis_worker, self._fetch_worker, self._thumb_worker,
                       self._loader, self._export_worker):
            if worker is None:
                continue
            for name in ("finished", "error", "thumbnail_ready", "thumbnail_failed"):
                signal = getattr(worker, name, None)
                if signal is None:
                    continue
                try:
                    signal.disconnect()
                except (TypeError, RuntimeError):
                    pass
            worker.wait()
        super().closeEvent(event)


def _clear_layout(layout):
    """Remove and delete every widget and sub-layout of *layout*."""
    while layout.count():
        item = layout.takeAt(0)
        if item.widget() is not None:
            item.widget().deleteLater()
        elif item.layout() is not None:
            _clear_layout(item.layout())
