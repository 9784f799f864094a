"""Smoke tests for the main window wiring (pytest-qt)."""

import threading
import time

import pytest
from PyQt6.QtWidgets import QLabel, QListWidgetItem

from cover_studio.exporter import EXPORT_FAILED_MESSAGE
from cover_studio.main_window import MainWindow
from cover_studio.models import (
    AnalysisResult, ImageResult, ImageSource, KeywordItem, Platform, TitleOption,
)


@pytest.fixture
def window(qtbot, config_home, tmp_path):
    win = MainWindow()
    qtbot.addWidget(win)
    win._orchestrator.output_dir = tmp_path / "exports"
    return win


def _analysis():
    return AnalysisResult(
        titles=[TitleOption(text=f"标题{i}", reason="理由") for i in range(3)],
        keywords=[KeywordItem(cn=f"词{i}", en=f"word {i}") for i in range(10)],
        image_search_terms=[f"term {i}" for i in range(5)],
    )


def _load(window, source_file, sample_image):
    window._states.reset(source_file)
    window._on_source_loaded(source_file, sample_image)


class TestMainWindow:
    def test_initial_state(self, window):
        assert window._current_platform() is Platform.XIAOHONGSHU
        assert not window._export_all_btn.isEnabled()
        assert not window._fetch_btn.isEnabled()

    def test_empty_text_shows_error_without_request(self, window):
        window._text_edit.setPlainText("   ")
        window._analyze()
        assert not window._error_label.isHidden()
        assert window._analysis_worker is None

    def test_analysis_preselects_first_keywords(self, window):
        window._on_analysis_done(_analysis())

        assert [k.cn for k in window._selected_keywords] == ["词0", "词1", "词2"]
        assert [b.isChecked() for b in window._keyword_buttons[:4]] == [True, True, True, False]
        assert window._fetch_btn.isEnabled()

    def test_deselecting_all_keywords_disables_fetch(self, window):
        window._on_analysis_done(_analysis())
        for button in window._keyword_buttons[:3]:
            button.setChecked(False)
        assert window._selected_keywords == []
        assert not window._fetch_btn.isEnabled()

    def test_loaded_source_enables_export(self, window, source_file, sample_image):
        window._states.reset(source_file)
        window._on_source_loaded(source_file, sample_image)

        assert window._export_all_btn.isEnabled()
        assert all(window._states.crop_rect(key) is not None for key in ("wide", "cinematic", "square"))

    def test_stale_source_is_ignored(self, window, source_file, sample_image):
        window._states.reset("https://example.com/newer.jpg")
        window._on_source_loaded(source_file, sample_image)

        assert not window._export_all_btn.isEnabled()
        assert window._states.crop_rect("wide") is None

    def test_stale_fetch_results_are_dropped(self, window):
        window._fetch_generation = 2
        window._on_images_fetched(1, [ImageResult(id="x", url="https://img.example/x.jpg",
                                                  source=ImageSource.STOCK_LIBRARY)])
        assert window._image_list.count() == 0
        assert window._images == []

    def test_switching_image_source_clears_results(self, window):
        window._on_analysis_done(_analysis())
        window._page = 3
        window._images = [ImageResult(id="x", url="https://img.example/x.jpg", source=ImageSource.STOCK_LIBRARY)]
        window._image_list.addItem(QListWidgetItem("x"))
        generation = window._fetch_generation

        window._source_combo.setCurrentIndex(1 - window._source_combo.currentIndex())

        assert window._page == 1
        assert window._images == []
        assert window._image_list.count() == 0
        assert window._fetch_generation == generation + 1
        assert window._settings["image_source"] == window._source_combo.currentText()

    def test_titles_are_shown_as_plain_text(self, window):
        result = _analysis()
        result.titles[0] = TitleOption(text="<i>x</i>", reason="a & b")
        window._on_analysis_done(result)

        texts = [label.text() for label in window._titles_group.findChildren(QLabel)]
        assert any("&lt;i&gt;x&lt;/i&gt;" in t and "a &amp; b" in t for t in texts)
        assert not any("<i>" in t for t in texts)

    def test_close_waits_for_fetch_and_drops_its_result(self, qtbot, window, monkeypatch):
        def slow_fetch(source, terms, page):
            time.sleep(0.3)
            return [ImageResult(id="x", url="https://img.example/x.jpg", source=source)]

        monkeypatch.setattr("cover_studio.workers.fetch_images", slow_fetch)
        window._on_analysis_done(_analysis())
        window.show()
        window._fetch_images(refresh=False)
        worker = window._fetch_worker
        assert worker.isRunning()

        window.close()

        assert worker.isFinished()
        qtbot.wait(50)
        assert window._image_list.count() == 0


class TestExport:
    def test_batch_locks_ui_until_worker_finishes(self, qtbot, window, source_file, sample_image):
        _load(window, source_file, sample_image)
        release = threading.Event()
        rasterize = window._orchestrator._rasterize

        def held(source, crop):
            release.wait(5)
            return rasterize(source, crop)

        window._orchestrator._rasterize = held
        window._orchestrator._sleep = lambda seconds: None

        window._export_all()
        worker = window._export_worker
        assert window._orchestrator.processing
        assert not window._export_all_btn.isEnabled()
        assert window._export_all_btn.text() == "Exporting…"

        window._export_all()
        window._export_one("square")
        assert window._export_worker is worker

        release.set()
        qtbot.waitUntil(lambda: window._status.currentMessage().startswith("Saved 3 file(s)"), timeout=5000)
        worker.wait()
        assert len(list((window._orchestrator.output_dir).glob("cover-*.png"))) == 3
        assert window._export_all_btn.isEnabled()
        assert window._export_all_btn.text() == "⬇ Download all"

    def test_failed_single_export_shows_non_modal_notice(self, qtbot, window, source_file, sample_image):
        _load(window, source_file, sample_image)
        window._orchestrator._rasterize = lambda source, crop: None

        window._export_one("square")
        qtbot.waitUntil(lambda: window._status.currentMessage() == "Nothing exported.", timeout=5000)

        assert window._notice is not None
        assert window._notice.text() == EXPORT_FAILED_MESSAGE
        assert not window._notice.isModal()
        assert not window._orchestrator.processing

    def test_failed_batch_shows_no_notice(self, qtbot, window, source_file, sample_image):
        _load(window, source_file, sample_image)
        window._orchestrator._rasterize = lambda source, crop: None
        window._orchestrator._sleep = lambda seconds: None

        window._export_all()
        qtbot.waitUntil(lambda: window._status.currentMessage() == "Nothing exported.", timeout=5000)

        assert window._notice is None
