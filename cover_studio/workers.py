"""
Background QThreads for the main window.

Every slow operation (Gemini calls, stock search, thumbnail downloads,
exports) runs here so the UI thread stays responsive.  Workers only emit
signals; they never touch widgets.  Results carry plain Python / PIL
objects; conversion to QPixmap happens on the UI thread.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed

import requests
from PyQt6.QtCore import QThread, pyqtSignal

from cover_studio.analysis import AnalysisError, generate_content_analysis
from cover_studio.config import THUMBNAIL_SIZE
from cover_studio.exporter import ExportJob, ExportOrchestrator
from cover_studio.image_io import SourceImageError, make_thumbnail
from cover_studio.image_search import fetch_images
from cover_studio.models import ImageResult, ImageSource, Platform

logger = logging.getLogger(__name__)

# Parallel thumbnail downloads
_THUMBNAIL_WORKERS = 4


class AnalysisWorker(QThread):
    finished = pyqtSignal(object)  # AnalysisResult
    error = pyqtSignal(str)

    def __init__(self, text: str, platform: Platform, parent=None):
        super().__init__(parent)
        self._text = text
        self._platform = platform

    def run(self):
        try:
            self.finished.emit(generate_content_analysis(self._text, self._platform))
        except AnalysisError as e:
            self.error.emit(str(e))


class ImageFetchWorker(QThread):
    finished = pyqtSignal(list)  # list[ImageResult]
    error = pyqtSignal(str)

    def __init__(self, source: ImageSource, terms: list[str], page: int, parent=None):
        super().__init__(parent)
        self._source = source
        self._terms = terms
        self._page = page

    def run(self):
        try:
            self.finished.emit(fetch_images(self._source, self._terms, self._page))
        except Exception as e:
            logger.exception("Image fetch failed")
            self.error.emit(str(e))


class ThumbnailWorker(QThread):
    """Downloads thumbnails for a result list, several at a time."""
    thumbnail_ready = pyqtSignal(int, object)  # index, PIL.Image.Image
    thumbnail_failed = pyqtSignal(int)

    def __init__(self, images: list[ImageResult], parent=None):
        super().__init__(parent)
        self._images = images

    def run(self):
        with requests.Session() as session, ThreadPoolExecutor(max_workers=_THUMBNAIL_WORKERS) as executor:
            futures = {
                executor.submit(make_thumbnail, img.url, THUMBNAIL_SIZE, session): i
                for i, img in enumerate(self._images)
            }
            for future in as_completed(futures):
                index = futures[future]
                try:
                    self.thumbnail_ready.emit(index, future.result())
                except SourceImageError as e:
                    logger.warning("Thumbnail %d failed: %s", index, e)
                    self.thumbnail_failed.emit(index)


class ExportWorker(QThread):
    """Runs a single planned job, or a whole planned batch when *single* is False."""
    finished = pyqtSignal(list)  # list[Path] written

    def __init__(
        self,
        orchestrator: ExportOrchestrator,
        jobs: list[tuple[str, ExportJob | None]],
        single: bool,
        parent=None,
    ):
        super().__init__(parent)
        self._orchestrator = orchestrator
        self._jobs = jobs
        self._single = single

    def run(self):
        if not self._single:
            self.finished.emit(self._orchestrator.run_batch(self._jobs))
            return
        written = []
        for _, job in self._jobs:
            if job is not None:
                path = self._orchestrator.run_single(job)
                if path is not None:
                    written.append(path)
        self.finished.emit(written)
