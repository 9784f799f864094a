"""
Export orchestration (Qt-free).

``ExportOrchestrator`` turns recorded crop rectangles into PNG files in the
export folder, one ratio at a time or as a fixed-order batch.  A ratio
without a recorded rectangle is skipped silently.  Rasterization failures
are reported through the ``notify`` callback for single exports only; in a
batch they are logged and the remaining ratios still export.

Jobs are snapshotted from the crop state before they run, so the Qt window
can plan on the UI thread and run the batch on a worker thread.
"""

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from cover_studio.config import BATCH_EXPORT_DELAY_MS, EXPORT_FILENAME_TEMPLATE
from cover_studio.crop_state import CropStateManager
from cover_studio.image_io import short_ref, unique_path
from cover_studio.models import RATIO_KEYS, AspectRatioSpec, CropRect, ratio_spec
from cover_studio.rasterizer import rasterize

logger = logging.getLogger(__name__)

EXPORT_FAILED_MESSAGE = "Export failed, please try again."


@dataclass(frozen=True)
class ExportJob:
    """One rasterization request: source + crop -> named PNG file."""
    spec: AspectRatioSpec
    source: str
    crop: CropRect
    timestamp_ms: int

    @property
    def filename(self) -> str:
        return EXPORT_FILENAME_TEMPLATE.format(label=self.spec.file_label, timestamp=self.timestamp_ms)


class ExportOrchestrator:
    """Single and batch export of the per-ratio crops."""

    def __init__(
        self,
        states: CropStateManager,
        output_dir: Path,
        rasterize_fn: Callable[[str, CropRect], bytes | None] = rasterize,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.time,
        notify: Callable[[str], None] | None = None,
        delay_ms: int = BATCH_EXPORT_DELAY_MS,
    ):
        self._states = states
        self.output_dir = Path(output_dir)
        self._rasterize = rasterize_fn
        self._sleep = sleep
        self._clock = clock
        self._notify = notify
        self._delay_ms = delay_ms
        self.processing = False

    # --- Planning ---

    def job_for(self, key: str) -> ExportJob | None:
        """Snapshot an export job for *key*, or None if it has no crop yet."""
        crop = self._states.crop_rect(key)
        source = self._states.source
        if crop is None or source is None:
            return None
        return ExportJob(ratio_spec(key), source, crop, int(self._clock() * 1000))

    def plan_batch(self) -> list[tuple[str, ExportJob | None]]:
        """Jobs for every ratio in batch order; None marks "nothing to export"."""
        return [(key, self.job_for(key)) for key in RATIO_KEYS]

    # --- Running ---

    def run_job(self, job: ExportJob, single: bool = True) -> Path | None:
        """Rasterize and write one job; returns the written path or None."""
        data = self._rasterize(job.source, job.crop)
        if data is None:
            logger.warning("Export of %s from %s produced no file", job.spec.label, short_ref(job.source))
            self._report_failure(single)
            return None

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
            out_path = unique_path(self.output_dir / job.filename)
            out_path.write_bytes(data)
        except OSError as exc:
            logger.error("Could not write %s to %s: %s", job.filename, self.output_dir, exc)
            self._report_failure(single)
            return None

        logger.info("Exported %s crop (%dx%d) to %s", job.spec.label, job.crop.w, job.crop.h, out_path)
        return out_path

    def export_one(self, key: str, single: bool = True) -> Path | None:
        """Export one ratio; silent no-op if it has no crop rectangle."""
        job = self.job_for(key)
        if job is None:
            logger.debug("No crop recorded for %s — nothing to export", key)
            return None

        if single:
            return self.run_single(job)
        return self.run_job(job, single=False)

    def run_single(self, job: ExportJob) -> Path | None:
        """Run one job as a standalone export (failures reach the user)."""
        self.processing = True
        try:
            return self.run_job(job, single=True)
        finally:
            self.processing = False

    def export_all(self) -> list[Path]:
        """Export wide, cinematic and square in order, pausing between them."""
        return self.run_batch(self.plan_batch())

    def run_batch(self, jobs: list[tuple[str, ExportJob | None]]) -> list[Path]:
        """Run planned jobs in order; one failing ratio never stops the rest."""
        written: list[Path] = []
        self.processing = True
        try:
            for i, (key, job) in enumerate(jobs):
                if i:
                    self._sleep(self._delay_ms / 1000)
                if job is None:
                    logger.debug("Batch: no crop recorded for %s — skipped", key)
                    continue
                try:
                    path = self.run_job(job, single=False)
                except Exception:
                    logger.exception("Batch export of %s failed", key)
                    continue
                if path is not None:
                    written.append(path)
        finally:
            self.processing = False

        logger.info("Batch export finished: %d/%d file(s) written", len(written), len(jobs))
        return written

    def _report_failure(self, single: bool) -> None:
        if single and self._notify is not None:
            self._notify(EXPORT_FAILED_MESSAGE)
