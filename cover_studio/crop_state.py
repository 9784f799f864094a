"""
Per-ratio crop state manager (Qt-free).

Holds one ``CropState`` per fixed aspect ratio for the current source image.
The crop widgets push pan, zoom and crop-rectangle updates in here; the
export orchestrator reads the recorded rectangles.  Changing the source
image replaces every state at once, so a rectangle drawn on the previous
image can never be exported against the new one.
"""

import logging

from cover_studio.image_io import short_ref
from cover_studio.models import CropRect, CropState, RatioCropStates, clamp_zoom

logger = logging.getLogger(__name__)


class CropStateManager:
    """Independent pan / zoom / crop state for each ratio."""

    def __init__(self, source: str | None = None):
        self._source = source
        self._states = RatioCropStates()

    @property
    def source(self) -> str | None:
        """Reference of the image the states belong to."""
        return self._source

    @property
    def states(self) -> RatioCropStates:
        return self._states

    def state(self, key: str) -> CropState:
        return self._states.get(key)

    def crop_rect(self, key: str) -> CropRect | None:
        """Copy of the recorded crop rectangle, or None if none yet."""
        crop = self._states.get(key).crop
        if crop is None:
            return None
        return CropRect(crop.x, crop.y, crop.w, crop.h)

    # --- Mutators ---

    def set_pan(self, key: str, point: tuple[float, float]) -> None:
        x, y = point
        self._states.get(key).pan = (float(x), float(y))

    def set_zoom(self, key: str, factor: float) -> float:
        """Set zoom clamped to the configured bounds; returns the applied value."""
        zoom = clamp_zoom(factor)
        self._states.get(key).zoom = zoom
        return zoom

    def set_crop_rect(self, key: str, rect: CropRect | None) -> None:
        state = self._states.get(key)
        state.crop = None if rect is None else CropRect(rect.x, rect.y, rect.w, rect.h)

    # --- Lifecycle ---

    def reset(self, source: str | None) -> None:
        """Start a new session for *source*; every ratio returns to defaults."""
        self._states = RatioCropStates()
        self._source = source
        logger.debug("Crop states reset for new source %s", short_ref(source))
