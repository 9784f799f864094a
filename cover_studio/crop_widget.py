"""
Interactive crop view and Qt image helpers.

This module contains everything that touches both Qt **and** image display:
``pil_to_qpixmap``, the background ``ImageLoaderThread``, and the
``CropViewWidget`` that lets the user pan and zoom one ratio's crop window.
The widget owns no export logic: it reports pan, zoom and the resulting
crop rectangle through signals.
"""

from PIL import Image
from PyQt6.QtWidgets import QWidget, QSizePolicy
from PyQt6.QtCore import Qt, QRectF, QPointF, pyqtSignal, QThread
from PyQt6.QtGui import (
    QBrush, QPainter, QPainterPath, QPixmap, QColor, QPen, QImage,
    QKeyEvent, QMouseEvent, QPaintEvent, QResizeEvent, QWheelEvent,
)

from cover_studio.config import NUDGE_SMALL, NUDGE_LARGE, ZOOM_MIN, ZOOM_STEP
from cover_studio.image_io import load_source
from cover_studio.models import AspectRatioSpec, CropRect, clamp_zoom, crop_for_view

_BACKGROUND = QColor(15, 23, 42)
_SHADE = QColor(15, 23, 42, 170)
_ACCENT = QColor(99, 102, 241)

# Arrow key code -> unit nudge direction (image x, image y)
_NUDGE_KEYS = {
    Qt.Key.Key_Left.value: (-1, 0),
    Qt.Key.Key_Right.value: (1, 0),
    Qt.Key.Key_Up.value: (0, -1),
    Qt.Key.Key_Down.value: (0, 1),
}


# =============================================================================
# Qt ↔ PIL helpers
# =============================================================================

def pil_to_qpixmap(pil_img: Image.Image) -> QPixmap:
    """Convert a PIL Image to QPixmap."""
    rgba = pil_img.convert("RGBA")
    qimg = QImage(rgba.tobytes("raw", "RGBA"), rgba.width, rgba.height, QImage.Format.Format_RGBA8888)
    # QImage borrows the buffer; copy before it goes out of scope
    return QPixmap.fromImage(qimg.copy())


# =============================================================================
# Background image loader
# =============================================================================

class ImageLoaderThread(QThread):
    """Fetches and decodes a source reference off the UI thread."""
    finished = pyqtSignal(object)  # PIL.Image.Image
    error = pyqtSignal(str)

    def __init__(self, ref: str, parent=None):
        super().__init__(parent)
        self._ref = ref

    def run(self):
        try:
            self.finished.emit(load_source(self._ref))
        except Exception as e:
            self.error.emit(str(e))


# =============================================================================
# Crop View Widget: pan/zoom a fixed-ratio crop window over the image
# =============================================================================

class CropViewWidget(QWidget):
    """Displays the image letterboxed with one ratio's crop window on top.

    Drag inside the window to pan, scroll to zoom, arrow keys to nudge
    (hold Shift for larger steps).
    """

    pan_changed = pyqtSignal(float, float)
    zoom_changed = pyqtSignal(float)
    crop_complete = pyqtSignal(object)  # CropRect

    def __init__(self, spec: AspectRatioSpec, parent=None):
        super().__init__(parent)
        self.setMinimumSize(240, 160)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        self.setMouseTracking(True)

        self._spec = spec
        self._pixmap: QPixmap | None = None
        self._img_size = (0, 0)
        self._pan = (0.0, 0.0)
        self._zoom = ZOOM_MIN
        self._crop = CropRect()
        self._loading = False

        # Image -> widget mapping: widget = image * scale + origin
        self._scale = 1.0
        self._origin = QPointF()

        # Drag start (widget position, pan at press)
        self._drag: tuple[QPointF, tuple[float, float]] | None = None

    @property
    def spec(self) -> AspectRatioSpec:
        return self._spec

    def set_loading(self, loading: bool):
        self._loading = loading
        self.update()

    def set_image(self, pixmap: QPixmap, img_w: int, img_h: int):
        """Show a new image framed with the current pan/zoom."""
        self._loading = False
        self._pixmap = pixmap
        self._img_size = (img_w, img_h)
        self._fit_to_widget()
        self._apply_view()

    def set_view(self, pan: tuple[float, float], zoom: float):
        """Apply a pan/zoom coming from outside (slider, stored state)."""
        self._pan = (float(pan[0]), float(pan[1]))
        self._zoom = clamp_zoom(zoom)
        self._apply_view()

    def get_crop(self) -> CropRect:
        return CropRect(self._crop.x, self._crop.y, self._crop.w, self._crop.h)

    def pan(self) -> tuple[float, float]:
        return self._pan

    def zoom(self) -> float:
        return self._zoom

    def has_image(self) -> bool:
        return self._pixmap is not None

    def clear(self):
        self._pixmap = None
        self._img_size = (0, 0)
        self._pan = (0.0, 0.0)
        self._zoom = ZOOM_MIN
        self._crop = CropRect()
        self._drag = None
        self.update()

    # --- View geometry ---

    def _apply_view(self, pan_moved: bool = False):
        """Recompute the crop from pan/zoom and report it."""
        if not self.has_image():
            return
        requested = self._pan
        img_w, img_h = self._img_size
        self._crop, self._pan = crop_for_view(img_w, img_h, self._spec, self._zoom, self._pan)
        if pan_moved or self._pan != requested:
            self.pan_changed.emit(*self._pan)
        self.crop_complete.emit(self.get_crop())
        self.update()

    def _fit_to_widget(self):
        img_w, img_h = self._img_size
        if not img_w or not img_h:
            return
        self._scale = min(self.width() / img_w, self.height() / img_h)
        self._origin = QPointF((self.width() - img_w * self._scale) / 2, (self.height() - img_h * self._scale) / 2)

    def _to_widget(self, rect: CropRect) -> QRectF:
        return QRectF(
            self._origin.x() + rect.x * self._scale,
            self._origin.y() + rect.y * self._scale,
            rect.w * self._scale,
            rect.h * self._scale,
        )

    def _window_rect(self) -> QRectF:
        return self._to_widget(self._crop)

    # --- Painting ---

    def paintEvent(self, event: QPaintEvent):
        painter = QPainter(self)
        painter.fillRect(self.rect(), _BACKGROUND)

        if self._pixmap is None:
            painter.setPen(QColor(148, 163, 184))
            text = "Loading image…" if self._loading else "No image selected"
            painter.drawText(self.rect(), Qt.AlignmentFlag.AlignCenter, text)
            painter.end()
            return

        painter.setRenderHint(QPainter.RenderHint.SmoothPixmapTransform)
        image_rect = self._to_widget(CropRect(0, 0, *self._img_size))
        painter.drawPixmap(image_rect.toRect(), self._pixmap)

        # Shade everything but the crop window
        window = self._window_rect()
        shade = QPainterPath()
        shade.setFillRule(Qt.FillRule.OddEvenFill)
        shade.addRect(image_rect)
        shade.addRect(window)
        painter.fillPath(shade, QBrush(_SHADE))

        painter.setPen(QPen(_ACCENT, 2))
        painter.drawRect(window)
        painter.setPen(Qt.GlobalColor.white)
        painter.drawText(
            window.adjusted(6, 4, -6, -4),
            Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop,
            f"{self._spec.label}  {self._crop.w}×{self._crop.h}",
        )
        painter.end()

    def resizeEvent(self, event: QResizeEvent):
        self._fit_to_widget()
        super().resizeEvent(event)

    # --- Mouse interaction ---

    def mousePressEvent(self, event: QMouseEvent):
        if self._pixmap is None or event.button() != Qt.MouseButton.LeftButton:
            return
        if self._window_rect().contains(event.position()):
            self._drag = (event.position(), self._pan)
            self.setCursor(Qt.CursorShape.ClosedHandCursor)

    def mouseMoveEvent(self, event: QMouseEvent):
        if self._pixmap is None:
            return
        pos = event.position()
        if self._drag is None:
            inside = self._window_rect().contains(pos)
            self.setCursor(Qt.CursorShape.OpenHandCursor if inside else Qt.CursorShape.ArrowCursor)
            return
        if not self._scale:
            return

        start, start_pan = self._drag
        img_w, img_h = self._img_size
        self._pan = (
            start_pan[0] + (pos.x() - start.x()) / self._scale / img_w,
            start_pan[1] + (pos.y() - start.y()) / self._scale / img_h,
        )
        self._apply_view(pan_moved=True)

    def mouseReleaseEvent(self, event: QMouseEvent):
        if event.button() == Qt.MouseButton.LeftButton and self._drag is not None:
            self._drag = None
            self.setCursor(Qt.CursorShape.OpenHandCursor)

    def wheelEvent(self, event: QWheelEvent):
        if self._pixmap is None:
            return
        steps = event.angleDelta().y() / 120
        if not steps:
            return
        zoom = clamp_zoom(round(self._zoom + steps * ZOOM_STEP, 2))
        if zoom != self._zoom:
            self._zoom = zoom
            self.zoom_changed.emit(zoom)
            self._apply_view()
        event.accept()

    # --- Keyboard nudge ---

    def keyPressEvent(self, event: QKeyEvent):
        direction = _NUDGE_KEYS.get(event.key())
        if self._pixmap is None or direction is None:
            super().keyPressEvent(event)
            return

        step = NUDGE_LARGE if event.modifiers() & Qt.KeyboardModifier.ShiftModifier else NUDGE_SMALL
        img_w, img_h = self._img_size
        self._pan = (
            self._pan[0] + direction[0] * step / img_w,
            self._pan[1] + direction[1] * step / img_h,
        )
        self._apply_view(pan_moved=True)
