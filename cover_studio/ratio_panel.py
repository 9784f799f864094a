"""
One ratio's card in the export editor: label, download button, crop view
and zoom slider.  The panel forwards every pan / zoom / crop change of its
own crop view into the shared ``CropStateManager`` under its ratio key and
never touches the other ratios.
"""

from PyQt6.QtWidgets import QFrame, QHBoxLayout, QLabel, QPushButton, QSlider, QVBoxLayout
from PyQt6.QtCore import Qt, pyqtSignal
from PyQt6.QtGui import QPixmap

from cover_studio.config import ZOOM_MAX, ZOOM_MIN, ZOOM_STEP
from cover_studio.crop_state import CropStateManager
from cover_studio.crop_widget import CropViewWidget
from cover_studio.models import AspectRatioSpec, CropRect

# Slider works in integer steps of ZOOM_STEP
_SLIDER_SCALE = round(1 / ZOOM_STEP)


class RatioPanel(QFrame):
    download_requested = pyqtSignal(str)  # ratio key

    def __init__(self, spec: AspectRatioSpec, states: CropStateManager, parent=None):
        super().__init__(parent)
        self._spec = spec
        self._states = states
        self.setFrameShape(QFrame.Shape.StyledPanel)

        layout = QVBoxLayout(self)
        layout.setContentsMargins(6, 6, 6, 6)

        header = QHBoxLayout()
        self._label = QLabel(spec.label)
        self._label.setStyleSheet("font-weight: bold;")
        header.addWidget(self._label)
        header.addStretch()
        self._download_btn = QPushButton("⬇")
        self._download_btn.setToolTip(f"Download {spec.label}")
        self._download_btn.setFixedWidth(32)
        self._download_btn.clicked.connect(lambda: self.download_requested.emit(self._spec.key))
        header.addWidget(self._download_btn)
        layout.addLayout(header)

        self._crop_view = CropViewWidget(spec)
        self._crop_view.pan_changed.connect(self._on_pan_changed)
        self._crop_view.zoom_changed.connect(self._on_view_zoom_changed)
        self._crop_view.crop_complete.connect(self._on_crop_complete)
        layout.addWidget(self._crop_view, stretch=1)

        zoom_row = QHBoxLayout()
        zoom_row.addWidget(QLabel("🔍"))
        self._zoom_slider = QSlider(Qt.Orientation.Horizontal)
        self._zoom_slider.setRange(round(ZOOM_MIN * _SLIDER_SCALE), round(ZOOM_MAX * _SLIDER_SCALE))
        self._zoom_slider.setSingleStep(1)
        self._zoom_slider.setValue(round(ZOOM_MIN * _SLIDER_SCALE))
        self._zoom_slider.valueChanged.connect(self._on_slider_changed)
        zoom_row.addWidget(self._zoom_slider, stretch=1)
        layout.addLayout(zoom_row)

    @property
    def key(self) -> str:
        return self._spec.key

    @property
    def crop_view(self) -> CropViewWidget:
        return self._crop_view

    @property
    def zoom_slider(self) -> QSlider:
        return self._zoom_slider

    # --- Image lifecycle ---

    def set_loading(self, loading: bool):
        self._crop_view.set_loading(loading)

    def clear(self):
        self._crop_view.clear()
        self._set_slider(ZOOM_MIN)

    def set_image(self, pixmap: QPixmap, img_w: int, img_h: int):
        """Show a new image using this ratio's stored view."""
        state = self._states.state(self.key)
        self._set_slider(state.zoom)
        self._crop_view.set_view(state.pan, state.zoom)
        self._crop_view.set_image(pixmap, img_w, img_h)

    def set_download_enabled(self, enabled: bool):
        self._download_btn.setEnabled(enabled)

    # --- Signal handlers ---

    def _on_pan_changed(self, x: float, y: float):
        self._states.set_pan(self.key, (x, y))

    def _on_view_zoom_changed(self, zoom: float):
        applied = self._states.set_zoom(self.key, zoom)
        self._set_slider(applied)

    def _on_slider_changed(self, value: int):
        applied = self._states.set_zoom(self.key, value / _SLIDER_SCALE)
        self._crop_view.set_view(self._states.state(self.key).pan, applied)

    def _on_crop_complete(self, crop: CropRect):
        self._states.set_crop_rect(self.key, crop)

    def _set_slider(self, zoom: float):
        self._zoom_slider.blockSignals(True)
        self._zoom_slider.setValue(round(zoom * _SLIDER_SCALE))
        self._zoom_slider.blockSignals(False)
