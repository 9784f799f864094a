"""
Data models and crop-geometry utilities.

CropRect, CropState and RatioCropStates are the core data structures shared
by the crop editor and the export orchestrator.  ``RatioCropStates`` is a
fixed record with one field per entry of ``config.RATIOS`` so that "three
ratios, always present" holds by construction.  The helper functions handle
aspect-ratio math, pan/zoom to crop-rectangle conversion, and boundary
clamping.

The second half of the module holds the value types exchanged with the
text-analysis and image-search services.
"""

from dataclasses import dataclass, field
from enum import Enum

from cover_studio.config import RATIOS, ZOOM_MAX, ZOOM_MIN


# =============================================================================
# Crop data classes
# =============================================================================
@dataclass
class CropRect:
    """Crop rectangle in source-image pixel coordinates."""
    x: int = 0
    y: int = 0
    w: int = 0
    h: int = 0

    def as_box(self) -> tuple[int, int, int, int]:
        """Pillow-style (left, upper, right, lower) box."""
        return self.x, self.y, self.x + self.w, self.y + self.h


@dataclass(frozen=True)
class AspectRatioSpec:
    """One fixed export shape."""
    key: str
    label: str
    file_label: str
    ratio_w: int
    ratio_h: int

    @property
    def ratio(self) -> float:
        return self.ratio_w / self.ratio_h


ASPECT_RATIOS: tuple[AspectRatioSpec, ...] = tuple(
    AspectRatioSpec(
        key=r["key"], label=r["name"], file_label=r["file_label"],
        ratio_w=r["ratio_w"], ratio_h=r["ratio_h"],
    )
    for r in RATIOS
)
RATIO_KEYS: tuple[str, ...] = tuple(spec.key for spec in ASPECT_RATIOS)


def ratio_spec(key: str) -> AspectRatioSpec:
    """Look up a ratio by key; raises KeyError for unknown keys."""
    for spec in ASPECT_RATIOS:
        if spec.key == key:
            return spec
    raise KeyError(f"Unknown aspect ratio: {key!r}")


@dataclass
class CropState:
    """The user's current view into the source image for one ratio.

    ``pan`` is the offset of the crop centre from the image centre as a
    fraction of the image width/height.  ``crop`` stays ``None`` until the
    crop view has reported a rectangle.
    """
    pan: tuple[float, float] = (0.0, 0.0)
    zoom: float = ZOOM_MIN
    crop: CropRect | None = None

    def is_default(self) -> bool:
        return self.pan == (0.0, 0.0) and self.zoom == ZOOM_MIN and self.crop is None


@dataclass
class RatioCropStates:
    """Independent crop state for each of the three fixed ratios."""
    wide: CropState = field(default_factory=CropState)
    cinematic: CropState = field(default_factory=CropState)
    square: CropState = field(default_factory=CropState)

    def get(self, key: str) -> CropState:
        if key not in RATIO_KEYS:
            raise KeyError(f"Unknown aspect ratio: {key!r}")
        return getattr(self, key)

    def items(self) -> list[tuple[str, CropState]]:
        """(key, state) pairs in batch-export order."""
        return [(key, getattr(self, key)) for key in RATIO_KEYS]


# =============================================================================
# Crop math utilities
# =============================================================================
def clamp_zoom(zoom: float) -> float:
    return max(ZOOM_MIN, min(float(zoom), ZOOM_MAX))


def calculate_max_crop(img_w: int, img_h: int, ratio_w: int, ratio_h: int) -> tuple[int, int]:
    """Calculate the maximum crop dimensions for a given aspect ratio within an image."""
    aspect = ratio_w / ratio_h
    # Try full width
    crop_w = img_w
    crop_h = int(round(crop_w / aspect))
    if crop_h <= img_h:
        return crop_w, crop_h
    # Full height
    crop_h = img_h
    crop_w = int(round(crop_h * aspect))
    return min(crop_w, img_w), crop_h


def clamp_crop(crop: CropRect, img_w: int, img_h: int) -> CropRect:
    """Clamp crop rectangle to image bounds."""
    w = max(1, min(crop.w, img_w))
    h = max(1, min(crop.h, img_h))
    x = max(0, min(crop.x, img_w - w))
    y = max(0, min(crop.y, img_h - h))
    return CropRect(x, y, w, h)


def crop_for_view(
    img_w: int,
    img_h: int,
    spec: AspectRatioSpec,
    zoom: float,
    pan: tuple[float, float],
) -> tuple[CropRect, tuple[float, float]]:
    """
    Convert a pan/zoom view into a crop rectangle.

    At zoom 1 the crop is the largest rectangle of the ratio that fits the
    image; higher zoom shrinks it around the panned centre.  The rectangle
    is clamped inside the image and the pan actually achieved is returned
    alongside it.  The clamp works on the unrounded centre, so a pan that
    needs no clamping comes back unchanged.
    """
    zoom = clamp_zoom(zoom)
    max_w, max_h = calculate_max_crop(img_w, img_h, spec.ratio_w, spec.ratio_h)
    w = max(1, int(round(max_w / zoom)))
    h = max(1, int(round(max_h / zoom)))

    cx = img_w / 2 + pan[0] * img_w
    cy = img_h / 2 + pan[1] * img_h
    clamped_cx = min(max(cx, w / 2), img_w - w / 2)
    clamped_cy = min(max(cy, h / 2), img_h - h / 2)

    crop = clamp_crop(
        CropRect(int(round(clamped_cx - w / 2)), int(round(clamped_cy - h / 2)), w, h), img_w, img_h,
    )
    achieved = (
        pan[0] if clamped_cx == cx else (clamped_cx - img_w / 2) / img_w,
        pan[1] if clamped_cy == cy else (clamped_cy - img_h / 2) / img_h,
    )
    return crop, achieved


def crop_within(crop: CropRect, img_w: int, img_h: int) -> bool:
    """True if the rectangle lies fully inside a ``img_w`` × ``img_h`` image."""
    return (
        crop.w > 0 and crop.h > 0
        and crop.x >= 0 and crop.y >= 0
        and crop.x + crop.w <= img_w and crop.y + crop.h <= img_h
    )


# =============================================================================
# Content assistant value types
# =============================================================================
class Platform(str, Enum):
    VIDEO_ACCOUNT = "视频号"
    BILIBILI = "B站"
    TENCENT_VIDEO = "腾讯视频"
    TENCENT_NEWS = "腾讯新闻"
    WECHAT_MP = "公众号"
    XIAOHONGSHU = "小红书"
    ZHIHU = "知乎"


DEFAULT_PLATFORM = Platform.XIAOHONGSHU


class ImageSource(str, Enum):
    AI_GENERATION = "AI 文生图 (Gemini)"
    GOOGLE_SEARCH = "Google 图片搜索"
    STOCK_LIBRARY = "视觉中国 / Unsplash"


@dataclass
class TitleOption:
    text: str
    reason: str


@dataclass
class KeywordItem:
    cn: str  # platform tag
    en: str  # image-search term


@dataclass
class AnalysisResult:
    titles: list[TitleOption]
    keywords: list[KeywordItem]
    image_search_terms: list[str]


@dataclass
class ImageResult:
    id: str
    url: str
    source: ImageSource
