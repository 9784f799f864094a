"""
Crop rasterization (Qt-free).

Turns a source reference plus a crop rectangle into PNG bytes.  This is a
pure crop: the output is exactly ``crop.w`` × ``crop.h`` pixels and nothing
is resized.  Every failure is logged and reported as ``None`` rather than
raised, so export callers only have to decide whether to tell the user.

Safe to import in worker threads.
"""

import io
import logging
from typing import Callable

from PIL import Image

from cover_studio.config import PNG_COMPRESS_LEVEL
from cover_studio.image_io import SourceImageError, load_source, short_ref
from cover_studio.models import CropRect, crop_within

logger = logging.getLogger(__name__)


def render_crop(img: Image.Image, crop: CropRect) -> Image.Image:
    """Copy ``crop`` out of *img* onto a fresh transparent surface at (0, 0)."""
    if crop.w <= 0 or crop.h <= 0:
        raise ValueError(f"invalid crop size {crop.w}x{crop.h}")
    surface = Image.new("RGBA", (crop.w, crop.h), (0, 0, 0, 0))
    # Areas of the box outside the source come back transparent
    region = img.convert("RGBA").crop(crop.as_box())
    surface.paste(region, (0, 0))
    return surface


def encode_png(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, "PNG", compress_level=PNG_COMPRESS_LEVEL)
    return buf.getvalue()


def rasterize(
    source: str,
    crop: CropRect,
    loader: Callable[[str], Image.Image] = load_source,
) -> bytes | None:
    """
    Load *source*, crop it, and encode the result as PNG.

    Returns the PNG bytes, or None if decoding, surface allocation or
    encoding failed.
    """
    try:
        img = loader(source)
    except SourceImageError as exc:
        logger.error("Source decode failed: %s", exc)
        return None

    if not crop_within(crop, img.width, img.height):
        logger.debug("Crop %s extends past %dx%d source; outside area stays transparent", crop, img.width, img.height)

    try:
        surface = render_crop(img, crop)
    except (MemoryError, ValueError) as exc:
        logger.error("Could not allocate %dx%d surface for %s: %s", crop.w, crop.h, short_ref(source), exc)
        return None

    try:
        data = encode_png(surface)
    except (OSError, ValueError) as exc:
        logger.error("PNG encoding failed for %s: %s", short_ref(source), exc)
        return None

    logger.debug("Rasterized %dx%d crop at (%d, %d) -> %d bytes", crop.w, crop.h, crop.x, crop.y, len(data))
    return data
