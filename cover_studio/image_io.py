"""
Qt-free image I/O utilities.

Provides helpers to open a source image from any supported reference
(``http(s)`` URL, ``data:`` URI, or local file including PSD), build data
URIs for generated images, make thumbnails, and generate unique file paths.
Safe to import in worker threads.
"""

import base64
import io
import logging
import re
from pathlib import Path
from urllib.parse import unquote_to_bytes

import requests
from PIL import Image
from psd_tools import PSDImage

from cover_studio.config import HTTP_TIMEOUT, USER_AGENT

logger = logging.getLogger(__name__)

# Allow very large images (Pillow's default limit is ~178MP)
Image.MAX_IMAGE_PIXELS = None

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w/+.-]*)(?P<b64>;base64)?,(?P<payload>.*)$", re.DOTALL)


class SourceImageError(RuntimeError):
    """The source image could not be fetched or decoded."""


def short_ref(ref: str | None, limit: int = 80) -> str:
    """Shorten long references (data URIs) for log and status output."""
    if ref is None:
        return "<none>"
    return ref if len(ref) <= limit else ref[:limit] + "…"


def is_remote(ref: str) -> bool:
    return ref.startswith(("http://", "https://"))


# =============================================================================
# Data URIs
# =============================================================================
def decode_data_uri(uri: str) -> tuple[str, bytes]:
    """Split a ``data:`` URI into (mime type, raw bytes)."""
    match = _DATA_URI_RE.match(uri)
    if not match:
        raise ValueError("not a data URI")
    payload = match.group("payload")
    if match.group("b64"):
        data = base64.b64decode(payload, validate=True)
    else:
        data = unquote_to_bytes(payload)
    return match.group("mime") or "text/plain", data


def to_data_uri(data: bytes, mime_type: str = "image/png") -> str:
    """Embed raw image bytes as a base64 ``data:`` URI."""
    return f"data:{mime_type};base64,{base64.b64encode(data).decode('ascii')}"


# =============================================================================
# Loading
# =============================================================================
def fetch_bytes(url: str, session: requests.Session | None = None) -> bytes:
    """Download *url* anonymously (no cookies, no credentials)."""
    getter = session.get if session is not None else requests.get
    resp = getter(url, headers={"User-Agent": USER_AGENT}, timeout=HTTP_TIMEOUT)
    resp.raise_for_status()
    return resp.content


def _open_local(path: Path) -> Image.Image:
    """Open a local file, using psd-tools for PSD and Pillow for the rest."""
    if path.suffix.lower() == ".psd":
        psd = PSDImage.open(str(path))
        return psd.composite()
    return Image.open(path)


def load_source(ref: str, session: requests.Session | None = None) -> Image.Image:
    """
    Load and fully decode the image behind *ref*.

    Raises SourceImageError for every fetch or decode failure so callers can
    tell "image unusable" apart from their own preconditions.
    """
    try:
        if ref.startswith("data:"):
            _, data = decode_data_uri(ref)
            img = Image.open(io.BytesIO(data))
        elif is_remote(ref):
            img = Image.open(io.BytesIO(fetch_bytes(ref, session)))
        else:
            img = _open_local(Path(ref))
        img.load()
        logger.debug("Loaded %s (%dx%d)", short_ref(ref), img.width, img.height)
        return img
    except (requests.RequestException, OSError, ValueError) as exc:
        raise SourceImageError(f"Could not load image {short_ref(ref)}: {exc}") from exc


def make_thumbnail(ref: str, size: int, session: requests.Session | None = None) -> Image.Image:
    """Load *ref* and shrink it to fit a ``size`` × ``size`` box."""
    img = load_source(ref, session).convert("RGBA")
    img.thumbnail((size, size), Image.Resampling.LANCZOS)
    return img


# =============================================================================
# Output paths
# =============================================================================
def unique_path(out_path: Path) -> Path:
    """Return a unique path by appending -01, -02, etc. if file already exists."""
    if not out_path.exists():
        return out_path
    stem = out_path.stem
    suffix = out_path.suffix
    parent = out_path.parent
    counter = 1
    while True:
        candidate = parent / f"{stem}-{counter:02d}{suffix}"
        if not candidate.exists():
            return candidate
        counter += 1
