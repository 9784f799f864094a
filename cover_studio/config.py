"""
Application constants and configuration.

RATIOS defines the three fixed export shapes.  API keys are read from the
environment (a ``.env`` file in the working directory is honoured).  All
other constants control crop-editor behaviour, export timing, and the image
provider chain.

The ``config_dir()`` helper returns the platform-appropriate config
directory and is shared by the persistence modules (settings).
"""

import os
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

# =============================================================================
# APP IDENTITY & CONFIG DIRECTORY
# =============================================================================
APP_NAME = "cover-studio"
APP_TITLE = "Cover Studio"


class ConfigurationError(RuntimeError):
    """Raised when a required setting (usually an API key) is missing."""


def config_dir() -> Path:
    """Return the platform-appropriate config directory, creating it if needed."""
    if sys.platform == "win32":
        base = Path(os.environ.get("APPDATA", Path.home() / "AppData" / "Roaming"))
    elif sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    directory = base / APP_NAME
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def default_export_dir() -> Path:
    """Folder exports land in until the user picks another one."""
    return Path.home() / "Pictures" / APP_TITLE


# =============================================================================
# RATIOS: fixed for the lifetime of the app (order is the batch-export order)
# =============================================================================
RATIOS = [
    {"key": "wide", "name": "16:9", "file_label": "16-9", "ratio_w": 16, "ratio_h": 9},
    {"key": "cinematic", "name": "2.35:1", "file_label": "2.35-1", "ratio_w": 235, "ratio_h": 100},
    {"key": "square", "name": "1:1", "file_label": "1-1", "ratio_w": 1, "ratio_h": 1},
]

# Zoom slider bounds
ZOOM_MIN = 1.0
ZOOM_MAX = 3.0
ZOOM_STEP = 0.1

# Nudge amounts (pixels in image coordinates)
NUDGE_SMALL = 1
NUDGE_LARGE = 10

# Pause between consecutive batch exports (ms)
BATCH_EXPORT_DELAY_MS = 500

# PNG compression level (0-9, 9 = maximum compression)
PNG_COMPRESS_LEVEL = 9

# Export filename: cover-<file_label>-<unix ms>.png
EXPORT_FILENAME_TEMPLATE = "cover-{label}-{timestamp}.png"

# Supported local source extensions
IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".bmp", ".tiff", ".tif", ".webp", ".psd"}

# =============================================================================
# HTTP
# =============================================================================
USER_AGENT = f"{APP_NAME}/1.0"
HTTP_TIMEOUT = 25  # seconds
THUMBNAIL_SIZE = 160

# =============================================================================
# GENERATIVE AI (Gemini)
# =============================================================================
TEXT_MODEL = "gemini-2.5-flash"
IMAGE_MODEL = "gemini-2.5-flash-image"
ANALYSIS_TEMPERATURE = 0.7
AI_IMAGE_COUNT = 3

TITLE_COUNT = 3
KEYWORD_COUNT = 10
SEARCH_TERM_COUNT = 5
REASON_MAX_CHARS = 60
PRESELECTED_KEYWORDS = 3

# =============================================================================
# STOCK SEARCH PROVIDERS
# =============================================================================
UNSPLASH_SEARCH_URL = "https://api.unsplash.com/search/photos"
PIXABAY_SEARCH_URL = "https://pixabay.com/api/"
PLACEHOLDER_URL_TEMPLATE = "https://loremflickr.com/1280/720/{keyword}?lock={lock}"

UNSPLASH_PER_PAGE = 4
STOCK_TARGET_RESULTS = 5
PIXABAY_MIN_PER_PAGE = 3
PLACEHOLDER_COUNT = 4
# Placeholder seeds shift by page so "refresh" yields new pictures
PLACEHOLDER_PAGE_STRIDE = 10
# Number of search terms joined into one stock query
STOCK_QUERY_TERMS = 2


# =============================================================================
# API keys
# =============================================================================
def gemini_api_key() -> str:
    """Return the Gemini key or raise ConfigurationError."""
    key = os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")
    if not key:
        raise ConfigurationError(
            "API Key is missing. Set GEMINI_API_KEY in the environment or a .env file."
        )
    return key


def unsplash_access_key() -> str | None:
    return os.environ.get("UNSPLASH_ACCESS_KEY") or None


def pixabay_api_key() -> str | None:
    return os.environ.get("PIXABAY_API_KEY") or None
