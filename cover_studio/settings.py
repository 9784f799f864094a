"""
Settings persistence: load, save, and validate user settings.

Settings are stored in a JSON file in the user's config directory (provided
by ``config.config_dir()``).  On first launch, or if the file is missing or
corrupt, defaults are written and returned.  This module is Qt-free.

The on-disk format uses a versioned envelope::

    {"version": 1, "settings": {"export_dir": "...", "platform": "小红书",
                                "image_source": "AI 文生图 (Gemini)"}}
"""

import json
import logging
from pathlib import Path

from cover_studio.config import config_dir, default_export_dir
from cover_studio.models import DEFAULT_PLATFORM, ImageSource, Platform

logger = logging.getLogger(__name__)

_SETTINGS_FILENAME = "settings.json"
_FORMAT_VERSION = 1

_REQUIRED_KEYS = {"export_dir", "platform", "image_source"}


def default_settings() -> dict:
    return {
        "export_dir": str(default_export_dir()),
        "platform": DEFAULT_PLATFORM.value,
        "image_source": ImageSource.AI_GENERATION.value,
    }


def _settings_path() -> Path:
    """Return the full path to settings.json."""
    return config_dir() / _SETTINGS_FILENAME


# =============================================================================
# Validation
# =============================================================================
def validate_settings(data: object) -> list[str]:
    """
    Validate a settings dict.

    Returns a list of error strings (empty means valid).
    """
    if not isinstance(data, dict):
        return ["Settings must be a dict"]

    errors: list[str] = []
    missing = _REQUIRED_KEYS - data.keys()
    if missing:
        errors.append(f"missing keys: {', '.join(sorted(missing))}")
        return errors

    export_dir = data["export_dir"]
    if not isinstance(export_dir, str) or not export_dir.strip():
        errors.append("export_dir must be a non-empty string")

    if data["platform"] not in {p.value for p in Platform}:
        errors.append(f"unknown platform {data['platform']!r}")

    if data["image_source"] not in {s.value for s in ImageSource}:
        errors.append(f"unknown image_source {data['image_source']!r}")

    return errors


# =============================================================================
# Load / Save
# =============================================================================
def load_settings() -> dict:
    """
    Load settings from settings.json.

    If the file is missing, corrupt, or fails validation, writes the
    defaults and returns them.
    """
    path = _settings_path()

    if not path.exists():
        logger.info("settings.json not found — creating with defaults at %s", path)
        return _write_defaults(path)

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read settings.json (%s) — restoring defaults", exc)
        return _write_defaults(path)

    if not isinstance(raw, dict) or raw.get("version") != _FORMAT_VERSION or "settings" not in raw:
        logger.warning("settings.json missing version envelope — restoring defaults")
        return _write_defaults(path)

    data = raw["settings"]
    errors = validate_settings(data)
    if errors:
        logger.warning(
            "settings.json validation failed:\n  %s\nRestoring defaults.",
            "\n  ".join(errors),
        )
        return _write_defaults(path)

    return data


def save_settings(settings: dict) -> None:
    """
    Validate and write settings to settings.json in versioned envelope.

    Raises ValueError if validation fails.
    Raises OSError if the file cannot be written.
    """
    errors = validate_settings(settings)
    if errors:
        raise ValueError("Invalid settings:\n  " + "\n  ".join(errors))

    envelope = {"version": _FORMAT_VERSION, "settings": settings}
    path = _settings_path()
    path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    logger.debug("Saved settings to %s", path)


def _write_defaults(path: Path) -> dict:
    """Write the default settings to *path* and return them."""
    defaults = default_settings()
    try:
        envelope = {"version": _FORMAT_VERSION, "settings": defaults}
        path.write_text(json.dumps(envelope, indent=2, ensure_ascii=False), encoding="utf-8")
    except OSError as exc:
        logger.error("Could not write default settings to %s: %s", path, exc)
    return defaults
