import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PIL import Image

from cover_studio.crop_state import CropStateManager
from cover_studio.models import CropRect


@pytest.fixture
def sample_image():
    """400×300 image with four differently coloured quadrants."""
    img = Image.new("RGB", (400, 300), color=(255, 255, 255))
    img.paste((255, 0, 0), (0, 0, 200, 150))
    img.paste((0, 255, 0), (200, 0, 400, 150))
    img.paste((0, 0, 255), (0, 150, 200, 300))
    return img


@pytest.fixture
def source_file(tmp_path, sample_image):
    """Path (as a source reference string) of the sample image on disk."""
    path = tmp_path / "source.png"
    sample_image.save(path)
    return str(path)


@pytest.fixture
def config_home(tmp_path, monkeypatch):
    """Redirect settings persistence into a temporary directory."""
    directory = tmp_path / "config"
    directory.mkdir()
    monkeypatch.setattr("cover_studio.settings.config_dir", lambda: directory)
    return directory


@pytest.fixture
def states(source_file):
    """Crop states for the sample image with a rectangle on every ratio."""
    manager = CropStateManager()
    manager.reset(source_file)
    manager.set_crop_rect("wide", CropRect(0, 38, 400, 225))
    manager.set_crop_rect("cinematic", CropRect(0, 65, 400, 170))
    manager.set_crop_rect("square", CropRect(50, 0, 300, 300))
    return manager
