"""Tests for settings persistence."""

import json

import pytest

from cover_studio.models import ImageSource, Platform
from cover_studio.settings import default_settings, load_settings, save_settings, validate_settings


class TestLoadSettings:
    def test_missing_file_writes_defaults(self, config_home):
        settings = load_settings()
        assert settings == default_settings()
        stored = json.loads((config_home / "settings.json").read_text(encoding="utf-8"))
        assert stored == {"version": 1, "settings": default_settings()}

    @pytest.mark.parametrize("content", [
        "{not json",
        json.dumps({"export_dir": "/tmp"}),
        json.dumps({"version": 99, "settings": {}}),
        json.dumps({"version": 1, "settings": {"export_dir": "/tmp", "platform": "MySpace", "image_source": "x"}}),
    ])
    def test_bad_file_falls_back_to_defaults(self, config_home, content):
        (config_home / "settings.json").write_text(content, encoding="utf-8")
        assert load_settings() == default_settings()

    def test_saved_settings_are_loaded(self, config_home, tmp_path):
        settings = {
            "export_dir": str(tmp_path / "covers"),
            "platform": Platform.BILIBILI.value,
            "image_source": ImageSource.STOCK_LIBRARY.value,
        }
        save_settings(settings)
        assert load_settings() == settings


class TestValidateSettings:
    def test_defaults_are_valid(self):
        assert validate_settings(default_settings()) == []

    def test_reports_each_problem(self):
        errors = validate_settings({"export_dir": " ", "platform": "?", "image_source": "?"})
        assert len(errors) == 3

    def test_save_rejects_invalid(self, config_home):
        with pytest.raises(ValueError):
            save_settings({"export_dir": ""})
        assert not (config_home / "settings.json").exists()
