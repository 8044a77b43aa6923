"""
Tests for Settings
==================
Dotted lookups into app.yaml and the MINGKIT_CONFIG override.
"""

import sys
from pathlib import Path

import pytest

# Ensure repo root is on path
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import settings
from mingkit.engines.scorer import ScorerPolicy


@pytest.fixture
def custom_config(tmp_path, monkeypatch):
    path = tmp_path / "app.yaml"
    path.write_text("scorer:\n  weights: {chart: 1}\ncalendar:\n  default_hour: 12\n", encoding="utf-8")
    monkeypatch.setenv(settings.CONFIG_ENV_VAR, str(path))
    settings.load_app_config.cache_clear()
    yield path
    monkeypatch.delenv(settings.CONFIG_ENV_VAR)
    settings.load_app_config.cache_clear()


class TestGetSetting:
    def test_dotted_path(self):
        assert settings.get_setting("generator.score_floor") == 50
        assert settings.get_setting("scorer.weights.chart") == pytest.approx(0.30)

    def test_default_for_missing(self):
        assert settings.get_setting("no.such.key", "fallback") == "fallback"
        assert settings.get_setting("generator.score_floor.deeper") is None

    def test_require_setting(self):
        assert settings.require_setting("calendar.max_year") == 2100
        with pytest.raises(ValueError):
            settings.require_setting("no.such.key")

    def test_resolve_path(self, tmp_path):
        assert settings.resolve_path("mingkit") == settings.PROJECT_ROOT / "mingkit"
        assert settings.resolve_path(str(tmp_path)) == tmp_path


class TestOverride:
    def test_env_override(self, custom_config):
        assert settings.config_path() == custom_config
        assert settings.get_setting("calendar.default_hour") == 12
        assert settings.get_setting("generator.score_floor") is None

    def test_policy_reports_missing_settings(self, custom_config):
        with pytest.raises(ValueError, match="scorer"):
            ScorerPolicy()

    def test_missing_file(self, tmp_path, monkeypatch):
        monkeypatch.setenv(settings.CONFIG_ENV_VAR, str(tmp_path / "absent.yaml"))
        settings.load_app_config.cache_clear()
        try:
            with pytest.raises(FileNotFoundError):
                settings.load_app_config()
        finally:
            monkeypatch.delenv(settings.CONFIG_ENV_VAR)
            settings.load_app_config.cache_clear()
