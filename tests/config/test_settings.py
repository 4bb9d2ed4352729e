"""Tests for configuration loading."""

import pytest
import yaml
from infraweave.config import load_settings, save_config
from infraweave.utils.errors import ConfigError


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Empty home and working directory, no INFRAWEAVE_* variables."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    for name in ("INFRAWEAVE_CONFIG_HOME", "INFRAWEAVE_MAX_WORKERS", "INFRAWEAVE_STATE_PATH", "INFRAWEAVE_PROVIDER",
                 "INFRAWEAVE_PROVIDER_PATH", "INFRAWEAVE_PROVIDER_URL", "INFRAWEAVE_PROVIDER_TOKEN",
                 "INFRAWEAVE_RETRY_MAX_ATTEMPTS"):
        monkeypatch.delenv(name, raising=False)
    return home, work


def write_yaml(path, data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(data), encoding="utf-8")


class TestLoadSettings:
    """Test tiered settings."""

    def test_packaged_defaults(self, isolated):
        settings = load_settings()

        assert settings.max_workers == 4
        assert settings.retry.max_attempts == 5
        assert settings.state.path == ".infraweave/state.json"
        assert settings.provider.name == "memory"

    def test_project_overrides_user(self, isolated):
        home, work = isolated
        write_yaml(home / ".infraweave" / "config.yaml", {"max_workers": 2, "retry": {"max_attempts": 7}})
        write_yaml(work / ".infraweave" / "config.yaml", {"max_workers": 8})

        settings = load_settings()

        assert settings.max_workers == 8
        assert settings.retry.max_attempts == 7
        assert settings.retry.backoff_base == 0.5

    def test_environment_and_overrides(self, isolated, monkeypatch):
        monkeypatch.setenv("INFRAWEAVE_MAX_WORKERS", "6")
        monkeypatch.setenv("INFRAWEAVE_PROVIDER_URL", "http://svc")

        settings = load_settings(overrides={"max_workers": 1, "provider": {"name": "http"}})

        assert settings.max_workers == 1
        assert settings.provider.name == "http"
        assert settings.provider.base_url == "http://svc"

    def test_explicit_config_file(self, isolated, tmp_path):
        path = tmp_path / "engine.yaml"
        write_yaml(path, {"state": {"path": "/tmp/elsewhere.json"}})

        assert load_settings(str(path)).state.path == "/tmp/elsewhere.json"

    def test_missing_explicit_config(self, isolated, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_settings(str(tmp_path / "absent.yaml"))

    def test_invalid_value(self, isolated):
        with pytest.raises(ConfigError, match="Invalid configuration"):
            load_settings(overrides={"max_workers": 0})

    def test_save_config_round_trip(self, isolated, tmp_path):
        path = tmp_path / "saved" / "config.yaml"

        save_config({"max_workers": 3}, path)

        assert load_settings(str(path)).max_workers == 3
