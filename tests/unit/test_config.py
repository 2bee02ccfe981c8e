"""Tests for configuration loading and runtime updates."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from chatterm.config import AIConfig, AppConfig, AppSettings, load_config

_ENV_VARS = [
    "CHATTERM_API_KEY",
    "OPENAI_API_KEY",
    "CHATTERM_API_BASE",
    "OPENAI_API_BASE",
    "CHATTERM_ORGANIZATION_ID",
    "CHATTERM_MODEL",
    "CHATTERM_TEMPERATURE",
    "CHATTERM_SYSTEM_PROMPT",
    "CHATTERM_VERIFY_SSL",
    "CHATTERM_REQUEST_TIMEOUT",
    "CHATTERM_HIGHLIGHT",
    "CHATTERM_LIGHT_THEME",
    "CHATTERM_SAVE",
    "CHATTERM_CONFIG_DIR",
]


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def _write_config(path: Path, data: dict) -> Path:
    config_file = path / "config.yaml"
    config_file.write_text(yaml.dump(data))
    return config_file


class TestLoadConfig:
    def test_load_valid_config(self, tmp_path: Path) -> None:
        cfg_file = _write_config(
            tmp_path,
            {
                "ai": {
                    "base_url": "https://api.example.com/v1/",
                    "api_key": "sk-test-key",
                    "organization_id": "org-1",
                    "model": "gpt-4o",
                    "temperature": 0.5,
                    "system_prompt": "Be concise.",
                },
                "app": {
                    "highlight": False,
                    "light_theme": True,
                    "save": True,
                    "data_dir": str(tmp_path / "data"),
                },
            },
        )
        config = load_config(cfg_file)
        assert isinstance(config, AppConfig)
        assert config.ai.base_url == "https://api.example.com/v1"
        assert config.ai.api_key == "sk-test-key"
        assert config.ai.organization_id == "org-1"
        assert config.ai.model == "gpt-4o"
        assert config.ai.temperature == 0.5
        assert config.ai.system_prompt == "Be concise."
        assert config.app.highlight is False
        assert config.app.light_theme is True
        assert config.app.save is True
        assert config.app.messages_path == tmp_path / "data" / "messages.md"
        assert config.config_path == cfg_file

    def test_defaults(self, tmp_path: Path) -> None:
        config = load_config(_write_config(tmp_path, {"ai": {"api_key": "sk-x"}}))
        assert config.ai.base_url == "https://api.openai.com/v1"
        assert config.ai.model == "gpt-3.5-turbo"
        assert config.ai.temperature is None
        assert config.ai.request_timeout == 120
        assert config.ai.verify_ssl is True
        assert config.app.highlight is True
        assert config.app.save is False
        assert config.app.data_dir == tmp_path

    def test_raises_when_api_key_missing(self, tmp_path: Path) -> None:
        cfg_file = _write_config(tmp_path, {"ai": {"model": "gpt-4o"}})
        with pytest.raises(ValueError, match="api_key is required"):
            load_config(cfg_file)

    def test_missing_file_uses_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-env")
        monkeypatch.setenv("OPENAI_API_BASE", "http://localhost:8000/v1")
        config = load_config(tmp_path / "absent.yaml")
        assert config.ai.api_key == "sk-env"
        assert config.ai.base_url == "http://localhost:8000/v1"

    def test_chatterm_env_wins_over_openai_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OPENAI_API_KEY", "sk-openai")
        monkeypatch.setenv("CHATTERM_API_KEY", "sk-chatterm")
        config = load_config(tmp_path / "absent.yaml")
        assert config.ai.api_key == "sk-chatterm"

    def test_file_wins_over_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHATTERM_MODEL", "env-model")
        config = load_config(_write_config(tmp_path, {"ai": {"api_key": "sk-x", "model": "file-model"}}))
        assert config.ai.model == "file-model"

    def test_config_dir_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHATTERM_CONFIG_DIR", str(tmp_path))
        _write_config(tmp_path, {"ai": {"api_key": "sk-dir"}})
        config = load_config()
        assert config.ai.api_key == "sk-dir"
        assert config.app.data_dir == tmp_path

    @pytest.mark.parametrize("raw", ["false", "0", "no", "off", "False"])
    def test_boolean_false_spellings(self, tmp_path: Path, raw: str) -> None:
        cfg_file = _write_config(tmp_path, {"ai": {"api_key": "sk-x", "verify_ssl": raw}, "app": {"highlight": raw}})
        config = load_config(cfg_file)
        assert config.ai.verify_ssl is False
        assert config.app.highlight is False

    def test_request_timeout_clamped(self, tmp_path: Path) -> None:
        low = load_config(_write_config(tmp_path, {"ai": {"api_key": "sk-x", "request_timeout": 1}}))
        assert low.ai.request_timeout == 10
        high = load_config(_write_config(tmp_path, {"ai": {"api_key": "sk-x", "request_timeout": 10_000}}))
        assert high.ai.request_timeout == 600

    def test_invalid_timeout_falls_back(self, tmp_path: Path) -> None:
        config = load_config(_write_config(tmp_path, {"ai": {"api_key": "sk-x", "request_timeout": "soon"}}))
        assert config.ai.request_timeout == 120

    def test_temperature_out_of_range(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="between 0 and 2"):
            load_config(_write_config(tmp_path, {"ai": {"api_key": "sk-x", "temperature": 3}}))

    def test_empty_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CHATTERM_API_KEY", "sk-x")
        cfg_file = tmp_path / "config.yaml"
        cfg_file.write_text("")
        assert load_config(cfg_file).ai.api_key == "sk-x"


def _config(tmp_path: Path) -> AppConfig:
    return AppConfig(ai=AIConfig(api_key="sk-abcdefghijkl"), app=AppSettings(data_dir=tmp_path))


class TestInfo:
    def test_masks_api_key(self, tmp_path: Path) -> None:
        info = _config(tmp_path).info()
        assert "sk-abcdefghijkl" not in info
        assert "sk-...ijkl" in info
        assert "gpt-3.5-turbo" in info

    def test_short_key_fully_masked(self, tmp_path: Path) -> None:
        config = _config(tmp_path)
        config.ai.api_key = "qx7"
        info = config.info()
        row = next(line for line in info.splitlines() if line.startswith("api_key"))
        assert row.split()[-1] == "***"
        assert "qx7" not in info


class TestUpdate:
    def test_model(self, tmp_path: Path) -> None:
        config = _config(tmp_path)
        assert config.update("model", "gpt-4o") == "model set to gpt-4o"
        assert config.ai.model == "gpt-4o"

    def test_temperature_and_clear(self, tmp_path: Path) -> None:
        config = _config(tmp_path)
        config.update("temperature", "0.7")
        assert config.ai.temperature == 0.7
        config.update("temperature", "null")
        assert config.ai.temperature is None

    def test_bad_temperature(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError):
            _config(tmp_path).update("temperature", "hot")

    @pytest.mark.parametrize("key", ["highlight", "light_theme", "save"])
    def test_boolean_settings(self, tmp_path: Path, key: str) -> None:
        config = _config(tmp_path)
        config.update(key, "on")
        assert getattr(config.app, key) is True
        config.update(key, "false")
        assert getattr(config.app, key) is False

    def test_boolean_rejects_garbage(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="true or false"):
            _config(tmp_path).update("save", "maybe")

    def test_unknown_key(self, tmp_path: Path) -> None:
        with pytest.raises(ValueError, match="Unknown setting"):
            _config(tmp_path).update("color", "blue")
