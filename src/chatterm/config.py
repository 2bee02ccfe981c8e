"""Configuration loader: YAML file with environment variable fallbacks."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

_DEFAULT_BASE_URL = "https://api.openai.com/v1"
_DEFAULT_MODEL = "gpt-3.5-turbo"
_FALSE_VALUES = ("false", "0", "no", "off")


@dataclass
class AIConfig:
    api_key: str
    base_url: str = _DEFAULT_BASE_URL
    organization_id: str = ""
    model: str = _DEFAULT_MODEL
    temperature: float | None = None
    system_prompt: str = ""
    request_timeout: int = 120  # seconds; per-chunk read timeout
    connect_timeout: int = 10
    verify_ssl: bool = True


@dataclass
class AppSettings:
    highlight: bool = True
    light_theme: bool = False
    save: bool = False  # append every exchange to {data_dir}/messages.md
    data_dir: Path = field(default_factory=lambda: Path.home() / ".chatterm")

    @property
    def messages_path(self) -> Path:
        return self.data_dir / "messages.md"

    @property
    def history_path(self) -> Path:
        return self.data_dir / "history"


@dataclass
class AppConfig:
    ai: AIConfig
    app: AppSettings = field(default_factory=AppSettings)
    config_path: Path | None = None

    def info(self) -> str:
        """Human-readable summary of the effective settings (API key masked)."""
        temperature = "-" if self.ai.temperature is None else str(self.ai.temperature)
        rows = [
            ("config_file", str(self.config_path or "-")),
            ("base_url", self.ai.base_url),
            ("api_key", _mask(self.ai.api_key)),
            ("organization_id", self.ai.organization_id or "-"),
            ("model", self.ai.model),
            ("temperature", temperature),
            ("system_prompt", self.ai.system_prompt or "-"),
            ("highlight", str(self.app.highlight).lower()),
            ("light_theme", str(self.app.light_theme).lower()),
            ("save", str(self.app.save).lower()),
            ("messages_file", str(self.app.messages_path)),
        ]
        width = max(len(name) for name, _ in rows)
        return "\n".join(f"{name.ljust(width)}  {value}" for name, value in rows)

    def update(self, key: str, value: str) -> str:
        """Change a runtime setting from REPL input and return a confirmation line."""
        value = value.strip()
        if key == "model":
            if not value:
                raise ValueError("Model name cannot be empty")
            self.ai.model = value
            return f"model set to {value}"
        if key == "temperature":
            self.ai.temperature = _parse_temperature(value)
            return f"temperature set to {'-' if self.ai.temperature is None else self.ai.temperature}"
        if key in ("highlight", "light_theme", "save"):
            flag = _parse_bool_strict(value)
            setattr(self.app, key, flag)
            return f"{key} set to {str(flag).lower()}"
        raise ValueError(f"Unknown setting: {key} (expected model, temperature, highlight, light_theme, save)")


def _mask(secret: str) -> str:
    if len(secret) <= 8:
        return "***"
    return f"{secret[:3]}...{secret[-4:]}"


def _parse_bool(raw: Any, default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return str(raw).lower() not in _FALSE_VALUES


def _parse_bool_strict(raw: str) -> bool:
    lowered = raw.lower()
    if lowered in ("true", "1", "yes", "on"):
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Expected true or false, got {raw!r}")


def _parse_temperature(raw: Any) -> float | None:
    if raw is None or str(raw).lower() in ("", "null", "none", "-"):
        return None
    try:
        temperature = float(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Temperature must be a number, got {raw!r}") from None
    if not 0.0 <= temperature <= 2.0:
        raise ValueError(f"Temperature must be between 0 and 2, got {temperature}")
    return temperature


def _resolve_data_dir() -> Path:
    env_dir = os.environ.get("CHATTERM_CONFIG_DIR")
    if env_dir:
        return Path(os.path.expanduser(env_dir))
    return Path.home() / ".chatterm"


def _get_config_path(data_dir: Path | None = None) -> Path:
    if data_dir:
        return data_dir / "config.yaml"
    return _resolve_data_dir() / "config.yaml"


def _env(*names: str, default: str = "") -> str:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return default


def load_config(config_path: Path | None = None) -> AppConfig:
    raw: dict[str, Any] = {}
    path = config_path or _get_config_path()

    if path.exists():
        with open(path) as f:
            raw = yaml.safe_load(f) or {}

    ai_raw = raw.get("ai") or {}
    api_key = ai_raw.get("api_key") or _env("CHATTERM_API_KEY", "OPENAI_API_KEY")
    if not api_key:
        raise ValueError(
            f"AI api_key is required. Set 'ai.api_key' in config.yaml ({path}) "
            "or the CHATTERM_API_KEY / OPENAI_API_KEY environment variable."
        )
    base_url = ai_raw.get("base_url") or _env("CHATTERM_API_BASE", "OPENAI_API_BASE", default=_DEFAULT_BASE_URL)
    organization_id = ai_raw.get("organization_id") or _env("CHATTERM_ORGANIZATION_ID")
    model = ai_raw.get("model") or _env("CHATTERM_MODEL", default=_DEFAULT_MODEL)
    system_prompt = ai_raw.get("system_prompt") or _env("CHATTERM_SYSTEM_PROMPT")
    temperature = _parse_temperature(ai_raw.get("temperature", os.environ.get("CHATTERM_TEMPERATURE")))

    verify_ssl = _parse_bool(ai_raw.get("verify_ssl", os.environ.get("CHATTERM_VERIFY_SSL")), True)
    try:
        _raw_timeout = ai_raw.get("request_timeout", os.environ.get("CHATTERM_REQUEST_TIMEOUT", 120))
        request_timeout = max(10, min(600, int(_raw_timeout)))
    except (ValueError, TypeError):
        request_timeout = 120
    try:
        connect_timeout = max(1, int(ai_raw.get("connect_timeout", 10)))
    except (ValueError, TypeError):
        connect_timeout = 10

    ai = AIConfig(
        api_key=str(api_key),
        base_url=str(base_url).rstrip("/"),
        organization_id=str(organization_id),
        model=str(model),
        temperature=temperature,
        system_prompt=str(system_prompt),
        request_timeout=request_timeout,
        connect_timeout=connect_timeout,
        verify_ssl=verify_ssl,
    )

    app_raw = raw.get("app") or {}
    default_data_dir = str(path.parent if config_path else _resolve_data_dir())
    data_dir = Path(os.path.expanduser(app_raw.get("data_dir", default_data_dir)))

    app_settings = AppSettings(
        highlight=_parse_bool(app_raw.get("highlight", os.environ.get("CHATTERM_HIGHLIGHT")), True),
        light_theme=_parse_bool(app_raw.get("light_theme", os.environ.get("CHATTERM_LIGHT_THEME")), False),
        save=_parse_bool(app_raw.get("save", os.environ.get("CHATTERM_SAVE")), False),
        data_dir=data_dir,
    )

    return AppConfig(ai=ai, app=app_settings, config_path=path)
