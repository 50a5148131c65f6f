"""Global configuration using Pydantic settings."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .data.languages import supported_codes


class Settings(BaseSettings):
    """Application wide settings loaded from ``IVOICE_*`` environment variables."""

    database_path: Path = Field(default_factory=lambda: Path("ivoice.db"))
    log_level: str = "INFO"
    sample_rate: int = 16_000
    channels: int = 1
    block_size: int = 1024
    default_mic_device: Optional[str] = None
    default_sensitivity: float = 1.0
    min_sensitivity: float = 0.1
    max_sensitivity: float = 3.0
    volume: float = Field(default=1.0, ge=0.0, le=1.0)
    daily_free_quota: int = Field(default=3, ge=0)
    history_limit: int = Field(default=50, gt=0)
    mother_language: str = "en"
    target_language: str = "id"
    premium: bool = False
    translation_backend: str = "openai"
    speech_backend: str = "pyttsx3"
    openai_api_key: Optional[str] = None
    openai_translation_model: str = "gpt-4o-mini"
    openai_transcription_model: str = "gpt-4o-mini-transcribe"
    connectivity_probe_host: str = "1.1.1.1"
    connectivity_probe_port: int = 53
    connectivity_probe_timeout: float = 1.5

    model_config = SettingsConfigDict(
        env_prefix="IVOICE_",
        env_file=".env",
        case_sensitive=False,
    )

    @field_validator("mother_language", "target_language")
    @classmethod
    def _known_language(cls, value: str) -> str:
        code = value.strip().lower()
        if code not in supported_codes():
            raise ValueError(f"Unsupported language code {value!r}; expected one of {supported_codes()}")
        return code

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        name = value.strip().upper()
        if not isinstance(logging.getLevelName(name), int):
            raise ValueError(f"Unknown log level {value!r}")
        return name

    def clamp_sensitivity(self, value: Optional[float]) -> float:
        if value is None:
            value = self.default_sensitivity
        return min(max(float(value), self.min_sensitivity), self.max_sensitivity)


_settings: Optional[Settings] = None

_ENV_PREFIX: str = (Settings.model_config.get("env_prefix") or "").upper()
_ENV_PATH = Path(Settings.model_config.get("env_file") or ".env")


@dataclass
class EnvironmentSetting:
    """A settings field together with the variable that overrides it."""

    field: str
    env_name: str
    value: Any
    default: Any
    annotation: Any


class EnvironmentSettingError(RuntimeError):
    """Raised when environment-backed configuration updates fail."""


def _env_key(field: str) -> str:
    return f"{_ENV_PREFIX}{field}".upper()


def _field_default(field_info) -> Any:
    if field_info.default_factory is not None:  # type: ignore[truthy-function]
        return field_info.default_factory()
    return field_info.default


def _read_env_lines() -> List[str]:
    if not _ENV_PATH.exists():
        return []
    return _ENV_PATH.read_text().splitlines()


def _write_env_override(env_name: str, value: Optional[str]) -> None:
    """Replace, append or drop ``env_name`` in the ``.env`` file, keeping other lines."""

    kept: List[str] = []
    for line in _read_env_lines():
        key = line.split("=", 1)[0].strip() if "=" in line else None
        if key != env_name or line.lstrip().startswith("#"):
            kept.append(line)
    if value is not None:
        kept.append(f"{env_name}={value}")

    if any(line.strip() for line in kept):
        _ENV_PATH.write_text("\n".join(kept) + "\n")
    elif _ENV_PATH.exists():
        _ENV_PATH.unlink()


def list_environment_settings(settings: Optional[Settings] = None) -> Iterator[EnvironmentSetting]:
    """Yield every settings field with its current value and default."""

    settings = settings or get_settings()
    for name, field in Settings.model_fields.items():
        yield EnvironmentSetting(
            field=name,
            env_name=_env_key(name),
            value=getattr(settings, name),
            default=_field_default(field),
            annotation=field.annotation,
        )


def _reload(field: str, raw_value: Optional[str]) -> Settings:
    if field not in Settings.model_fields:
        raise EnvironmentSettingError(f"Unknown setting: {field}")

    env_name = _env_key(field)
    snapshot: Dict[str, Optional[str]] = {env_name: os.environ.get(env_name)}
    if raw_value is None:
        os.environ.pop(env_name, None)
    else:
        os.environ[env_name] = raw_value

    try:
        reloaded = Settings()
    except ValidationError as exc:
        for key, previous in snapshot.items():
            if previous is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = previous
        raise EnvironmentSettingError(str(exc)) from exc

    global _settings
    _settings = reloaded
    _write_env_override(env_name, raw_value)
    return reloaded


def update_environment_setting(field: str, raw_value: str) -> Settings:
    """Override ``field`` in the process environment and ``.env``, then reload."""

    return _reload(field, raw_value)


def clear_environment_setting(field: str) -> Settings:
    """Drop the override for ``field`` and reload the defaults."""

    return _reload(field, None)


def get_settings() -> Settings:
    """Return a singleton instance of the application settings."""

    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


__all__ = [
    "Settings",
    "EnvironmentSetting",
    "EnvironmentSettingError",
    "clear_environment_setting",
    "get_settings",
    "list_environment_settings",
    "update_environment_setting",
]
