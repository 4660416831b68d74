"""Configuration models and helpers for the terminal client."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .errors import ConfigurationError
from .logging import get_logger

LOGGER = get_logger(__name__)

CONFIG_HOME = Path("~/.config/flux").expanduser()

_DOTENV_LOADED = False

# $NAME or ${NAME} left behind by os.path.expandvars when NAME is unset
_UNRESOLVED_REFERENCE = re.compile(r"\$(?:\{[^}]*\}|[A-Za-z_][A-Za-z0-9_]*)")


def _load_dotenv_once() -> None:
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return

    env_path = Path(os.getenv("ENV_FILE", ".env")).expanduser()
    if env_path.exists():
        load_dotenv(env_path, override=False)
    _DOTENV_LOADED = True


def _env(key: str) -> Optional[str]:
    value = os.getenv(key)
    if value is None:
        return None
    value = value.strip()
    return value or None


def _expand(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    expanded = os.path.expandvars(str(value))
    unresolved = _UNRESOLVED_REFERENCE.findall(expanded)
    if unresolved:
        LOGGER.warning("Ignoring a config value that references unset variables: %s", ", ".join(unresolved))
        return None
    return expanded


def _update_dataclass(instance: Any, values: Dict[str, Any]) -> None:
    for key, value in (values or {}).items():
        if hasattr(instance, key):
            setattr(instance, key, value)


@dataclass
class ProviderSettings:
    """One entry of the ``providers`` section, before vendor defaults are merged."""

    base_url: Optional[str] = None
    api_key: Optional[str] = None
    model: Optional[str] = None
    auth_header: Optional[str] = None
    auth_prefix: Optional[str] = None

    @classmethod
    def from_mapping(cls, payload: Optional[Dict[str, Any]]) -> "ProviderSettings":
        payload = payload or {}
        known = {item.name for item in fields(cls)}
        return cls(**{key: _expand(value) for key, value in payload.items() if key in known})


@dataclass
class SystemConfig:
    system_prompt: str = "You are a helpful AI coding assistant."


@dataclass
class ChatConfig:
    """Sampling parameters sent with every request. ``None`` leaves the provider default."""

    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class TransportConfig:
    """Ceiling timeouts for the shared HTTP client, separate from user cancellation."""

    timeout: float = 300.0
    connect_timeout: float = 10.0


@dataclass
class UIConfig:
    """Terminal rendering. ``word_wrap`` caps the console width; ``None`` follows the terminal."""

    word_wrap: Optional[int] = None
    render_markdown: bool = False


@dataclass
class AppConfig:
    """Aggregate configuration container used throughout the project."""

    provider: str = "ollama"
    providers: Dict[str, ProviderSettings] = field(default_factory=dict)
    system: SystemConfig = field(default_factory=SystemConfig)
    chat: ChatConfig = field(default_factory=ChatConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    log_level: str = "WARNING"

    @classmethod
    def load(cls, *, config_path: Optional[Path] = None) -> "AppConfig":
        """Create an :class:`AppConfig` from YAML/JSON and environment overrides."""

        _load_dotenv_once()
        instance = cls()

        file_path = config_path or _env("FLUX_CONFIG_FILE")
        if file_path is None:
            file_path = _find_config_file(
                [Path("config.yaml"), Path("config.yml"), CONFIG_HOME / "config.yaml"]
            )
        if file_path is not None:
            file_path = Path(file_path).expanduser()
            if config_path is not None and not file_path.exists():
                raise ConfigurationError(instance.provider, f"Config file '{file_path}' does not exist.")
            if file_path.exists():
                instance.apply_mapping(_read_config_file(file_path))

        instance.apply_environment()
        return instance

    # ------------------------------------------------------------------
    # Override helpers
    # ------------------------------------------------------------------
    def apply_mapping(self, payload: Dict[str, Any]) -> None:
        if not payload:
            return

        if payload.get("provider"):
            self.provider = str(payload["provider"]).strip().lower()
        if "providers" in payload:
            self.providers = {
                str(name).lower(): ProviderSettings.from_mapping(data)
                for name, data in (payload["providers"] or {}).items()
            }
        if "system" in payload:
            _update_dataclass(self.system, payload["system"])
        if "chat" in payload:
            _update_dataclass(self.chat, payload["chat"])
        if "transport" in payload:
            _update_dataclass(self.transport, payload["transport"])
        if "ui" in payload:
            _update_dataclass(self.ui, payload["ui"])
        if payload.get("log_level"):
            self.log_level = str(payload["log_level"])

    def apply_environment(self) -> None:
        provider = _env("FLUX_PROVIDER")
        if provider:
            self.provider = provider.lower()

        settings = self.providers.setdefault(self.provider, ProviderSettings())
        model = _env("FLUX_MODEL")
        if model:
            settings.model = model
        base_url = _env("FLUX_BASE_URL")
        if base_url:
            settings.base_url = base_url
        api_key = _env("FLUX_API_KEY")
        if api_key:
            settings.api_key = api_key

        timeout = _env("FLUX_TIMEOUT")
        if timeout:
            try:
                self.transport.timeout = float(timeout)
            except ValueError as exc:
                raise ConfigurationError(
                    "config", f"FLUX_TIMEOUT must be a number of seconds, got '{timeout}'."
                ) from exc

        system_prompt = _env("FLUX_SYSTEM_PROMPT")
        if system_prompt:
            self.system.system_prompt = system_prompt

        log_level = _env("FLUX_LOG_LEVEL")
        if log_level:
            self.log_level = log_level

    def provider_settings(self, name: Optional[str] = None) -> ProviderSettings:
        return self.providers.get((name or self.provider).lower(), ProviderSettings())


def _find_config_file(candidates: List[Path]) -> Optional[Path]:
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return None


def _read_config_file(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        try:
            if path.suffix.lower() in {".yaml", ".yml"}:
                payload = yaml.safe_load(handle) or {}
            else:
                payload = json.load(handle)
        except (yaml.YAMLError, ValueError) as exc:
            raise ConfigurationError("config", f"Config file '{path}' could not be parsed: {exc}") from exc
    if not isinstance(payload, dict):
        raise ConfigurationError("config", f"Config file '{path}' must contain a mapping at the top level.")
    return payload
