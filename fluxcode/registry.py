"""Provider registry mapping configured provider names to ready chat adapters."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Dict, List, Mapping, Optional

import httpx

from .adapter import ChatAdapter
from .config import ProviderSettings, TransportConfig
from .errors import ConfigurationError
from .logging import get_logger
from .models import ProviderConfig

LOGGER = get_logger(__name__)

GENERIC_PROVIDER = "custom"

AdapterConstructor = Callable[[ProviderConfig, httpx.AsyncClient], ChatAdapter]


@dataclass(frozen=True)
class VendorDefaults:
    """Values a well-known vendor fills in when the configuration leaves them empty."""

    base_url: Optional[str] = None
    model: Optional[str] = None
    auth_header: str = "Authorization"
    auth_prefix: str = "Bearer "


@dataclass(frozen=True)
class ProviderEntry:
    constructor: AdapterConstructor = ChatAdapter
    defaults: VendorDefaults = VendorDefaults()


WELL_KNOWN_PROVIDERS: Dict[str, VendorDefaults] = {
    "openai": VendorDefaults(base_url="https://api.openai.com/v1"),
    "ollama": VendorDefaults(base_url="http://localhost:11434/v1"),
    "openrouter": VendorDefaults(base_url="https://openrouter.ai/api/v1"),
    "groq": VendorDefaults(base_url="https://api.groq.com/openai/v1"),
}


def create_transport(config: Optional[TransportConfig] = None, **kwargs) -> httpx.AsyncClient:
    """Build the HTTP client shared by every adapter of the process."""

    config = config or TransportConfig()
    timeout = httpx.Timeout(config.timeout, connect=config.connect_timeout)
    return httpx.AsyncClient(timeout=timeout, **kwargs)


def resolve_config(
    name: str, settings: Optional[ProviderSettings], defaults: Optional[VendorDefaults] = None
) -> ProviderConfig:
    """Merge explicit *settings* over *defaults* and validate the required fields."""

    settings = settings or ProviderSettings()
    defaults = defaults or VendorDefaults()
    base_url = settings.base_url or defaults.base_url
    model = settings.model or defaults.model
    if not base_url:
        raise ConfigurationError(name, f"Provider '{name}' has no base_url configured.")
    _check_base_url(name, base_url)
    if not model:
        raise ConfigurationError(name, f"Provider '{name}' has no model configured.")
    return ProviderConfig(
        name=name,
        base_url=base_url,
        model=model,
        api_key=settings.api_key or None,
        auth_header=settings.auth_header or defaults.auth_header,
        auth_prefix=settings.auth_prefix if settings.auth_prefix is not None else defaults.auth_prefix,
    )


def _check_base_url(name: str, base_url: str) -> None:
    try:
        url = httpx.URL(base_url)
    except httpx.InvalidURL as exc:
        raise ConfigurationError(name, f"Provider '{name}' has an invalid base_url '{base_url}': {exc}") from exc
    if url.scheme not in ("http", "https") or not url.host:
        raise ConfigurationError(
            name, f"Provider '{name}' base_url must be an http(s) URL with a host, got '{base_url}'."
        )


class ProviderRegistry:
    """Immutable table of provider names to adapter constructors and vendor defaults."""

    def __init__(self, entries: Mapping[str, ProviderEntry]) -> None:
        self._entries = MappingProxyType({name.lower(): entry for name, entry in entries.items()})

    def names(self) -> List[str]:
        return sorted(self._entries)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name.lower() in self._entries

    def register(
        self,
        name: str,
        constructor: AdapterConstructor = ChatAdapter,
        defaults: Optional[VendorDefaults] = None,
    ) -> "ProviderRegistry":
        """Return a new registry with *name* added or replaced. This registry is unchanged."""

        entries = dict(self._entries)
        entries[name.lower()] = ProviderEntry(constructor, defaults or VendorDefaults())
        return ProviderRegistry(entries)

    def build(
        self,
        name: str,
        settings: Optional[ProviderSettings],
        transport: httpx.AsyncClient,
    ) -> ChatAdapter:
        """Create the adapter for *name*, falling back to the generic entry.

        Raises :class:`ConfigurationError` before any network activity when no
        entry matches or a required field is missing.
        """

        key = (name or "").strip().lower()
        entry = self._entries.get(key)
        if entry is None:
            entry = self._entries.get(GENERIC_PROVIDER)
            if entry is None:
                raise ConfigurationError(key, f"Provider '{key}' has no registered constructor.")
            LOGGER.debug("Provider '%s' is not well-known; using the generic constructor", key)

        config = resolve_config(key, settings, entry.defaults)
        return entry.constructor(config, transport)


def default_registry() -> ProviderRegistry:
    entries = {name: ProviderEntry(defaults=defaults) for name, defaults in WELL_KNOWN_PROVIDERS.items()}
    entries[GENERIC_PROVIDER] = ProviderEntry()
    return ProviderRegistry(entries)
