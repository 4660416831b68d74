import httpx
import pytest

from fluxcode.adapter import ChatAdapter
from fluxcode.config import ProviderSettings, TransportConfig
from fluxcode.errors import ConfigurationError
from fluxcode.registry import (
    GENERIC_PROVIDER,
    ProviderEntry,
    ProviderRegistry,
    VendorDefaults,
    create_transport,
    default_registry,
)


@pytest.fixture
def transport():
    return httpx.AsyncClient(transport=httpx.MockTransport(lambda request: pytest.fail("no network expected")))


def test_default_registry_lists_well_known_vendors():
    assert default_registry().names() == ["custom", "groq", "ollama", "openai", "openrouter"]
    assert "OpenAI" in default_registry()


def test_vendor_defaults_fill_missing_base_url(transport):
    adapter = default_registry().build("ollama", ProviderSettings(model="llama3"), transport)

    assert isinstance(adapter, ChatAdapter)
    assert adapter.provider == "ollama"
    assert adapter.completions_url == "http://localhost:11434/v1/chat/completions"
    assert adapter.config.api_key is None


def test_explicit_settings_win_over_defaults(transport):
    settings = ProviderSettings(base_url="https://proxy.test/v1", model="gpt-4o", api_key="sk")

    adapter = default_registry().build("openai", settings, transport)

    assert adapter.completions_url == "https://proxy.test/v1/chat/completions"
    assert adapter.config.headers()["Authorization"] == "Bearer sk"


def test_unknown_name_uses_generic_fallback(transport):
    settings = ProviderSettings(
        base_url="https://llm.example.internal/v1",
        model="qwen",
        api_key="token",
        auth_header="X-Api-Key",
        auth_prefix="",
    )

    adapter = default_registry().build("My-Gateway", settings, transport)

    assert adapter.provider == "my-gateway"
    assert adapter.config.headers()["X-Api-Key"] == "token"


def test_unknown_name_without_fallback_is_configuration_error(transport):
    registry = ProviderRegistry({"openai": ProviderEntry(defaults=VendorDefaults(base_url="https://api.openai.com/v1"))})

    with pytest.raises(ConfigurationError) as excinfo:
        registry.build("unknown-provider", ProviderSettings(model="m"), transport)

    assert excinfo.value.provider_name == "unknown-provider"


def test_missing_model_is_configuration_error(transport):
    with pytest.raises(ConfigurationError) as excinfo:
        default_registry().build("openai", ProviderSettings(api_key="sk"), transport)

    assert excinfo.value.provider_name == "openai"
    assert "model" in str(excinfo.value)


def test_generic_provider_requires_base_url(transport):
    with pytest.raises(ConfigurationError, match="base_url"):
        default_registry().build(GENERIC_PROVIDER, ProviderSettings(model="m"), None)


def test_register_returns_new_registry(transport):
    built = []

    def constructor(config, client):
        built.append(config)
        return ChatAdapter(config, client)

    original = default_registry()
    extended = original.register("local", constructor, VendorDefaults(base_url="http://127.0.0.1:8080/v1", model="tiny"))

    adapter = extended.build("local", None, transport)

    assert "local" in extended
    assert "local" not in original
    assert adapter.model == "tiny"
    assert built[0].base_url == "http://127.0.0.1:8080/v1"


@pytest.mark.asyncio
async def test_create_transport_applies_timeouts():
    async with create_transport(TransportConfig(timeout=42.0, connect_timeout=3.0)) as client:
        assert client.timeout.read == 42.0
        assert client.timeout.connect == 3.0


@pytest.mark.parametrize("base_url", ["http://[::1/v1", "ftp://models.example/v1", "/v1"])
def test_malformed_base_url_is_configuration_error(transport, base_url):
    settings = ProviderSettings(base_url=base_url, model="m")

    with pytest.raises(ConfigurationError) as excinfo:
        default_registry().build("my-gateway", settings, transport)

    assert excinfo.value.provider_name == "my-gateway"
    assert "base_url" in str(excinfo.value)
