import pytest

from chat_core.providers import create_provider
from chat_core.providers.openai_client import OpenAICompatClient
from chat_core.providers.registry import get_provider_config


def test_create_provider_default(monkeypatch):
    class DummySettings:
        default_provider = "openai"
        openai_api_key = "sk-test-key-123"
        http_timeout = 1.0

    monkeypatch.setattr("chat_core.providers.settings", DummySettings())
    provider = create_provider()
    assert isinstance(provider, OpenAICompatClient)
    assert provider.name == "openai"


def test_create_provider_explicit(monkeypatch):
    class DummySettings:
        default_provider = "openai"
        glm_api_key = "g-test-key-123"
        http_timeout = 1.0

    monkeypatch.setattr("chat_core.providers.settings", DummySettings())
    provider = create_provider("GLM")
    assert provider.name == "glm"


def test_unknown_provider():
    with pytest.raises(KeyError):
        get_provider_config("nope")
