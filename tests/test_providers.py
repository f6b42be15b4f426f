import json

import httpx
import pytest

from ai import available_providers, create_provider, get_provider
from ai.anthropic_provider import AnthropicProvider
from ai.base import MAX_TIMEOUT
from ai.gemini_provider import GeminiProvider
from ai.heuristic import HeuristicProvider
from ai.images import ImagePayload
from ai.ollama_provider import OllamaProvider
from ai.openai_provider import AzureOpenAIProvider, OpenAIProvider
from config import AppConfig
from database import MediaItem
from utils.errors import ConfigurationError, ProviderError

ITEM = MediaItem(id=1, filename="company-logo-2024.png", mime_type="image/png", alt_text="Blue logo")


def mock_client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_openai_sends_prompt_and_image() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": '{"action": "skip"}'}}]})

    provider = OpenAIProvider({"api_key": "sk-test"}, client=mock_client(handler))
    reply = provider.analyze(ITEM, {"Logos": 5}, 3, True, image=ImagePayload(data="aGk=", mime_type="image/png"))

    assert reply == '{"action": "skip"}'
    assert seen["url"] == "https://api.openai.com/v1/chat/completions"
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"]["model"] == "gpt-4o-mini"
    user_content = seen["body"]["messages"][-1]["content"]
    assert "Logos (ID: 5)" in user_content[0]["text"]
    assert user_content[1]["image_url"]["url"] == "data:image/png;base64,aGk="


def test_http_errors_become_provider_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "Invalid API key"}})

    provider = AnthropicProvider({"api_key": "bad"}, client=mock_client(handler))

    with pytest.raises(ProviderError, match="Invalid API key"):
        provider.complete("hello")
    assert provider.test() == "Anthropic HTTP 401: Invalid API key"


def test_timeouts_become_provider_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    provider = OpenAIProvider({"api_key": "k", "timeout": 5000}, client=mock_client(handler))

    assert provider.timeout == MAX_TIMEOUT
    with pytest.raises(ProviderError, match="timed out"):
        provider.complete("hello")


def test_azure_requires_endpoint_and_deployment() -> None:
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["key"] = request.headers.get("api-key")
        return httpx.Response(200, json={"choices": [{"message": {"content": "OK"}}]})

    incomplete = AzureOpenAIProvider({"api_key": "k"})
    provider = AzureOpenAIProvider(
        {"api_key": "k", "endpoint": "https://res.openai.azure.com", "deployment": "vision"},
        client=mock_client(handler),
    )

    assert incomplete.is_configured() is False
    assert incomplete.test() == "Azure OpenAI endpoint is required"
    assert provider.test() is None
    assert seen["url"].startswith("https://res.openai.azure.com/openai/deployments/vision/chat/completions")
    assert seen["key"] == "k"


def test_ollama_checks_model_is_pulled() -> None:
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request.url.path)
        return httpx.Response(200, json={"models": [{"name": "llava:13b"}]})

    provider = OllamaProvider({"model": "moondream"}, client=mock_client(handler))

    assert provider.is_configured() is True
    assert provider.is_configured() is True
    assert calls.count("/api/tags") == 1
    assert provider.get_available_models() == ["llava:13b"]
    assert "ollama pull moondream" in provider.test()


def test_heuristic_matches_existing_folder() -> None:
    provider = HeuristicProvider()
    reply = json.loads(provider.analyze(ITEM, {"Branding/Logos": 7, "Events": 8}, 3, False))

    assert reply["action"] == "assign"
    assert reply["folder_id"] == 7
    assert provider.is_configured() is True
    assert provider.test() is None


def test_heuristic_suggests_folder_when_nothing_matches() -> None:
    provider = HeuristicProvider()
    item = MediaItem(id=2, filename="product-shot.jpg", mime_type="image/jpeg")

    created = json.loads(provider.analyze(item, {}, 3, True))
    skipped = json.loads(provider.analyze(item, {}, 3, False))

    assert created == {
        "action": "create",
        "new_folder_path": "Images/Products",
        "confidence": 0.5,
        "reason": "Suggested new folder from file type and name",
    }
    assert skipped["action"] == "skip"


def test_factory_selects_configured_provider(tmp_path) -> None:
    config = AppConfig.from_dict({"ai": {"provider": "gemini", "gemini": {"api_key": "g"}}}, root_dir=tmp_path)

    provider = create_provider(config)

    assert provider.name == "gemini"
    assert provider.is_configured() is True
    assert create_provider(AppConfig.from_dict({}, root_dir=tmp_path)).name == "heuristic"
    assert "ollama" in available_providers()
    with pytest.raises(ConfigurationError):
        get_provider("carrier-pigeon")


@pytest.mark.parametrize(
    ("provider_cls", "body"),
    [
        (AnthropicProvider, {"content": "oops"}),
        (AnthropicProvider, {"content": ["oops"]}),
        (OpenAIProvider, {"choices": ["x"]}),
        (OpenAIProvider, {"choices": [{"message": "x"}]}),
        (GeminiProvider, {"candidates": [{"content": {"parts": "oops"}}]}),
        (GeminiProvider, {"candidates": ["x"]}),
    ],
)
def test_malformed_reply_bodies_become_provider_errors(provider_cls, body) -> None:
    provider = provider_cls({"api_key": "k"}, client=mock_client(lambda request: httpx.Response(200, json=body)))

    with pytest.raises(ProviderError, match="unexpected reply shape"):
        provider.complete("hello")
