"""Tests for the provider registry and REST providers."""

from __future__ import annotations

import json

import httpx
import pytest

from feedback_digest.config import LoggingConfig, ProviderConfig
from feedback_digest.errors import ProviderError
from feedback_digest.llm.providers.anthropic import AnthropicProvider
from feedback_digest.llm.providers.factory import available_providers, create_provider
from feedback_digest.llm.providers.gemini import GeminiProvider, _extract_text


def test_available_providers_contains_expected_backends():
    names = available_providers()
    assert "gemini" in names
    assert "anthropic" in names


def test_create_provider_gemini():
    provider = create_provider(ProviderConfig(name="gemini", api_key="test-key"), LoggingConfig())
    assert isinstance(provider, GeminiProvider)
    assert provider.model == "gemini-2.5-flash"


def test_create_provider_anthropic_with_model_override():
    provider = create_provider(ProviderConfig(name="Claude", model="claude-x", api_key="test-key"))
    assert isinstance(provider, AnthropicProvider)
    assert provider.model == "claude-x"


def test_create_provider_rejects_unknown_backend():
    with pytest.raises(ValueError, match="Unsupported provider"):
        create_provider(ProviderConfig(name="unknown-provider", api_key="test-key"))


def test_create_provider_requires_api_key(monkeypatch):
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    with pytest.raises(ValueError, match="Missing API key"):
        create_provider(ProviderConfig(name="gemini"))


def test_anthropic_generate_posts_messages_request():
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"content": [{"type": "text", "text": "  ## Summary\n- ok  "}]})

    provider = create_provider(
        ProviderConfig(name="anthropic", api_key="sk-test"),
        transport=httpx.MockTransport(handler),
    )
    text = provider.generate("prompt", operation="summarize", max_output_tokens=100, temperature=0.1)

    body = json.loads(seen[0].content)
    assert text == "## Summary\n- ok"
    assert str(seen[0].url) == "https://api.anthropic.com/v1/messages"
    assert seen[0].headers["x-api-key"] == "sk-test"
    assert body["max_tokens"] == 100
    assert body["messages"] == [{"role": "user", "content": "prompt"}]


def test_anthropic_http_error_propagates():
    provider = create_provider(
        ProviderConfig(name="anthropic", api_key="sk-test"),
        transport=httpx.MockTransport(lambda request: httpx.Response(429, json={"error": "rate"})),
    )
    with pytest.raises(httpx.HTTPStatusError):
        provider.generate("prompt", operation="summarize", max_output_tokens=10, temperature=0)


def test_gemini_generate_uses_key_param():
    seen: list[httpx.Request] = []

    def handler(request):
        seen.append(request)
        return httpx.Response(200, json={"candidates": [{"content": {"parts": [{"text": "hello"}]}}]})

    provider = create_provider(
        ProviderConfig(name="gemini", api_key="g-key"),
        transport=httpx.MockTransport(handler),
    )

    assert provider.generate("p", operation="answer", max_output_tokens=5, temperature=0) == "hello"
    assert seen[0].url.params["key"] == "g-key"
    assert seen[0].url.path == "/v1beta/models/gemini-2.5-flash:generateContent"


def test_gemini_extract_text_errors():
    with pytest.raises(ProviderError, match="blocked: SAFETY"):
        _extract_text({"promptFeedback": {"blockReason": "SAFETY"}})
    with pytest.raises(ProviderError, match="MAX_TOKENS"):
        _extract_text({"candidates": [{"content": {"parts": []}, "finishReason": "MAX_TOKENS"}]})
    with pytest.raises(ProviderError, match="malformed"):
        _extract_text({"candidates": ["not a dict"]})


@pytest.mark.parametrize("name", ["anthropic", "gemini"])
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, text="<html>proxy login</html>"),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
def test_unusable_success_body_raises_provider_error(name, response):
    provider = create_provider(
        ProviderConfig(name=name, api_key="key"),
        transport=httpx.MockTransport(lambda request: response),
    )
    with pytest.raises(ProviderError, match=name):
        provider.generate("prompt", operation="summarize", max_output_tokens=10, temperature=0)
