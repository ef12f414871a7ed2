"""Tests for the Azure OpenAI chat-completion client."""
import asyncio
import json

import httpx
import pytest

from app.config.openai_llm import AzureOpenAIClient
from app.utils.errors import EmptyCompletionError, LLMServiceError

MESSAGES = [{"role": "system", "content": "sys"}, {"role": "user", "content": "hello"}]


def _client(handler, **kwargs):
    return AzureOpenAIClient(
        endpoint="https://example.openai.azure.com/",
        api_key="secret",
        deployment_name="gpt-test",
        api_version="2025-01-01-preview",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _run(client, **kwargs):
    async def go():
        try:
            return await client.generate_completion(MESSAGES, **kwargs)
        finally:
            await client.aclose()
    return asyncio.run(go())


def test_returns_first_choice_content():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["api_key"] = request.headers.get("api-key")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "define('o9.X')"}}]})

    assert _run(_client(handler), max_tokens=1234) == "define('o9.X')"
    assert seen["url"] == (
        "https://example.openai.azure.com/openai/deployments/gpt-test/chat/completions"
        "?api-version=2025-01-01-preview"
    )
    assert seen["api_key"] == "secret"
    assert seen["body"]["max_completion_tokens"] == 1234
    assert seen["body"]["messages"] == MESSAGES
    assert "temperature" not in seen["body"]


def test_temperature_is_sent_when_configured():
    seen = {}

    def handler(request):
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": "ok"}}]})

    _run(_client(handler, temperature=0.1))
    assert seen["body"]["temperature"] == 0.1


def test_http_error_carries_upstream_status_and_message():
    def handler(request):
        return httpx.Response(429, json={"error": {"message": "Rate limit reached"}})

    with pytest.raises(LLMServiceError) as info:
        _run(_client(handler))
    assert not isinstance(info.value, EmptyCompletionError)
    assert info.value.status_code == 429
    assert info.value.message == "Rate limit reached"


def test_transport_error_is_wrapped():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(LLMServiceError) as info:
        _run(_client(handler))
    assert info.value.status_code is None
    assert "connection refused" in info.value.message


@pytest.mark.parametrize("payload", [
    {"choices": []},
    {},
    {"choices": [{"message": {"content": ""}}]},
    {"choices": [{"message": {}}]},
    {"choices": ["define('o9.X')"]},
    {"choices": [{"message": "define('o9.X')"}]},
    {"choices": {"message": {"content": "x"}}},
])
def test_empty_completion_is_a_distinct_failure(payload):
    def handler(request):
        return httpx.Response(200, json=payload)

    with pytest.raises(EmptyCompletionError):
        _run(_client(handler))
