"""Tests for the OpenRouter gateway client."""

from __future__ import annotations

import pytest

from recruitica.clients.openrouter import (
    OpenRouterClient,
    completion_text,
    filter_text_models,
)
from recruitica.config import settings
from recruitica.errors import AIProxyError

BASE_URL = "https://openrouter.test/api/v1"

COMPLETION = {"choices": [{"message": {"role": "assistant", "content": "Hello there"}}]}


def _client(transport, api_key: str = "sk-or-test") -> OpenRouterClient:
    return OpenRouterClient(api_key=api_key, base_url=BASE_URL, transport=transport)


class TestChatCompletion:
    @pytest.mark.asyncio
    async def test_forwards_with_injected_headers(self, json_transport):
        transport = json_transport(COMPLETION)
        data = await _client(transport).chat_completion({
            "model": "openai/gpt-4o",
            "messages": [{"role": "user", "content": "Hi"}],
        })

        assert data == COMPLETION
        request = transport.requests[0]
        assert str(request.url) == f"{BASE_URL}/chat/completions"
        assert request.headers["authorization"] == "Bearer sk-or-test"
        assert request.headers["http-referer"] == settings.app_url
        assert request.headers["x-title"] == settings.app_title

    @pytest.mark.asyncio
    async def test_defaults_applied(self, json_transport):
        transport = json_transport(COMPLETION)
        await _client(transport).chat_completion({
            "model": "openai/gpt-4o",
            "messages": [{"role": "user", "content": "Hi"}],
        })
        body = transport.json_bodies()[0]
        assert body["temperature"] == 0.7
        assert body["max_tokens"] == 500

    @pytest.mark.asyncio
    async def test_caller_values_win(self, json_transport):
        transport = json_transport(COMPLETION)
        await _client(transport).chat_completion({
            "model": "openai/gpt-4o",
            "messages": [{"role": "user", "content": "Hi"}],
            "temperature": 0.3,
            "max_tokens": 4000,
        })
        body = transport.json_bodies()[0]
        assert body["temperature"] == 0.3
        assert body["max_tokens"] == 4000

    @pytest.mark.asyncio
    @pytest.mark.parametrize("request_body", [
        {"messages": [{"role": "user", "content": "Hi"}]},
        {"model": "openai/gpt-4o"},
        {"model": "openai/gpt-4o", "messages": []},
        {"model": "openai/gpt-4o", "messages": "Hi"},
    ])
    async def test_invalid_requests_never_sent(self, json_transport, request_body):
        transport = json_transport(COMPLETION)
        with pytest.raises(AIProxyError):
            await _client(transport).chat_completion(request_body)
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_missing_key_rejected(self, json_transport):
        transport = json_transport(COMPLETION)
        with pytest.raises(AIProxyError, match="API key not configured"):
            await _client(transport, api_key="").chat_completion({
                "model": "openai/gpt-4o",
                "messages": [{"role": "user", "content": "Hi"}],
            })
        assert transport.requests == []

    @pytest.mark.asyncio
    async def test_upstream_error_carries_status(self, json_transport):
        transport = json_transport({"error": {"message": "rate limited"}}, 429)
        with pytest.raises(AIProxyError) as exc_info:
            await _client(transport).chat_completion({
                "model": "openai/gpt-4o",
                "messages": [{"role": "user", "content": "Hi"}],
            })
        assert exc_info.value.status == 429
        assert "429" in exc_info.value.message


class TestListModels:
    RAW = {"data": [
        {"id": "openai/gpt-4o", "name": "GPT-4o", "context_length": 128000,
         "pricing": {"prompt": "0.000005"}},
        {"id": "anthropic/claude-3-haiku", "name": "Claude 3 Haiku", "context_length": 200000},
        {"id": "openai/text-embedding-3-small", "name": "Embedding", "context_length": 8191},
        {"id": "openai/whisper-1", "name": "Whisper", "context_length": 4096},
        {"id": "openai/dall-e-3", "name": "DALL-E 3", "context_length": 4096},
        {"id": "openai/tts-1", "name": "TTS", "context_length": 4096},
        {"id": "tiny/model", "name": "Tiny", "context_length": 1000},
        {"id": "no/context", "name": "No Context"},
    ]}

    @pytest.mark.asyncio
    async def test_filters_and_sorts(self, json_transport):
        transport = json_transport(self.RAW)
        models = await _client(transport).list_models()

        assert [m["value"] for m in models] == ["anthropic/claude-3-haiku", "openai/gpt-4o"]
        assert models[1]["contextLength"] == 128000
        assert models[1]["pricing"] == {"prompt": "0.000005"}
        assert transport.requests[0].method == "GET"
        assert str(transport.requests[0].url) == f"{BASE_URL}/models"

    @pytest.mark.asyncio
    async def test_upstream_error(self, json_transport):
        with pytest.raises(AIProxyError):
            await _client(json_transport({}, 500)).list_models()

    def test_filter_skips_unnamed_models(self):
        assert filter_text_models([{"id": "x/y", "context_length": 5000}]) == []


class TestCompletionText:
    def test_extracts_content(self):
        assert completion_text(COMPLETION) == "Hello there"

    @pytest.mark.parametrize("data", [{}, {"choices": []}, {"choices": [{"message": {}}]}])
    def test_malformed_reply(self, data):
        with pytest.raises(AIProxyError, match="Invalid response from AI service"):
            completion_text(data)
