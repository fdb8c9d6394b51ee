"""Tests for the tune/refine loop and the preview sanitizer."""

from __future__ import annotations

import httpx
import pytest

from recruitica.clients.openrouter import OpenRouterClient
from recruitica.errors import AIProxyError, ValidationError
from recruitica.services.email_refinement import (
    FALLBACK_MODELS,
    HTML_SYSTEM_PROMPT,
    TUNE_SYSTEM_PROMPT,
    RefinementSession,
    available_models,
    sanitize_preview,
    tune_email,
    tune_html_email,
)

from conftest import RecordingTransport


def _completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def _client(transport) -> OpenRouterClient:
    return OpenRouterClient(
        api_key="sk-or-test", base_url="https://openrouter.test/api/v1", transport=transport,
    )


class TestTuneEmail:
    @pytest.mark.asyncio
    async def test_reply_replaces_body_verbatim(self, json_transport):
        transport = json_transport(_completion("Dear Jane,\n\nPolished."))
        result = await tune_email(_client(transport), "openai/gpt-4o", "dear jane, rough")

        assert result == "Dear Jane,\n\nPolished."
        body = transport.json_bodies()[0]
        assert body["messages"][0] == {"role": "system", "content": TUNE_SYSTEM_PROMPT}
        assert body["messages"][1] == {"role": "user", "content": "dear jane, rough"}
        assert body["temperature"] == 0.7

    @pytest.mark.asyncio
    async def test_empty_body_rejected(self, json_transport):
        transport = json_transport(_completion("x"))
        with pytest.raises(ValidationError):
            await tune_email(_client(transport), "openai/gpt-4o", "")
        assert transport.requests == []


class TestTuneHtmlEmail:
    @pytest.mark.asyncio
    async def test_sends_whole_document_and_instruction(self, json_transport):
        transport = json_transport(_completion("  <p><strong>Hi</strong></p>\n"))
        result = await tune_html_email(
            _client(transport), "openai/gpt-4o", "<p>Hi</p>", "make it bold",
        )

        assert result == "<p><strong>Hi</strong></p>"
        body = transport.json_bodies()[0]
        assert body["messages"][0]["content"] == HTML_SYSTEM_PROMPT
        user = body["messages"][1]["content"]
        assert "<p>Hi</p>" in user
        assert "make it bold" in user
        assert body["temperature"] == 0.3
        assert body["max_tokens"] == 4000

    @pytest.mark.asyncio
    async def test_blank_reply_is_an_error(self, json_transport):
        with pytest.raises(AIProxyError, match="empty response"):
            await tune_html_email(
                _client(json_transport(_completion("   "))),
                "openai/gpt-4o", "<p>Hi</p>", "shorter",
            )

    @pytest.mark.asyncio
    async def test_missing_model_rejected(self, json_transport):
        with pytest.raises(ValidationError):
            await tune_html_email(
                _client(json_transport(_completion("x"))), "", "<p>Hi</p>", "shorter",
            )


class TestRefinementSession:
    @pytest.mark.asyncio
    async def test_instructions_chain_on_latest_copy(self):
        replies = iter(["<p>v1</p>", "<p>v2</p>"])
        transport = RecordingTransport(
            lambda request: httpx.Response(200, json=_completion(next(replies)))
        )
        session = RefinementSession(html="<p>v0</p>", model="openai/gpt-4o")

        await session.apply(_client(transport), "first")
        await session.apply(_client(transport), "second")

        assert session.html == "<p>v2</p>"
        second_prompt = transport.json_bodies()[1]["messages"][1]["content"]
        assert "<p>v1</p>" in second_prompt
        assert "first" not in second_prompt
        assert [e.role for e in session.transcript] == ["user", "assistant", "user", "assistant"]

    @pytest.mark.asyncio
    async def test_failure_keeps_working_copy(self, json_transport):
        session = RefinementSession(html="<p>keep me</p>", model="openai/gpt-4o")
        with pytest.raises(AIProxyError):
            await session.apply(_client(json_transport({"error": "x"}, 502)), "shorter")

        assert session.html == "<p>keep me</p>"
        assert session.transcript[-1].role == "error"

    @pytest.mark.asyncio
    async def test_tune_replaces_working_copy(self, json_transport):
        session = RefinementSession(html="rough", model="openai/gpt-4o")
        await session.tune(_client(json_transport(_completion("polished"))))
        assert session.html == "polished"

    def test_preview_is_sanitized(self):
        session = RefinementSession(
            html='<p onclick="x()">Hi</p><script>alert(1)</script>', model="m",
        )
        assert "<script" not in session.preview
        assert "onclick" not in session.preview
        assert session.html.startswith('<p onclick="x()">')


class TestSanitizePreview:
    def test_keeps_email_layout_and_inline_styles(self):
        html = (
            '<table cellpadding="0" style="width: 100%;"><tr>'
            '<td style="color: #333;"><strong>Jane</strong></td></tr></table>'
        )
        cleaned = sanitize_preview(html)
        assert "<table" in cleaned
        assert "color:" in cleaned
        assert "<strong>Jane</strong>" in cleaned

    def test_strips_scripts_and_js_links(self):
        cleaned = sanitize_preview(
            '<a href="javascript:alert(1)">x</a><iframe src="https://evil"></iframe>'
        )
        assert "javascript:" not in cleaned
        assert "<iframe" not in cleaned

    def test_none_is_empty(self):
        assert sanitize_preview(None) == ""


class TestAvailableModels:
    @pytest.mark.asyncio
    async def test_live_list(self, json_transport):
        transport = json_transport({"data": [
            {"id": "openai/gpt-4o", "name": "GPT-4o", "context_length": 128000},
        ]})
        models = await available_models(_client(transport))
        assert [m["value"] for m in models] == ["openai/gpt-4o"]

    @pytest.mark.asyncio
    async def test_fallback_on_failure(self, json_transport):
        models = await available_models(_client(json_transport({}, 500)))
        assert models == FALLBACK_MODELS

    @pytest.mark.asyncio
    async def test_fallback_on_empty_list(self, json_transport):
        models = await available_models(_client(json_transport({"data": []})))
        assert models == FALLBACK_MODELS

    @pytest.mark.asyncio
    async def test_fallback_without_key(self):
        client = OpenRouterClient(api_key="", base_url="https://openrouter.test/api/v1")
        assert await available_models(client) == FALLBACK_MODELS
