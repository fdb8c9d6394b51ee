"""OpenRouter LLM gateway client.

Forwards OpenAI-compatible chat-completion requests and model listings,
injecting the server-held API key. The API key never leaves this module
and is never logged.

API docs: https://openrouter.ai/docs/api-reference
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from recruitica.config import settings
from recruitica.errors import AIProxyError

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7
DEFAULT_MAX_TOKENS = 500

# Substrings of model ids that are not text-generation models.
_NON_TEXT_MARKERS = ("embedding", "whisper", "dall-e", "tts")
MIN_CONTEXT_LENGTH = 1000


class OpenRouterClient:
    """Async client for the OpenRouter chat-completions and models endpoints."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.openrouter_api_key
        self.base_url = (base_url or settings.openrouter_base_url).rstrip("/")
        self.transport = transport

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise AIProxyError("OpenRouter API key not configured")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": settings.app_url,
            "Content-Type": "application/json",
            "X-Title": settings.app_title,
        }

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=None)

    async def chat_completion(self, request: dict[str, Any]) -> dict[str, Any]:
        """Validate and forward a chat-completion request; relay the JSON reply."""
        model = request.get("model")
        messages = request.get("messages")
        if not model:
            raise AIProxyError("Missing required parameter: model")
        if not messages or not isinstance(messages, list):
            raise AIProxyError("Missing or invalid parameter: messages")

        body = {
            "model": model,
            "messages": messages,
            "temperature": request.get("temperature", DEFAULT_TEMPERATURE),
            "max_tokens": request.get("max_tokens", DEFAULT_MAX_TOKENS),
        }
        headers = self._headers()
        logger.info("OpenRouter completion: model=%s messages=%d", model, len(messages))

        try:
            async with self._client() as client:
                resp = await client.post(
                    f"{self.base_url}/chat/completions", json=body, headers=headers,
                )
        except httpx.HTTPError as exc:
            logger.warning("OpenRouter request failed: %s", exc)
            raise AIProxyError(f"OpenRouter request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.error("OpenRouter API error %d: %s", resp.status_code, resp.text[:200])
            raise AIProxyError(
                f"OpenRouter API error: {resp.status_code} {resp.reason_phrase}",
                status=resp.status_code,
            )
        try:
            data = resp.json()
        except ValueError as exc:
            raise AIProxyError("OpenRouter returned a non-JSON response") from exc
        logger.info("OpenRouter response received successfully")
        return data

    async def list_models(self) -> list[dict[str, Any]]:
        """Return text-generation models as ``{value, label, ...}`` dicts, sorted by label."""
        headers = self._headers()
        try:
            async with self._client() as client:
                resp = await client.get(f"{self.base_url}/models", headers=headers)
        except httpx.HTTPError as exc:
            raise AIProxyError(f"OpenRouter request failed: {exc}") from exc

        if resp.status_code >= 400:
            logger.error("OpenRouter API error %d: %s", resp.status_code, resp.text[:200])
            raise AIProxyError(
                f"OpenRouter API error: {resp.status_code} {resp.reason_phrase}",
                status=resp.status_code,
            )
        try:
            raw = resp.json().get("data") or []
        except (ValueError, AttributeError) as exc:
            raise AIProxyError("OpenRouter returned a malformed model list") from exc

        models = filter_text_models(raw)
        logger.info("Fetched %d models, returning %d text models", len(raw), len(models))
        return models


def filter_text_models(raw: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Keep text-generation models with a usable context window."""
    models = []
    for m in raw:
        model_id = str(m.get("id") or "")
        if not model_id or not m.get("name"):
            continue
        if any(marker in model_id for marker in _NON_TEXT_MARKERS):
            continue
        try:
            context_length = int(m.get("context_length") or 0)
        except (TypeError, ValueError):
            continue
        if context_length <= MIN_CONTEXT_LENGTH:
            continue
        models.append({
            "value": model_id,
            "label": str(m["name"]),
            "description": str(m.get("description") or ""),
            "contextLength": context_length,
            "pricing": m.get("pricing"),
        })
    models.sort(key=lambda x: x["label"].lower())
    return models


def completion_text(data: dict[str, Any]) -> str:
    """Extract ``choices[0].message.content`` or raise ``AIProxyError``."""
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        raise AIProxyError("Invalid response from AI service") from None
    if not isinstance(content, str):
        raise AIProxyError("Invalid response from AI service")
    return content
