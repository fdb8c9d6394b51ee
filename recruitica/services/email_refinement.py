"""Email refinement loop over the AI gateway.

Two modes share the same completion endpoint:

- single-shot tune: the whole body goes out with a fixed persona prompt and
  the reply replaces the body verbatim;
- chat-style instruction: the whole current HTML plus a free-text instruction
  goes out and the reply is a complete replacement document.

Each instruction works on the latest working copy. The transcript kept by
``RefinementSession`` is for display only; it is never replayed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

import bleach
from bleach.css_sanitizer import CSSSanitizer

from recruitica.clients.openrouter import OpenRouterClient, completion_text
from recruitica.errors import AIProxyError, RecruiticaError, ValidationError

logger = logging.getLogger(__name__)

TUNE_SYSTEM_PROMPT = (
    "You're Nikola's assistant helping polish introduction emails to clients. "
    "Refine this email by enhancing clarity and professionalism, without changing "
    "facts or tone. Make it concise, warm, and easy to read. Return only the edited "
    "version, no explanations."
)

HTML_SYSTEM_PROMPT = """You are an expert email editor specializing in HTML email formatting and content refinement. You will receive an HTML email and instructions for modifications.

IMPORTANT RULES:
1. ALWAYS return valid, complete HTML that can be displayed in an email client
2. Preserve the overall email structure and styling
3. Keep all CSS styles intact unless specifically asked to modify them
4. Maintain email-safe HTML practices (inline styles, table layouts, etc.)
5. Apply the user's requested changes precisely
6. If you need to make text bold, use <strong> tags
7. If you need to modify styling, use inline styles
8. Keep the professional tone and branding consistent
9. Ensure the email remains mobile-responsive

Your response should ONLY contain the modified HTML email - no explanations or additional text."""

TUNE_TEMPERATURE = 0.7
HTML_TEMPERATURE = 0.3
HTML_MAX_TOKENS = 4000

FALLBACK_MODELS: list[dict] = [
    {"value": "openai/gpt-4o", "label": "GPT-4o"},
    {"value": "openai/gpt-4o-mini", "label": "GPT-4o Mini"},
    {"value": "anthropic/claude-3-opus", "label": "Claude 3 Opus"},
    {"value": "anthropic/claude-3-sonnet", "label": "Claude 3 Sonnet"},
    {"value": "anthropic/claude-3-haiku", "label": "Claude 3 Haiku"},
    {"value": "meta-llama/llama-3-70b-instruct", "label": "Llama 3 70B"},
    {"value": "mistralai/mistral-large", "label": "Mistral Large"},
    {"value": "mistralai/mistral-medium", "label": "Mistral Medium"},
]


# ---------------------------------------------------------------------------
# Preview sanitizer
# ---------------------------------------------------------------------------

PREVIEW_TAGS = set(bleach.sanitizer.ALLOWED_TAGS) | {
    "p", "br", "div", "span", "ul", "ol", "li", "strong", "b", "em", "i", "u",
    "h1", "h2", "h3", "h4", "h5", "h6",
    "a", "blockquote", "hr", "img", "center", "font",
    "table", "thead", "tbody", "tfoot", "tr", "th", "td",
}
_STYLED = ["style", "class", "align", "width", "height", "bgcolor"]
PREVIEW_ATTRS = {
    **bleach.sanitizer.ALLOWED_ATTRIBUTES,
    "a": ["href", "title", "target", "rel", "style"],
    "img": ["src", "alt", "width", "height", "style"],
    "table": _STYLED + ["border", "cellpadding", "cellspacing", "role"],
    "td": _STYLED + ["colspan", "rowspan", "valign"],
    "th": _STYLED + ["colspan", "rowspan", "valign"],
    "tr": _STYLED,
    "font": ["color", "face", "size"],
    **{tag: _STYLED for tag in (
        "div", "span", "p", "li", "ul", "ol", "center",
        "h1", "h2", "h3", "h4", "h5", "h6", "strong", "em", "blockquote",
    )},
}
PREVIEW_CSS = CSSSanitizer(allowed_css_properties=[
    "color", "background", "background-color", "font", "font-family", "font-size",
    "font-style", "font-weight", "line-height", "letter-spacing", "text-align",
    "text-decoration", "text-transform", "margin", "margin-top", "margin-bottom",
    "margin-left", "margin-right", "padding", "padding-top", "padding-bottom",
    "padding-left", "padding-right", "border", "border-top", "border-bottom",
    "border-left", "border-right", "border-radius", "border-collapse", "width",
    "max-width", "height", "display", "vertical-align",
])


def sanitize_preview(html: str) -> str:
    """Allow-list sanitize model output before it is rendered in a preview."""
    return bleach.clean(
        html or "",
        tags=PREVIEW_TAGS,
        attributes=PREVIEW_ATTRS,
        protocols=["http", "https", "mailto"],
        css_sanitizer=PREVIEW_CSS,
        strip=True,
        strip_comments=True,
    )


# ---------------------------------------------------------------------------
# Refinement calls
# ---------------------------------------------------------------------------

async def tune_email(client: OpenRouterClient, model: str, email_body: str) -> str:
    """Polish a whole email body; the reply replaces it verbatim."""
    if not email_body:
        raise ValidationError("Email body is required for tuning")
    logger.info("Tuning email with model %s", model)
    data = await client.chat_completion({
        "model": model,
        "messages": [
            {"role": "system", "content": TUNE_SYSTEM_PROMPT},
            {"role": "user", "content": email_body},
        ],
        "temperature": TUNE_TEMPERATURE,
    })
    return completion_text(data)


async def tune_html_email(
    client: OpenRouterClient, model: str, html_content: str, instruction: str,
) -> str:
    """Apply one free-text instruction to a full HTML email; returns the new document."""
    if not html_content or not model:
        raise ValidationError("Missing HTML content or AI model")
    if not instruction.strip():
        raise ValidationError("Instruction is required")
    logger.info(
        "Tuning HTML email with model %s (%d chars)", model, len(html_content),
    )
    data = await client.chat_completion({
        "model": model,
        "messages": [
            {"role": "system", "content": HTML_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": (
                    f"Here is the current HTML email:\n\n{html_content}\n\n"
                    f"Please apply this instruction: {instruction}\n\n"
                    "Return the complete modified HTML email."
                ),
            },
        ],
        "temperature": HTML_TEMPERATURE,
        "max_tokens": HTML_MAX_TOKENS,
    })
    tuned = completion_text(data).strip()
    if not tuned:
        raise AIProxyError("AI returned empty response")
    return tuned


async def available_models(client: OpenRouterClient) -> list[dict]:
    """Live model list, or the static fallback when the listing fails or is empty."""
    try:
        models = await client.list_models()
    except AIProxyError as exc:
        logger.warning("Model listing failed, using fallback list: %s", exc)
        return list(FALLBACK_MODELS)
    return models or list(FALLBACK_MODELS)


@dataclass
class ChatEntry:
    role: str  # user | assistant | error
    text: str


@dataclass
class RefinementSession:
    """Working copy of a draft plus a display-only chat transcript."""
    html: str
    model: str
    transcript: list[ChatEntry] = field(default_factory=list)

    @property
    def preview(self) -> str:
        return sanitize_preview(self.html)

    async def apply(self, client: OpenRouterClient, instruction: str) -> str:
        """Rewrite the working copy with one instruction.

        On failure the working copy is left untouched, the error is added to
        the transcript and re-raised.
        """
        self.transcript.append(ChatEntry("user", instruction))
        try:
            self.html = await tune_html_email(client, self.model, self.html, instruction)
        except RecruiticaError as exc:
            self.transcript.append(ChatEntry("error", exc.message))
            raise
        self.transcript.append(ChatEntry("assistant", "Email updated."))
        return self.html

    async def tune(self, client: OpenRouterClient) -> str:
        self.html = await tune_email(client, self.model, self.html)
        self.transcript.append(ChatEntry("assistant", "Email polished."))
        return self.html
