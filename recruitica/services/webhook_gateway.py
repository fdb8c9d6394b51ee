"""Webhook gateway to the email-drafting automation workflow.

Two outbound calls:

1. Draft generation: ``{candidateName, keynotesFile, contacts}`` is POSTed and
   the reply is decoded into a canonical ``DraftEmail``. The call has a fixed
   deadline; giving up waiting does not mean the workflow rejected the job,
   so a timeout is reported as ``TimedOut`` rather than a network failure.
2. Finalize: ``{emailSubject, emailBody, clientList}`` is POSTed and the
   outcome only logged. The user proceeds either way.

The workflow's reply envelope has changed shape several times. Each known
envelope is a predicate + extractor pair tried in a fixed priority order; a
reply that matches none of them is a ``UnrecognizedResponseShape``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httpx

from recruitica.config import settings
from recruitica.errors import NetworkError, TimedOut, UnrecognizedResponseShape
from recruitica.models import DraftEmail, DraftRequest, FinalizeRequest, WebhookContact

logger = logging.getLogger(__name__)

HTML_DRAFT_SUBJECT = "Candidate Introduction"

_JSON_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


# ---------------------------------------------------------------------------
# Envelope decoding
# ---------------------------------------------------------------------------

def _first_item(payload: Any) -> Optional[dict]:
    if isinstance(payload, list) and payload and isinstance(payload[0], dict):
        return payload[0]
    return None


def _array_output(payload: Any) -> Optional[dict]:
    """``[{"output": {...}}]``"""
    item = _first_item(payload)
    if item is not None and isinstance(item.get("output"), dict):
        return item["output"]
    return None


def _object_output(payload: Any) -> Optional[dict]:
    """``{"output": {...}}``"""
    if isinstance(payload, dict) and isinstance(payload.get("output"), dict):
        return payload["output"]
    return None


def _array_response_body(payload: Any) -> Optional[dict]:
    """``[{"response": {"body": {...}}}]``"""
    item = _first_item(payload)
    if item is None or not isinstance(item.get("response"), dict):
        return None
    body = item["response"].get("body")
    return body if isinstance(body, dict) else None


def _bare(payload: Any) -> Optional[dict]:
    """``{"emailSubject": ..., "emailBody": ...}``"""
    if isinstance(payload, dict) and "emailSubject" in payload and "emailBody" in payload:
        return payload
    return None


ENVELOPES: list[tuple[str, Callable[[Any], Optional[dict]]]] = [
    ("array_output", _array_output),
    ("object_output", _object_output),
    ("array_response_body", _array_response_body),
    ("bare", _bare),
]


def _contacts(raw: Any, fallback: list[WebhookContact]) -> list[WebhookContact]:
    if raw is None:
        return list(fallback)
    if not isinstance(raw, list):
        raise UnrecognizedResponseShape("Draft contact list is not an array")
    try:
        return [WebhookContact.model_validate(c) for c in raw]
    except ValueError as exc:
        raise UnrecognizedResponseShape(f"Malformed draft contact: {exc}") from exc


def _decode_inner(inner: dict, fallback: list[WebhookContact]) -> Optional[DraftEmail]:
    subject = inner.get("emailSubject")
    body = inner.get("emailBody")
    if isinstance(subject, str) and isinstance(body, str):
        return DraftEmail(
            email_subject=subject,
            email_body=body,
            client_list=_contacts(inner.get("clientList"), fallback),
        )
    html = inner.get("html")
    if isinstance(html, str):
        return DraftEmail(
            email_subject=HTML_DRAFT_SUBJECT,
            email_body=html,
            client_list=_contacts(inner.get("contacts"), fallback),
            is_html=True,
        )
    return None


def parse_draft_response(
    payload: Any, contacts: list[WebhookContact] | None = None,
) -> DraftEmail:
    """Decode any known reply envelope into one canonical ``DraftEmail``.

    ``contacts`` are the contacts that were sent; they stand in when the
    reply carries no contact list of its own.
    """
    fallback = contacts or []
    for name, extract in ENVELOPES:
        inner = extract(payload)
        if inner is None:
            continue
        draft = _decode_inner(inner, fallback)
        if draft is None:
            raise UnrecognizedResponseShape(
                f"Envelope '{name}' matched but carries no emailSubject/emailBody or html"
            )
        logger.debug("Decoded draft reply using envelope %s", name)
        return draft
    raise UnrecognizedResponseShape(
        f"Unrecognized webhook response shape: {type(payload).__name__}"
    )


# ---------------------------------------------------------------------------
# Gateway
# ---------------------------------------------------------------------------

class WebhookGateway:
    """Outbound calls to the drafting and finalize workflows."""

    def __init__(
        self,
        draft_url: str | None = None,
        finalize_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.draft_url = draft_url if draft_url is not None else settings.draft_webhook_url
        self.finalize_url = (
            finalize_url if finalize_url is not None else settings.finalize_webhook_url
        )
        self.timeout = timeout if timeout is not None else settings.webhook_timeout_seconds
        self.transport = transport

    async def generate_draft(
        self,
        candidate_name: str,
        keynotes_url: str | None,
        contacts: list[WebhookContact],
    ) -> DraftEmail:
        if not self.draft_url:
            raise NetworkError("Draft webhook URL not configured")
        request = DraftRequest(
            candidate_name=candidate_name,
            keynotes_file=keynotes_url,
            contacts=contacts,
        )
        logger.info(
            "Sending draft webhook for %s with %d contacts", candidate_name, len(contacts),
        )
        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=self.timeout,
            ) as client:
                resp = await client.post(
                    self.draft_url, json=request.to_wire(), headers=_JSON_HEADERS,
                )
        except httpx.TimeoutException as exc:
            logger.warning("Draft webhook timed out after %.0fs", self.timeout)
            raise TimedOut(
                f"The email workflow did not respond within {self.timeout:.0f} seconds. "
                "It may still be processing the request."
            ) from exc
        except httpx.HTTPError as exc:
            logger.warning("Draft webhook transport failure: %s", exc)
            raise NetworkError(f"Webhook request failed: {exc}") from exc

        logger.info("Draft webhook response status: %d", resp.status_code)
        if not resp.is_success:
            raise NetworkError(
                f"Webhook request failed with status {resp.status_code}",
                status=resp.status_code,
            )
        try:
            payload = resp.json()
        except ValueError as exc:
            logger.warning("Draft webhook returned non-JSON body: %s", resp.text[:200])
            raise UnrecognizedResponseShape("Webhook response is not valid JSON") from exc
        return parse_draft_response(payload, contacts)

    async def finalize(
        self,
        email_subject: str,
        email_body: str,
        client_list: list[WebhookContact],
    ) -> bool:
        """Send the finalized email. Failures are logged and reported as ``False``."""
        if not self.finalize_url:
            logger.warning("Finalize webhook URL not configured – email not delivered")
            return False
        request = FinalizeRequest(
            email_subject=email_subject,
            email_body=email_body,
            client_list=client_list,
        )
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=None) as client:
                resp = await client.post(
                    self.finalize_url, json=request.to_wire(), headers=_JSON_HEADERS,
                )
        except httpx.HTTPError as exc:
            logger.error("Finalize webhook failed: %s", exc)
            return False
        if not resp.is_success:
            logger.error("Finalize webhook returned status %d", resp.status_code)
            return False
        logger.info("Finalized email sent to workflow (%d recipients)", len(client_list))
        return True
