"""Pydantic models for the recruitment workflow.

Field aliases keep the camelCase names the automation workflow and the
browser client exchange on the wire, while Python code uses snake_case.
"""

from __future__ import annotations

import re
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(p.title() for p in rest)


class WireModel(BaseModel):
    """Base for payloads exchanged in camelCase."""
    model_config = ConfigDict(alias_generator=_camel, populate_by_name=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


# ---------------------------------------------------------------------------
# Directory
# ---------------------------------------------------------------------------

class ClientIn(BaseModel):
    name: str = Field(..., description="Client contact name")
    email: str
    company_name: str

    @field_validator("name")
    @classmethod
    def _name_len(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Client name must be at least 2 characters.")
        return v

    @field_validator("company_name")
    @classmethod
    def _company_len(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Company name must be at least 2 characters.")
        return v

    @field_validator("email")
    @classmethod
    def _email_format(cls, v: str) -> str:
        v = v.strip()
        if not _EMAIL_RE.match(v):
            raise ValueError("Please enter a valid email address.")
        return v


class ClientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    company_name: str


class ClientEntryOut(ClientOut):
    """A client as seen through one list, with its membership flag."""
    entry_id: int
    is_active: bool


class EntryOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    client_list_id: int
    client_id: int
    is_active: bool


class ClientListIn(BaseModel):
    name: str
    description: Optional[str] = None

    @field_validator("name")
    @classmethod
    def _name_len(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Client list name must be at least 2 characters.")
        return v


class ClientListOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    created_at: Optional[datetime] = None


class BatchAttachIn(BaseModel):
    client_ids: list[int] = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------

class CandidateOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    candidate_name: str
    keynotes_url: Optional[str] = None
    client_list_id: Optional[int] = None
    created_at: Optional[datetime] = None


class IntakeState(str, Enum):
    no_lists_yet = "NO_LISTS_YET"
    editing = "EDITING"
    submitting = "SUBMITTING"
    submitted = "SUBMITTED"


class IntakeView(BaseModel):
    state: IntakeState
    client_lists: list[ClientListOut] = Field(default_factory=list)
    candidate: Optional[CandidateOut] = None
    next_screen: Optional[str] = None
    redirect_after_seconds: Optional[int] = None


# ---------------------------------------------------------------------------
# Webhook payloads
# ---------------------------------------------------------------------------

class WebhookContact(BaseModel):
    name: str
    email: str
    company: str = ""


class DraftRequest(WireModel):
    candidate_name: str
    keynotes_file: Optional[str] = None
    contacts: list[WebhookContact] = Field(default_factory=list)


class DraftEmail(WireModel):
    """Canonical draft produced by the automation workflow. Never persisted."""
    email_subject: str
    email_body: str
    client_list: list[WebhookContact] = Field(default_factory=list)
    is_html: bool = False


class FinalizeRequest(WireModel):
    email_subject: str = "Candidate Introduction"
    email_body: str
    client_list: list[WebhookContact] = Field(default_factory=list)


class GenerateDraftIn(BaseModel):
    client_list_id: int
    candidate_id: Optional[int] = None


# ---------------------------------------------------------------------------
# AI gateway
# ---------------------------------------------------------------------------

class TuneIn(BaseModel):
    model: str
    email_body: str


class RefineIn(BaseModel):
    model: str
    html: str
    instruction: str = Field(..., min_length=1)


class RefineOut(BaseModel):
    html: str
    preview_html: str


class ExtractIn(WireModel):
    file_url: Optional[str] = None


class ExtractOut(WireModel):
    success: bool
    text: Optional[str] = None
    file_type: Optional[str] = None
    error: Optional[str] = None
