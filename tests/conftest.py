"""Shared test fixtures."""

from __future__ import annotations

import io
import json
import os

import httpx
import pytest
from docx import Document
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas

# Force a throwaway SQLite database and no outbound credentials for tests
os.environ["DATABASE_URL"] = "sqlite:///./test_recruitica.db"
os.environ["OPENROUTER_API_KEY"] = ""
os.environ["DRAFT_WEBHOOK_URL"] = ""
os.environ["FINALIZE_WEBHOOK_URL"] = ""
os.environ["API_KEY"] = ""  # disable auth for tests
os.environ["STORAGE_DIR"] = "./test_storage"

from recruitica.store.database import Base, get_engine, get_session
from recruitica.store.files import FileStore

TEST_DB_URL = "sqlite:///./test_recruitica.db"
DRAFT_URL = "https://automation.test/webhook/draft"
FINALIZE_URL = "https://automation.test/webhook/finalize"


@pytest.fixture(autouse=True)
def setup_test_db():
    """Create a fresh database for each test."""
    engine = get_engine(TEST_DB_URL)
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    yield
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db_session():
    """Provide a database session for tests."""
    session = get_session(TEST_DB_URL)
    yield session
    session.close()


@pytest.fixture
def file_store(tmp_path) -> FileStore:
    return FileStore(root=tmp_path / "storage", public_base_url="http://files.test")


@pytest.fixture
def inner_draft() -> dict:
    """The draft payload the automation workflow wraps in its various envelopes."""
    return {
        "emailSubject": "S",
        "emailBody": "B",
        "clientList": [
            {"name": "Jane Doe", "email": "jane@x.com", "company": "Acme"},
        ],
    }


@pytest.fixture
def envelopes(inner_draft) -> dict[str, object]:
    """Every reply envelope the workflow has used, all carrying the same draft."""
    return {
        "array_output": [{"output": inner_draft}],
        "object_output": {"output": inner_draft},
        "array_response_body": [{"response": {"body": inner_draft}}],
        "bare": dict(inner_draft),
    }


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, handler):
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    def json_bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]


@pytest.fixture
def json_transport():
    """Factory: a transport answering every request with ``payload``."""
    def _make(payload, status_code: int = 200) -> RecordingTransport:
        return RecordingTransport(lambda request: httpx.Response(status_code, json=payload))
    return _make


def make_pdf(lines: list[str]) -> bytes:
    """A real one-page PDF with each line drawn as text."""
    buffer = io.BytesIO()
    pdf = canvas.Canvas(buffer, pagesize=letter)
    y = 720
    for line in lines:
        pdf.drawString(72, y, line)
        y -= 20
    pdf.showPage()
    pdf.save()
    return buffer.getvalue()


def make_docx(paragraphs: list[str]) -> bytes:
    """A real Word document with one paragraph per entry."""
    document = Document()
    for text in paragraphs:
        document.add_paragraph(text)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()
