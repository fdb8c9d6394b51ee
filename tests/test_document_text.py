"""Tests for public-URL resolution and document text extraction."""

from __future__ import annotations

import pytest

from recruitica.errors import StoreError, ValidationError
from recruitica.services.document_text import (
    clean_text,
    extract_document_text,
    try_extract_text,
)
from recruitica.store.files import resolve_public_url

from conftest import make_docx, make_pdf


class TestResolvePublicUrl:
    def test_bucket_follows_public_segment(self):
        url = "https://x.test/storage/v1/object/public/candidate-keynotes/user-1/abc.pdf"
        assert resolve_public_url(url) == ("candidate-keynotes", "user-1/abc.pdf")

    def test_percent_encoding_is_decoded(self):
        url = "https://x.test/storage/v1/object/public/bucket/my%20notes.txt"
        assert resolve_public_url(url) == ("bucket", "my notes.txt")

    @pytest.mark.parametrize("url", [
        "https://x.test/storage/v1/object/private/bucket/a.pdf",
        "https://x.test/storage/v1/object/public/",
        "not a url",
    ])
    def test_invalid_format(self, url):
        with pytest.raises(StoreError, match="Invalid file URL format"):
            resolve_public_url(url)


class TestCleanText:
    def test_collapses_whitespace_for_documents(self):
        assert clean_text("Line one\r\n\r\nLine   two\n", "pdf") == "Line one Line two"
        assert clean_text("a\n\nb", "docx") == "a b"

    def test_other_types_untouched(self):
        assert clean_text("a\n\n  b", "txt") == "a\n\n  b"
        assert clean_text("a\n\n  b", None) == "a\n\n  b"


class TestExtractDocumentText:
    def test_reads_text_from_real_pdf(self, file_store):
        data = make_pdf(["Senior Python Engineer Jane", "Ten years   of Django"])
        file_store.upload("candidate-keynotes", "u/cv.pdf", data)
        url = file_store.get_public_url("candidate-keynotes", "u/cv.pdf")

        result = extract_document_text(url, file_store)

        assert result.success is True
        assert result.file_type == "pdf"
        assert "Senior Python Engineer Jane" in result.text
        assert "%PDF" not in result.text
        assert "\n" not in result.text

    def test_reads_text_from_word_document(self, file_store):
        data = make_docx(["John Smith", "", "Python developer"])
        file_store.upload("candidate-keynotes", "u/cv.docx", data)
        url = file_store.get_public_url("candidate-keynotes", "u/cv.docx")

        result = extract_document_text(url, file_store)

        assert result.text == "John Smith Python developer"
        assert result.file_type == "docx"

    def test_unparseable_pdf_is_a_store_error(self, file_store):
        file_store.upload("candidate-keynotes", "u/fake.pdf", b"not really a pdf")
        url = file_store.get_public_url("candidate-keynotes", "u/fake.pdf")

        with pytest.raises(StoreError, match="Could not read PDF"):
            extract_document_text(url, file_store)
        assert try_extract_text(url, file_store) is None

    def test_plain_text_kept_verbatim(self, file_store):
        file_store.upload("notes", "u/n.txt", b"one\n\ntwo")
        url = file_store.get_public_url("notes", "u/n.txt")
        assert extract_document_text(url, file_store).text == "one\n\ntwo"

    def test_missing_url(self, file_store):
        with pytest.raises(ValidationError, match="File URL is required"):
            extract_document_text("", file_store)

    def test_missing_object(self, file_store):
        url = file_store.get_public_url("candidate-keynotes", "u/gone.pdf")
        with pytest.raises(StoreError):
            extract_document_text(url, file_store)

    def test_empty_object(self, file_store):
        file_store.upload("candidate-keynotes", "u/empty.pdf", b"")
        url = file_store.get_public_url("candidate-keynotes", "u/empty.pdf")
        with pytest.raises(StoreError, match="empty"):
            extract_document_text(url, file_store)

    def test_try_extract_yields_none_on_failure(self, file_store):
        assert try_extract_text(None, file_store) is None
        assert try_extract_text("https://x.test/elsewhere/a.pdf", file_store) is None


class TestFileStore:
    def test_upload_never_overwrites(self, file_store):
        file_store.upload("b", "u/a.pdf", b"1")
        with pytest.raises(StoreError):
            file_store.upload("b", "u/a.pdf", b"2")
        assert file_store.download("b", "u/a.pdf") == b"1"

    def test_path_traversal_rejected(self, file_store):
        with pytest.raises(StoreError):
            file_store.upload("b", "../escape.pdf", b"x")

    def test_remove_reports_missing(self, file_store):
        file_store.upload("b", "u/a.pdf", b"1")
        assert file_store.remove("b", "u/a.pdf") is True
        assert file_store.remove("b", "u/a.pdf") is False
