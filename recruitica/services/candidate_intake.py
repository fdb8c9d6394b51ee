"""Candidate intake: upload validation, keynotes upload and record creation.

Flow: NO_LISTS_YET -> EDITING -> SUBMITTING -> SUBMITTED. A user without any
client list never reaches EDITING; after SUBMITTED the client moves on to
client selection for the same candidate.
"""

from __future__ import annotations

import logging
import mimetypes
import secrets
from dataclasses import dataclass, field
from pathlib import PurePath

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from recruitica.config import settings
from recruitica.errors import StoreError, ValidationError
from recruitica.models import IntakeState
from recruitica.services.client_directory import ClientDirectory
from recruitica.store.database import CandidateRecord, ClientListRecord
from recruitica.store.files import FileStore

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = {
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
}
INVALID_FILE_MESSAGE = "Please upload a PDF or Word document"
NEXT_SCREEN = "/candidate/select-clients"
REDIRECT_AFTER_SECONDS = 3


@dataclass
class KeynotesUpload:
    """A validated document ready to be stored."""
    filename: str
    content_type: str
    extension: str
    data: bytes


def validate_upload(filename: str, content_type: str | None, data: bytes) -> KeynotesUpload:
    """Accept PDF/DOC/DOCX only; reject anything else before touching storage.

    The declared content type decides. When it is missing or the generic
    ``application/octet-stream``, the type guessed from the filename is used.
    """
    ctype = (content_type or "").split(";")[0].strip().lower()
    if not ctype or ctype == "application/octet-stream":
        ctype = (mimetypes.guess_type(filename or "")[0] or "").lower()
        if not ctype and PurePath(filename or "").suffix.lower() == ".docx":
            ctype = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
    extension = ALLOWED_CONTENT_TYPES.get(ctype)
    if extension is None:
        logger.info("Rejected upload %r with content type %r", filename, content_type)
        raise ValidationError(INVALID_FILE_MESSAGE)
    return KeynotesUpload(
        filename=filename, content_type=ctype, extension=extension, data=data,
    )


@dataclass
class IntakeFlow:
    """State of one candidate submission."""
    state: IntakeState = IntakeState.no_lists_yet
    candidate: CandidateRecord | None = None
    client_lists: list[ClientListRecord] = field(default_factory=list)

    @property
    def next_screen(self) -> str | None:
        return NEXT_SCREEN if self.state is IntakeState.submitted else None

    @property
    def redirect_after_seconds(self) -> int | None:
        return REDIRECT_AFTER_SECONDS if self.state is IntakeState.submitted else None


class CandidateIntake:
    """Owner-scoped candidate submission."""

    def __init__(
        self,
        session: Session,
        user_id: str,
        files: FileStore | None = None,
        bucket: str | None = None,
    ):
        self.session = session
        self.user_id = user_id
        self.files = files or FileStore()
        self.bucket = bucket or settings.keynotes_bucket
        self.directory = ClientDirectory(session, user_id)

    def begin(self) -> IntakeFlow:
        """Open the form, or short-circuit when there is no list to submit against."""
        lists = self.directory.list_lists()
        state = IntakeState.editing if lists else IntakeState.no_lists_yet
        return IntakeFlow(state=state, client_lists=lists)

    def submit(
        self,
        candidate_name: str,
        client_list_id: int,
        upload: KeynotesUpload | None = None,
        flow: IntakeFlow | None = None,
    ) -> IntakeFlow:
        flow = flow or self.begin()
        if flow.state is IntakeState.no_lists_yet:
            raise ValidationError("Create a client list before submitting a candidate.")
        if flow.state is not IntakeState.editing:
            raise ValidationError(f"Cannot submit from state {flow.state.value}")

        name = (candidate_name or "").strip()
        if len(name) < 2:
            raise ValidationError("Candidate name must be at least 2 characters.")
        self.directory.get_list(client_list_id)

        flow.state = IntakeState.submitting
        try:
            flow.candidate = self._create(name, client_list_id, upload)
        except Exception:
            flow.state = IntakeState.editing
            raise
        flow.state = IntakeState.submitted
        return flow

    def latest_candidate(self) -> CandidateRecord | None:
        return (
            self.session.query(CandidateRecord)
            .filter(CandidateRecord.user_id == self.user_id)
            .order_by(CandidateRecord.created_at.desc(), CandidateRecord.id.desc())
            .first()
        )

    def get_candidate(self, candidate_id: int) -> CandidateRecord:
        record = (
            self.session.query(CandidateRecord)
            .filter(
                CandidateRecord.id == candidate_id,
                CandidateRecord.user_id == self.user_id,
            )
            .first()
        )
        if record is None:
            raise StoreError(f"Candidate {candidate_id} not found", not_found=True)
        return record

    def _create(
        self, name: str, client_list_id: int, upload: KeynotesUpload | None,
    ) -> CandidateRecord:
        object_path = None
        keynotes_url = None
        if upload is not None:
            object_path = f"{self.user_id}/{secrets.token_hex(8)}.{upload.extension}"
            self.files.upload(self.bucket, object_path, upload.data)
            keynotes_url = self.files.get_public_url(self.bucket, object_path)

        record = CandidateRecord(
            user_id=self.user_id,
            candidate_name=name,
            keynotes_url=keynotes_url,
            client_list_id=client_list_id,
        )
        self.session.add(record)
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            if object_path:
                # Compensate so the upload is not orphaned.
                self.files.remove(self.bucket, object_path)
            orig = getattr(exc, "orig", None)
            raise StoreError(str(orig) if orig is not None else str(exc)) from exc
        self.session.refresh(record)
        logger.info(
            "Submitted candidate %d (%s) against list %d",
            record.id, name, client_list_id,
        )
        return record
