"""Client directory: client lists, list membership, search and dedup.

Clients are global per owner and joined on email. Lists hold soft
memberships (``client_list_entries.is_active``) so a client can be switched
off for one outreach round without losing its place in the list.

Store failures surface their message unchanged as ``StoreError``; nothing
here retries.
"""

from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from recruitica.config import settings
from recruitica.errors import DuplicateInListError, StoreError
from recruitica.models import ClientEntryOut, WebhookContact
from recruitica.store.database import (
    ClientListEntryRecord,
    ClientListRecord,
    ClientRecord,
)

logger = logging.getLogger(__name__)


def _store_message(exc: SQLAlchemyError) -> str:
    orig = getattr(exc, "orig", None)
    return str(orig) if orig is not None else str(exc)


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class ClientDirectory:
    """Owner-scoped operations over clients, lists and entries."""

    def __init__(self, session: Session, user_id: str, result_cap: int | None = None):
        self.session = session
        self.user_id = user_id
        self.result_cap = result_cap or settings.search_result_cap

    # -- lists ---------------------------------------------------------------

    def create_list(self, name: str, description: str | None = None) -> ClientListRecord:
        record = ClientListRecord(
            user_id=self.user_id,
            name=name,
            description=description or None,
        )
        self._commit(record)
        logger.info("Created client list %d (%s)", record.id, name)
        return record

    def list_lists(self) -> list[ClientListRecord]:
        return (
            self.session.query(ClientListRecord)
            .filter(ClientListRecord.user_id == self.user_id)
            .order_by(ClientListRecord.created_at.desc(), ClientListRecord.id.desc())
            .all()
        )

    def get_list(self, list_id: int) -> ClientListRecord:
        record = (
            self.session.query(ClientListRecord)
            .filter(
                ClientListRecord.id == list_id,
                ClientListRecord.user_id == self.user_id,
            )
            .first()
        )
        if record is None:
            raise StoreError(f"Client list {list_id} not found", not_found=True)
        return record

    def delete_list(self, list_id: int) -> None:
        record = self.get_list(list_id)
        try:
            self.session.delete(record)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(_store_message(exc)) from exc
        logger.info("Deleted client list %d", list_id)

    # -- entries -------------------------------------------------------------

    def list_entries(self, list_id: int) -> list[ClientEntryOut]:
        """Clients of a list, active and inactive, ordered by name."""
        self.get_list(list_id)
        rows = (
            self.session.query(ClientListEntryRecord, ClientRecord)
            .join(ClientRecord, ClientRecord.id == ClientListEntryRecord.client_id)
            .filter(ClientListEntryRecord.client_list_id == list_id)
            .order_by(ClientRecord.name)
            .all()
        )
        return [
            ClientEntryOut(
                id=client.id,
                name=client.name,
                email=client.email,
                company_name=client.company_name,
                entry_id=entry.id,
                is_active=entry.is_active,
            )
            for entry, client in rows
        ]

    def active_contacts(self, list_id: int) -> list[WebhookContact]:
        """Contacts eligible for outreach: active entries only."""
        return [
            WebhookContact(name=c.name, email=c.email, company=c.company_name)
            for c in self.list_entries(list_id)
            if c.is_active
        ]

    def search(self, query: str, list_id: int) -> list[ClientRecord]:
        """Case-insensitive substring search excluding clients already in the list.

        Entries count whether active or not. The result is capped; there is
        no pagination.
        """
        self.get_list(list_id)
        in_list = select(ClientListEntryRecord.client_id).where(
            ClientListEntryRecord.client_list_id == list_id
        )
        q = (
            self.session.query(ClientRecord)
            .filter(ClientRecord.user_id == self.user_id)
            .filter(~ClientRecord.id.in_(in_list))
        )
        term = (query or "").strip().lower()
        if term:
            pattern = f"%{_escape_like(term)}%"
            q = q.filter(
                or_(
                    func.lower(ClientRecord.name).like(pattern, escape="\\"),
                    func.lower(ClientRecord.email).like(pattern, escape="\\"),
                    func.lower(ClientRecord.company_name).like(pattern, escape="\\"),
                )
            )
        return q.order_by(ClientRecord.name).limit(self.result_cap).all()

    def add_or_attach(
        self, email: str, name: str, company: str, list_id: int,
    ) -> ClientRecord:
        """Attach the client with this email to the list, creating it if needed.

        Raises ``DuplicateInListError`` when the client already has an entry
        in the list. The lookup, insert and attach happen in one transaction;
        a concurrent insert of the same email trips the unique constraint and
        is resolved by re-fetching the winner's row.
        """
        self.get_list(list_id)
        email = email.strip()

        client = self._find_by_email(email)
        created = False
        if client is None:
            client = ClientRecord(
                user_id=self.user_id, name=name, email=email, company_name=company,
            )
            self.session.add(client)
            try:
                self.session.flush()
                created = True
            except IntegrityError:
                self.session.rollback()
                client = self._find_by_email(email)
                if client is None:
                    raise StoreError(f"Could not create client {email}")
                logger.info("Client %s inserted concurrently; attaching existing row", email)
            except SQLAlchemyError as exc:
                self.session.rollback()
                raise StoreError(_store_message(exc)) from exc

        if not created and self._entry(client.id, list_id) is not None:
            raise DuplicateInListError(
                f"{client.name} ({client.email}) is already in this list"
            )

        entry = ClientListEntryRecord(
            client_list_id=list_id, client_id=client.id, is_active=True,
        )
        self.session.add(entry)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateInListError(
                f"{email} is already in this list"
            ) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(_store_message(exc)) from exc
        self.session.refresh(client)

        logger.info(
            "%s client %d (%s) to list %d",
            "Created and attached" if created else "Attached existing",
            client.id, email, list_id,
        )
        return client

    def toggle_active(self, client_id: int, list_id: int) -> ClientListEntryRecord:
        """Flip ``is_active`` on the entry; the row is never removed."""
        self.get_list(list_id)
        entry = self._entry(client_id, list_id)
        if entry is None:
            raise StoreError(
                f"Client {client_id} is not in list {list_id}", not_found=True,
            )
        entry.is_active = not entry.is_active
        self._commit(entry)
        return entry

    def remove(self, client_id: int, list_id: int) -> None:
        """Delete the entry. The client itself stays in the directory."""
        self.get_list(list_id)
        entry = self._entry(client_id, list_id)
        if entry is None:
            raise StoreError(
                f"Client {client_id} is not in list {list_id}", not_found=True,
            )
        try:
            self.session.delete(entry)
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(_store_message(exc)) from exc

    def batch_attach(self, client_ids: list[int], list_id: int) -> list[ClientListEntryRecord]:
        """Attach many clients in one transaction; all or nothing."""
        self.get_list(list_id)
        ids = list(dict.fromkeys(client_ids))
        owned = {
            cid for (cid,) in self.session.query(ClientRecord.id).filter(
                ClientRecord.user_id == self.user_id,
                ClientRecord.id.in_(ids),
            )
        }
        missing = [cid for cid in ids if cid not in owned]
        if missing:
            raise StoreError(f"Unknown client ids: {missing}", not_found=True)

        entries = [
            ClientListEntryRecord(client_list_id=list_id, client_id=cid, is_active=True)
            for cid in ids
        ]
        self.session.add_all(entries)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise DuplicateInListError(_store_message(exc)) from exc
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(_store_message(exc)) from exc
        for entry in entries:
            self.session.refresh(entry)
        logger.info("Attached %d clients to list %d", len(entries), list_id)
        return entries

    # -- helpers ---------------------------------------------------------------

    def _find_by_email(self, email: str) -> ClientRecord | None:
        return (
            self.session.query(ClientRecord)
            .filter(ClientRecord.user_id == self.user_id, ClientRecord.email == email)
            .first()
        )

    def _entry(self, client_id: int, list_id: int) -> ClientListEntryRecord | None:
        return (
            self.session.query(ClientListEntryRecord)
            .filter(
                ClientListEntryRecord.client_list_id == list_id,
                ClientListEntryRecord.client_id == client_id,
            )
            .first()
        )

    def _commit(self, record) -> None:
        self.session.add(record)
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreError(_store_message(exc)) from exc
        self.session.refresh(record)
