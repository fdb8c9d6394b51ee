"""SQLAlchemy models and database initialisation.

Schema is designed for SQLite local dev with a clean migration path to
Supabase Postgres (swap the DATABASE_URL, create_all on first boot).
Every row is owned by a ``user_id``; ownership filtering happens in the
service layer.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    event,
)
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from recruitica.config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()


# ---------------------------------------------------------------------------
# Client directory
# ---------------------------------------------------------------------------

class ClientRecord(Base):
    """A company contact, global per owner and joined on email."""
    __tablename__ = "clients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False, index=True)
    name = Column(String(512), nullable=False, index=True)
    email = Column(String(512), nullable=False)
    company_name = Column(String(512), nullable=False, default="")
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "email", name="uq_clients_user_email"),
    )


class ClientListRecord(Base):
    """A named, user-owned grouping of clients."""
    __tablename__ = "client_lists"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False, index=True)
    name = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    entries = relationship(
        "ClientListEntryRecord",
        back_populates="client_list",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ClientListEntryRecord(Base):
    """Soft membership of a client in a list; toggling never deletes the row."""
    __tablename__ = "client_list_entries"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_list_id = Column(
        Integer, ForeignKey("client_lists.id", ondelete="CASCADE"), nullable=False,
    )
    client_id = Column(
        Integer, ForeignKey("clients.id", ondelete="CASCADE"), nullable=False,
    )
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    client_list = relationship("ClientListRecord", back_populates="entries")
    client = relationship("ClientRecord", backref="entries")

    __table_args__ = (
        UniqueConstraint("client_list_id", "client_id", name="uq_entries_list_client"),
        # Entry ids are never reused after a removal.
        {"sqlite_autoincrement": True},
    )


# ---------------------------------------------------------------------------
# Candidates
# ---------------------------------------------------------------------------

class CandidateRecord(Base):
    """A person being placed; immutable once submitted."""
    __tablename__ = "candidates"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(128), nullable=False, index=True)
    candidate_name = Column(String(512), nullable=False)
    keynotes_url = Column(String(2048), nullable=True)
    client_list_id = Column(
        Integer, ForeignKey("client_lists.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = Column(DateTime, default=datetime.utcnow, index=True)

    client_list = relationship("ClientListRecord")


# ---------------------------------------------------------------------------
# Engine / session helpers
# ---------------------------------------------------------------------------

def _enable_sqlite_foreign_keys(dbapi_conn, _record) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(url: str | None = None):
    url = url or settings.effective_database_url
    connect_args = {}
    if url.startswith("sqlite"):
        connect_args["check_same_thread"] = False
    engine = create_engine(url, echo=False, connect_args=connect_args)
    if url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_session_factory(url: str | None = None) -> sessionmaker:
    engine = get_engine(url)
    return sessionmaker(bind=engine)


def init_db(url: str | None = None) -> None:
    """Create all tables if they don't exist."""
    engine = get_engine(url)
    Base.metadata.create_all(engine)
    logger.info("Database tables verified")


def get_session(url: str | None = None) -> Session:
    factory = get_session_factory(url)
    return factory()
