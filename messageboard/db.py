"""
Record store abstraction for SQL databases and an in-memory implementation.
"""

from __future__ import annotations

import copy
import enum
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional, Protocol

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    String,
    create_engine,
    delete,
    select,
)
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

THREAD_LIST_LIMIT = 10
REDACTED_TEXT = "[deleted]"


class StoreError(RuntimeError):
    """Raised when the backing store fails or cannot be reached."""


class DeleteOutcome(enum.Enum):
    NOT_FOUND = "not_found"
    WRONG_PASSWORD = "wrong_password"
    SUCCESS = "success"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class RecordStore(Protocol):
    """Interface for thread and reply persistence."""

    def create_thread(
        self, board: str, text: str, delete_password: str
    ) -> "ThreadRecord":
        ...

    def list_threads(
        self, board: str, limit: int = THREAD_LIST_LIMIT
    ) -> list["ThreadRecord"]:
        ...

    def get_thread(self, thread_id: str) -> Optional["ThreadRecord"]:
        ...

    def delete_thread(self, board: str, thread_id: str) -> bool:
        ...

    def add_reply(
        self, thread_id: str, text: str, delete_password: str
    ) -> Optional["ThreadRecord"]:
        ...

    def report_thread(self, thread_id: str) -> None:
        ...

    def report_reply(self, thread_id: str, reply_id: str) -> None:
        ...

    def delete_reply(
        self, thread_id: str, reply_id: str, delete_password: str
    ) -> DeleteOutcome:
        ...

    def reset(self) -> None:
        ...


@dataclass
class ReplyRecord:
    text: str
    delete_password: str
    reply_id: str = field(default_factory=_new_id)
    created_on: datetime = field(default_factory=lambda: _utcnow())
    reported: bool = False

    def as_dict(self) -> dict:
        return {
            "reply_id": self.reply_id,
            "text": self.text,
            "created_on": self.created_on.isoformat(),
            "reported": self.reported,
            "delete_password": self.delete_password,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReplyRecord":
        return cls(
            reply_id=data["reply_id"],
            text=data["text"],
            created_on=_as_utc(datetime.fromisoformat(data["created_on"])),
            reported=bool(data.get("reported", False)),
            delete_password=data["delete_password"],
        )


@dataclass
class ThreadRecord:
    board: str
    text: str
    delete_password: str
    thread_id: str = field(default_factory=_new_id)
    created_on: datetime = field(default_factory=lambda: _utcnow())
    bumped_on: Optional[datetime] = None
    reported: bool = False
    replies: list[ReplyRecord] = field(default_factory=list)

    def __post_init__(self):
        if self.bumped_on is None:
            self.bumped_on = self.created_on

    def find_reply(self, reply_id: str) -> Optional[ReplyRecord]:
        for reply in self.replies:
            if reply.reply_id == reply_id:
                return reply
        return None

    def add_reply(self, text: str, delete_password: str) -> ReplyRecord:
        """Append a reply and bump the thread to the reply's timestamp."""
        reply = ReplyRecord(text=text, delete_password=delete_password)
        self.replies.append(reply)
        self.bumped_on = max(reply.created_on, self.bumped_on)
        return reply

    def redact_reply(self, reply_id: str, delete_password: str) -> DeleteOutcome:
        """
        Soft-delete a reply: its text is replaced, the record stays in place
        so reply counts and ordering do not change.
        """
        reply = self.find_reply(reply_id)
        if reply is None:
            return DeleteOutcome.NOT_FOUND
        if reply.delete_password != delete_password:
            return DeleteOutcome.WRONG_PASSWORD
        reply.text = REDACTED_TEXT
        return DeleteOutcome.SUCCESS


class InMemoryRecordStore:
    """Process-local store keyed by board name, for development and tests."""

    def __init__(self):
        self.boards: Dict[str, list[ThreadRecord]] = {}
        # Sync handlers run in a thread pool.
        self._lock = threading.Lock()

    def _find(self, thread_id: str) -> Optional[ThreadRecord]:
        for threads in self.boards.values():
            for thread in threads:
                if thread.thread_id == thread_id:
                    return thread
        return None

    def create_thread(
        self, board: str, text: str, delete_password: str
    ) -> ThreadRecord:
        record = ThreadRecord(board=board, text=text, delete_password=delete_password)
        with self._lock:
            self.boards.setdefault(board, []).append(record)
            return copy.deepcopy(record)

    def list_threads(
        self, board: str, limit: int = THREAD_LIST_LIMIT
    ) -> list[ThreadRecord]:
        with self._lock:
            # Newest creation, then newest insertion, first among equal bump times.
            threads = sorted(
                reversed(self.boards.get(board, [])),
                key=lambda thread: (thread.bumped_on, thread.created_on),
                reverse=True,
            )
            return copy.deepcopy(threads[:limit])

    def get_thread(self, thread_id: str) -> Optional[ThreadRecord]:
        with self._lock:
            return copy.deepcopy(self._find(thread_id))

    def delete_thread(self, board: str, thread_id: str) -> bool:
        with self._lock:
            threads = self.boards.get(board, [])
            for index, thread in enumerate(threads):
                if thread.thread_id == thread_id:
                    del threads[index]
                    return True
            return False

    def add_reply(
        self, thread_id: str, text: str, delete_password: str
    ) -> Optional[ThreadRecord]:
        with self._lock:
            thread = self._find(thread_id)
            if thread is None:
                return None
            thread.add_reply(text, delete_password)
            return copy.deepcopy(thread)

    def report_thread(self, thread_id: str) -> None:
        with self._lock:
            thread = self._find(thread_id)
            if thread:
                thread.reported = True

    def report_reply(self, thread_id: str, reply_id: str) -> None:
        with self._lock:
            thread = self._find(thread_id)
            reply = thread.find_reply(reply_id) if thread else None
            if reply:
                reply.reported = True

    def delete_reply(
        self, thread_id: str, reply_id: str, delete_password: str
    ) -> DeleteOutcome:
        with self._lock:
            thread = self._find(thread_id)
            if thread is None:
                return DeleteOutcome.NOT_FOUND
            return thread.redact_reply(reply_id, delete_password)

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.boards.clear()


class SqlRecordStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).

    A thread is a single row with its replies embedded as a JSON array, so
    every mutation of a thread is one row update inside one transaction.
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlRecordStore")
        if database_url.startswith("sqlite") and ":memory:" in database_url:
            # A private in-memory database lives on one connection; share it
            # with every worker thread.
            engine_kwargs = {
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            }
        else:
            engine_kwargs = {"pool_pre_ping": True, "pool_recycle": 1800}
        self.engine = create_engine(database_url, future=True, **engine_kwargs)
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StoreError(f"Could not initialise record store: {exc}") from exc

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(str(exc)) from exc

    @staticmethod
    def _locked_row(session: Session, thread_id: str) -> Optional["ThreadRow"]:
        stmt = (
            select(ThreadRow)
            .where(ThreadRow.thread_id == thread_id)
            .with_for_update()
        )
        return session.execute(stmt).scalar_one_or_none()

    @staticmethod
    def _to_record(row: "ThreadRow") -> ThreadRecord:
        return ThreadRecord(
            thread_id=row.thread_id,
            board=row.board,
            text=row.text,
            delete_password=row.delete_password,
            created_on=_as_utc(row.created_on),
            bumped_on=_as_utc(row.bumped_on),
            reported=row.reported,
            replies=[ReplyRecord.from_dict(item) for item in row.replies or []],
        )

    @staticmethod
    def _store_replies(row: "ThreadRow", record: ThreadRecord) -> None:
        # Assign a fresh list so the JSON column is flagged as modified.
        row.replies = [reply.as_dict() for reply in record.replies]

    def create_thread(
        self, board: str, text: str, delete_password: str
    ) -> ThreadRecord:
        record = ThreadRecord(board=board, text=text, delete_password=delete_password)
        with self._session() as session:
            session.add(
                ThreadRow(
                    thread_id=record.thread_id,
                    board=record.board,
                    text=record.text,
                    created_on=record.created_on,
                    bumped_on=record.bumped_on,
                    reported=record.reported,
                    delete_password=record.delete_password,
                    replies=[],
                )
            )
            session.commit()
        return record

    def list_threads(
        self, board: str, limit: int = THREAD_LIST_LIMIT
    ) -> list[ThreadRecord]:
        with self._session() as session:
            stmt = (
                select(ThreadRow)
                .where(ThreadRow.board == board)
                .order_by(ThreadRow.bumped_on.desc(), ThreadRow.created_on.desc())
                .limit(limit)
            )
            rows = session.execute(stmt).scalars().all()
            return [self._to_record(row) for row in rows]

    def get_thread(self, thread_id: str) -> Optional[ThreadRecord]:
        with self._session() as session:
            row = session.get(ThreadRow, thread_id)
            return self._to_record(row) if row else None

    def delete_thread(self, board: str, thread_id: str) -> bool:
        with self._session() as session:
            result = session.execute(
                delete(ThreadRow).where(
                    ThreadRow.thread_id == thread_id, ThreadRow.board == board
                )
            )
            session.commit()
            return bool(result.rowcount)

    def add_reply(
        self, thread_id: str, text: str, delete_password: str
    ) -> Optional[ThreadRecord]:
        with self._session() as session:
            row = self._locked_row(session, thread_id)
            if not row:
                return None
            record = self._to_record(row)
            record.add_reply(text, delete_password)
            self._store_replies(row, record)
            row.bumped_on = record.bumped_on
            session.commit()
            return record

    def report_thread(self, thread_id: str) -> None:
        with self._session() as session:
            row = self._locked_row(session, thread_id)
            if not row:
                return
            row.reported = True
            session.commit()

    def report_reply(self, thread_id: str, reply_id: str) -> None:
        with self._session() as session:
            row = self._locked_row(session, thread_id)
            if not row:
                return
            record = self._to_record(row)
            reply = record.find_reply(reply_id)
            if not reply:
                return
            reply.reported = True
            self._store_replies(row, record)
            session.commit()

    def delete_reply(
        self, thread_id: str, reply_id: str, delete_password: str
    ) -> DeleteOutcome:
        with self._session() as session:
            row = self._locked_row(session, thread_id)
            if not row:
                return DeleteOutcome.NOT_FOUND
            record = self._to_record(row)
            outcome = record.redact_reply(reply_id, delete_password)
            if outcome is DeleteOutcome.SUCCESS:
                self._store_replies(row, record)
                session.commit()
            return outcome

    def reset(self) -> None:
        with self._session() as session:
            session.execute(delete(ThreadRow))
            session.commit()


Base = declarative_base()


class ThreadRow(Base):
    __tablename__ = "threads"

    thread_id = Column(String, primary_key=True)
    board = Column(String, nullable=False, index=True)
    text = Column(String, nullable=False)
    created_on = Column(DateTime(timezone=True), nullable=False)
    bumped_on = Column(DateTime(timezone=True), nullable=False, index=True)
    reported = Column(Boolean, nullable=False, default=False)
    delete_password = Column(String, nullable=False)
    replies = Column(JSON, nullable=False, default=list)
