"""
Database abstraction for Postgres and an in-memory test implementation.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Protocol

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Integer,
    String,
    Text,
    create_engine,
    func,
    or_,
    select,
)
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from shared.types import EventStatus, EventType


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so stored dates stay comparable."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class DbClient(Protocol):
    """Interface for database access."""

    def create_event(self, record: "EventRecord") -> "EventRecord":
        ...

    def get_event(self, event_id: str) -> Optional["EventRecord"]:
        ...

    def list_events(self) -> list["EventRecord"]:
        ...

    def search_events(self, query: str) -> list["EventRecord"]:
        ...

    def save_event(self, record: "EventRecord") -> "EventRecord":
        ...

    def delete_event(self, event_id: str) -> bool:
        ...

    def add_participant(self, event_id: str, user_id: str) -> None:
        ...

    def save_user(self, user: "UserRecord") -> None:
        ...

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, "UserRecord"]:
        ...


@dataclass
class UserRecord:
    user_id: str
    name: str
    email: str


@dataclass
class EventRecord:
    title: str
    description: str
    event_type: EventType
    date: datetime
    location: str
    organizer_id: str
    image: str = ""
    participant_ids: list[str] = field(default_factory=list)
    max_participants: int = 0
    status: EventStatus = EventStatus.UPCOMING
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def copy(self) -> "EventRecord":
        return replace(self, participant_ids=list(self.participant_ids))

    def matches(self, query: str) -> bool:
        """Case-insensitive substring match on title, description or type."""
        needle = query.lower()
        return any(
            needle in value.lower()
            for value in (self.title, self.description, self.event_type.value)
        )


def _sort_key(record: EventRecord) -> tuple[datetime, datetime]:
    return as_utc(record.date), as_utc(record.created_at)


class InMemoryDbClient:
    """Simple in-memory database for development and tests."""

    def __init__(self):
        self.events: Dict[str, EventRecord] = {}
        self.users: Dict[str, UserRecord] = {}

    def create_event(self, record: EventRecord) -> EventRecord:
        now = utcnow()
        stored = replace(record.copy(), created_at=now, updated_at=now)
        self.events[stored.event_id] = stored
        return stored.copy()

    def get_event(self, event_id: str) -> Optional[EventRecord]:
        record = self.events.get(event_id)
        return record.copy() if record else None

    def list_events(self) -> list[EventRecord]:
        return [record.copy() for record in sorted(self.events.values(), key=_sort_key)]

    def search_events(self, query: str) -> list[EventRecord]:
        return [record for record in self.list_events() if record.matches(query)]

    def save_event(self, record: EventRecord) -> EventRecord:
        if record.event_id not in self.events:
            raise KeyError(record.event_id)
        stored = replace(record.copy(), updated_at=utcnow())
        self.events[stored.event_id] = stored
        return stored.copy()

    def delete_event(self, event_id: str) -> bool:
        return self.events.pop(event_id, None) is not None

    def add_participant(self, event_id: str, user_id: str) -> None:
        record = self.events.get(event_id)
        if record:
            record.participant_ids.append(user_id)
            record.updated_at = utcnow()

    def save_user(self, user: UserRecord) -> None:
        self.users[user.user_id] = replace(user)

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserRecord]:
        return {
            user_id: self.users[user_id]
            for user_id in set(user_ids)
            if user_id in self.users
        }

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        self.events.clear()
        self.users.clear()


class PostgresDbClient:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for PostgresDbClient")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    def _to_event_record(self, row: "EventRow") -> EventRecord:
        return EventRecord(
            event_id=row.id,
            title=row.title,
            description=row.description,
            event_type=EventType(row.event_type),
            date=as_utc(row.date),
            location=row.location,
            organizer_id=row.organizer_id,
            image=row.image or "",
            participant_ids=list(row.participants or []),
            max_participants=row.max_participants or 0,
            status=EventStatus(row.status),
            created_at=as_utc(row.created_at),
            updated_at=as_utc(row.updated_at),
        )

    def _ordered(self):
        return select(EventRow).order_by(
            EventRow.date.asc(), EventRow.created_at.asc()
        )

    def create_event(self, record: EventRecord) -> EventRecord:
        now = utcnow()
        with self.Session() as session:
            row = EventRow(
                id=record.event_id,
                title=record.title,
                description=record.description,
                event_type=record.event_type.value,
                date=record.date,
                location=record.location,
                image=record.image,
                organizer_id=record.organizer_id,
                participants=list(record.participant_ids),
                max_participants=record.max_participants,
                status=record.status.value,
                created_at=now,
                updated_at=now,
            )
            session.add(row)
            session.commit()
            session.refresh(row)
            return self._to_event_record(row)

    def get_event(self, event_id: str) -> Optional[EventRecord]:
        with self.Session() as session:
            row = session.get(EventRow, event_id)
            if not row:
                return None
            return self._to_event_record(row)

    def list_events(self) -> list[EventRecord]:
        with self.Session() as session:
            rows = session.execute(self._ordered()).scalars().all()
            return [self._to_event_record(row) for row in rows]

    def search_events(self, query: str) -> list[EventRecord]:
        needle = query.lower()
        stmt = self._ordered().where(
            or_(
                func.lower(EventRow.title).contains(needle, autoescape=True),
                func.lower(EventRow.description).contains(needle, autoescape=True),
                func.lower(EventRow.event_type).contains(needle, autoescape=True),
            )
        )
        with self.Session() as session:
            rows = session.execute(stmt).scalars().all()
            return [self._to_event_record(row) for row in rows]

    def save_event(self, record: EventRecord) -> EventRecord:
        with self.Session() as session:
            row = session.get(EventRow, record.event_id)
            if not row:
                raise KeyError(record.event_id)
            row.title = record.title
            row.description = record.description
            row.event_type = record.event_type.value
            row.date = record.date
            row.location = record.location
            row.image = record.image
            row.participants = list(record.participant_ids)
            row.max_participants = record.max_participants
            row.status = record.status.value
            row.updated_at = utcnow()
            session.commit()
            session.refresh(row)
            return self._to_event_record(row)

    def delete_event(self, event_id: str) -> bool:
        with self.Session() as session:
            row = session.get(EventRow, event_id)
            if not row:
                return False
            session.delete(row)
            session.commit()
            return True

    def add_participant(self, event_id: str, user_id: str) -> None:
        with self.Session() as session:
            row = session.get(EventRow, event_id)
            if not row:
                return
            # Reassign so the JSON column is flagged dirty.
            row.participants = list(row.participants or []) + [user_id]
            row.updated_at = utcnow()
            session.commit()

    def save_user(self, user: UserRecord) -> None:
        with self.Session() as session:
            existing = session.get(UserRow, user.user_id)
            if existing:
                existing.name = user.name
                existing.email = user.email
            else:
                session.add(
                    UserRow(id=user.user_id, name=user.name, email=user.email)
                )
            session.commit()

    def get_users(self, user_ids: Iterable[str]) -> Dict[str, UserRecord]:
        ids = set(user_ids)
        if not ids:
            return {}
        with self.Session() as session:
            rows = session.execute(
                select(UserRow).where(UserRow.id.in_(ids))
            ).scalars()
            return {
                row.id: UserRecord(user_id=row.id, name=row.name, email=row.email)
                for row in rows
            }


Base = declarative_base()


class EventRow(Base):
    __tablename__ = "events"

    id = Column(String, primary_key=True)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    event_type = Column(String, nullable=False)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    location = Column(String, nullable=False)
    image = Column(String, nullable=False, default="")
    organizer_id = Column(String, nullable=False, index=True)
    participants = Column(JSON, nullable=False, default=list)
    max_participants = Column(Integer, nullable=False, default=0)
    status = Column(String, nullable=False, default=EventStatus.UPCOMING.value)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class UserRow(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    email = Column(String, nullable=False)
