"""
Event resource operations on top of the db and storage clients.

Handlers in ``events_backend.routes`` stay thin: they turn form data into an
``EventDraft`` or ``EventPatch`` and call into ``EventService``. Ownership
checks, upload handling and reference expansion all live here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Optional, Union

from events_backend.db import DbClient, EventRecord, UserRecord
from events_backend.errors import (
    EventNotFoundError,
    EventValidationError,
    NotAuthorizedError,
)
from events_backend.storage import StorageClient
from shared.types import EventStatus, EventType

logger = logging.getLogger(__name__)


@dataclass
class ImageUpload:
    filename: Optional[str]
    data: bytes


@dataclass
class EventDraft:
    """Fields supplied when creating an event."""

    title: Optional[str]
    description: Optional[str]
    event_type: Optional[str]
    date: Union[str, datetime, None]
    location: Optional[str]
    max_participants: Union[str, int, None] = None


@dataclass
class EventPatch:
    """Partial update. ``None`` means the field was not supplied."""

    title: Optional[str] = None
    description: Optional[str] = None
    event_type: Optional[str] = None
    date: Union[str, datetime, None] = None
    location: Optional[str] = None
    max_participants: Union[str, int, None] = None
    status: Optional[str] = None


@dataclass
class UserSummary:
    user_id: str
    name: Optional[str] = None
    email: Optional[str] = None


@dataclass
class EventView:
    """An event with organizer and participants expanded."""

    record: EventRecord
    organizer: UserSummary
    participants: list[UserSummary] = field(default_factory=list)


def is_owner(event: EventRecord, caller_id: Optional[str]) -> bool:
    return bool(caller_id) and event.organizer_id == caller_id


def _required_text(name: str, value: Optional[str], *, strip: bool = False) -> str:
    if value is None:
        raise EventValidationError(f"{name} is required")
    text = value.strip() if strip else value
    if not text:
        raise EventValidationError(f"{name} must not be empty")
    return text


def _parse_event_type(value: Optional[str]) -> EventType:
    try:
        return EventType(value)
    except ValueError as e:
        raise EventValidationError(f"Invalid eventType: {value!r}") from e


def _parse_status(value: Optional[str]) -> EventStatus:
    try:
        return EventStatus(value)
    except ValueError as e:
        raise EventValidationError(f"Invalid status: {value!r}") from e


def _parse_date(value: Union[str, datetime, None]) -> datetime:
    if value is None:
        raise EventValidationError("date is required")
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as e:
            raise EventValidationError(f"Invalid date: {value!r}") from e
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _parse_max_participants(value: Union[str, int, None]) -> int:
    if value is None or value == "":
        return 0
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise EventValidationError(f"Invalid maxParticipants: {value!r}") from e


class EventService:
    def __init__(self, db: DbClient, storage: StorageClient):
        self.db = db
        self.storage = storage

    def _expand(self, records: Iterable[EventRecord]) -> list[EventView]:
        records = list(records)
        user_ids: set[str] = set()
        for record in records:
            user_ids.add(record.organizer_id)
            user_ids.update(record.participant_ids)
        users = self.db.get_users(user_ids)

        def summary(user_id: str) -> UserSummary:
            user: Optional[UserRecord] = users.get(user_id)
            if not user:
                return UserSummary(user_id=user_id)
            return UserSummary(user_id=user.user_id, name=user.name, email=user.email)

        return [
            EventView(
                record=record,
                organizer=summary(record.organizer_id),
                participants=[summary(uid) for uid in record.participant_ids],
            )
            for record in records
        ]

    def _load(self, event_id: str) -> EventRecord:
        record = self.db.get_event(event_id)
        if not record:
            raise EventNotFoundError(event_id)
        return record

    def _load_owned(self, caller_id: Optional[str], event_id: str) -> EventRecord:
        record = self._load(event_id)
        if not is_owner(record, caller_id):
            logger.warning(
                "User %s is not the organizer of event %s", caller_id, event_id
            )
            raise NotAuthorizedError(
                f"Caller is not the organizer of event {event_id}"
            )
        return record

    def _store_image(self, image: Optional[ImageUpload]) -> Optional[str]:
        if image is None:
            return None
        return self.storage.save_upload(image.filename or "", image.data)

    def list_events(self) -> list[EventView]:
        return self._expand(self.db.list_events())

    def get_event(self, event_id: str) -> EventView:
        return self._expand([self._load(event_id)])[0]

    def search_events(self, query: str) -> list[EventView]:
        return self._expand(self.db.search_events(query))

    def create_event(
        self,
        caller_id: Optional[str],
        draft: EventDraft,
        image: Optional[ImageUpload] = None,
    ) -> EventView:
        if not caller_id:
            raise NotAuthorizedError("Authentication required to create an event")
        record = EventRecord(
            title=_required_text("title", draft.title, strip=True),
            description=_required_text("description", draft.description),
            event_type=_parse_event_type(draft.event_type),
            date=_parse_date(draft.date),
            location=_required_text("location", draft.location),
            organizer_id=caller_id,
            max_participants=_parse_max_participants(draft.max_participants),
        )
        record.image = self._store_image(image) or ""
        created = self.db.create_event(record)
        logger.info("Created event %s for organizer %s", created.event_id, caller_id)
        return self._expand([created])[0]

    def update_event(
        self,
        caller_id: Optional[str],
        event_id: str,
        patch: EventPatch,
        image: Optional[ImageUpload] = None,
    ) -> EventView:
        record = self._load_owned(caller_id, event_id)

        if patch.title is not None:
            record.title = _required_text("title", patch.title, strip=True)
        if patch.description is not None:
            record.description = _required_text("description", patch.description)
        if patch.event_type is not None:
            record.event_type = _parse_event_type(patch.event_type)
        if patch.date is not None:
            record.date = _parse_date(patch.date)
        if patch.location is not None:
            record.location = _required_text("location", patch.location)
        if patch.max_participants is not None:
            record.max_participants = _parse_max_participants(patch.max_participants)
        if patch.status is not None:
            record.status = _parse_status(patch.status)
        stored_image = self._store_image(image)
        if stored_image:
            record.image = stored_image

        saved = self.db.save_event(record)
        logger.info("Updated event %s", event_id)
        return self._expand([saved])[0]

    def delete_event(self, caller_id: Optional[str], event_id: str) -> None:
        self._load_owned(caller_id, event_id)
        self.db.delete_event(event_id)
        logger.info("Deleted event %s", event_id)
