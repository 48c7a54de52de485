"""
Pydantic schemas for the events API.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from events_backend.service import EventView, UserSummary as UserSummaryView
from shared.types import EventStatus, EventType


class UserSummary(BaseModel):
    id: str
    name: Optional[str] = None
    email: Optional[str] = None

    @classmethod
    def from_view(cls, view: UserSummaryView) -> "UserSummary":
        return cls(id=view.user_id, name=view.name, email=view.email)


class EventResponse(BaseModel):
    id: str
    title: str
    description: str
    eventType: EventType
    date: datetime
    location: str
    image: str = ""
    organizer: UserSummary
    participants: list[UserSummary]
    maxParticipants: int = 0
    status: EventStatus
    createdAt: datetime
    updatedAt: datetime

    @classmethod
    def from_view(cls, view: EventView) -> "EventResponse":
        record = view.record
        return cls(
            id=record.event_id,
            title=record.title,
            description=record.description,
            eventType=record.event_type,
            date=record.date,
            location=record.location,
            image=record.image,
            organizer=UserSummary.from_view(view.organizer),
            participants=[UserSummary.from_view(p) for p in view.participants],
            maxParticipants=record.max_participants,
            status=record.status,
            createdAt=record.created_at,
            updatedAt=record.updated_at,
        )


class MessageResponse(BaseModel):
    message: str


class HealthResponse(BaseModel):
    status: str
    environment: str
    version: str
