"""
HTTP routes for the events API.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from events_backend.config import get_settings
from events_backend.dependencies import get_current_user, get_event_service
from events_backend.schemas import EventResponse, HealthResponse, MessageResponse
from events_backend.service import EventDraft, EventPatch, EventService, ImageUpload


router = APIRouter(tags=["events"])
health_router = APIRouter(tags=["health"])


def _supplied(value: Optional[str]) -> Optional[str]:
    # Empty form values count as not supplied, so updates never blank a field.
    return value if value else None


def _read_image(image: Optional[UploadFile]) -> Optional[ImageUpload]:
    if image is None or not image.filename:
        return None
    return ImageUpload(filename=image.filename, data=image.file.read())


@router.get("/events", response_model=list[EventResponse])
def list_events(service: EventService = Depends(get_event_service)):
    return [EventResponse.from_view(view) for view in service.list_events()]


@router.get("/events/search/{query}", response_model=list[EventResponse])
def search_events(query: str, service: EventService = Depends(get_event_service)):
    return [EventResponse.from_view(view) for view in service.search_events(query)]


@router.get("/events/{event_id}", response_model=EventResponse)
def get_event(event_id: str, service: EventService = Depends(get_event_service)):
    return EventResponse.from_view(service.get_event(event_id))


@router.post("/events", response_model=EventResponse, status_code=201)
def create_event(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    eventType: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    maxParticipants: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    caller_id: Optional[str] = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    """
    Create an event owned by the caller. Any organizer field in the form is ignored.
    """
    draft = EventDraft(
        title=title,
        description=description,
        event_type=eventType,
        date=date,
        location=location,
        max_participants=_supplied(maxParticipants),
    )
    view = service.create_event(caller_id, draft, _read_image(image))
    return EventResponse.from_view(view)


@router.put("/events/{event_id}", response_model=EventResponse)
def update_event(
    event_id: str,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    eventType: Optional[str] = Form(None),
    date: Optional[str] = Form(None),
    location: Optional[str] = Form(None),
    maxParticipants: Optional[str] = Form(None),
    status: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    caller_id: Optional[str] = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    patch = EventPatch(
        title=_supplied(title),
        description=_supplied(description),
        event_type=_supplied(eventType),
        date=_supplied(date),
        location=_supplied(location),
        max_participants=_supplied(maxParticipants),
        status=_supplied(status),
    )
    view = service.update_event(caller_id, event_id, patch, _read_image(image))
    return EventResponse.from_view(view)


@router.delete("/events/{event_id}", response_model=MessageResponse)
def delete_event(
    event_id: str,
    caller_id: Optional[str] = Depends(get_current_user),
    service: EventService = Depends(get_event_service),
):
    service.delete_event(caller_id, event_id)
    return MessageResponse(message="Event removed")


@health_router.get("/health", response_model=HealthResponse)
def health_check():
    settings = get_settings()
    return HealthResponse(
        status="healthy",
        environment=settings.environment,
        version=settings.version,
    )
