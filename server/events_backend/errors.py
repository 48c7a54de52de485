"""
Error kinds raised by the event service.

Each kind maps to one HTTP status in ``events_backend.app``.
"""


class EventServiceError(Exception):
    """Base class for event service failures."""


class EventNotFoundError(EventServiceError):
    def __init__(self, event_id: str):
        super().__init__(f"Event {event_id} not found")
        self.event_id = event_id


class NotAuthorizedError(EventServiceError):
    """Caller is missing or does not own the event."""


class EventValidationError(EventServiceError):
    """Request data could not be turned into a valid event.

    Reported to clients as a generic server fault.
    """
