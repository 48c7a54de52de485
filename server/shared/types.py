from enum import Enum


class EventType(str, Enum):
    """Category of an event."""

    ACADEMIC = "academic"
    CULTURAL = "cultural"
    SPORTS = "sports"
    WORKSHOP = "workshop"
    SEMINAR = "seminar"
    OTHER = "other"


class EventStatus(str, Enum):
    """Coarse lifecycle of an event. Transitions are not enforced."""

    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
