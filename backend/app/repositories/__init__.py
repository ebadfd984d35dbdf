"""Repository abstractions for database interactions."""

from .call_repository import CallRepository
from .event_repository import EventRepository
from .types import EventStatistics, StaleCallVersion

__all__ = [
    "CallRepository",
    "EventRepository",
    "EventStatistics",
    "StaleCallVersion",
]
