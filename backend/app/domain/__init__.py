"""Domain models representing decoded chain activity."""

from .models import (
    CallCreated,
    CallMutation,
    ChainEvent,
    EventType,
    OutcomeSubmitted,
    StakeAdded,
)

__all__ = [
    "CallCreated",
    "CallMutation",
    "ChainEvent",
    "EventType",
    "OutcomeSubmitted",
    "StakeAdded",
]
