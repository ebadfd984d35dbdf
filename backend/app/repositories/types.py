"""Shared repository result types."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(slots=True)
class EventStatistics:
    """Per-chain event counts, optionally annotated with the indexer cursor."""

    total_events: int = 0
    events_by_type: dict[str, int] = field(default_factory=dict)
    last_indexed_height: int | None = None


class StaleCallVersion(RuntimeError):
    """Raised when a compare-and-set on a call row keeps losing the race."""


__all__ = ["EventStatistics", "StaleCallVersion"]
