"""Typed domain representations shared by the indexers, the store and the API."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from app.models import ChainType


class EventType(str, Enum):
    CALL_CREATED = "CallCreated"
    STAKE_ADDED = "StakeAdded"
    OUTCOME_SUBMITTED = "OutcomeSubmitted"
    UNKNOWN = "Unknown"


@dataclass(frozen=True, slots=True)
class ChainEvent:
    """Canonical event decoded from either chain, ready for persistence."""

    chain: ChainType
    tx_hash: str
    contract_id: str
    ledger_height: int
    event_type: str
    event_sequence: int
    event_data: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime | None = None


@dataclass(frozen=True, slots=True)
class CallCreated:
    call_id: str
    creator: str | None = None
    stake_token: str | None = None
    start_ts: int | None = None
    end_ts: int | None = None
    initial_yes: int = 0
    initial_no: int = 0
    extra: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class StakeAdded:
    call_id: str
    position: bool
    amount: int
    staker: str | None = None


@dataclass(frozen=True, slots=True)
class OutcomeSubmitted:
    call_id: str
    outcome: bool
    final_price: int | None
    oracle: str | None = None


CallMutation = CallCreated | StakeAdded | OutcomeSubmitted
