from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator


class ChainEvent(BaseModel):
    chain: str
    tx_hash: str
    contract_id: str
    ledger_height: int
    event_type: str
    event_sequence: int
    event_data: dict[str, Any] | None = None
    occurred_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ChainEventList(BaseModel):
    total: int
    items: list[ChainEvent]


class CallBase(BaseModel):
    chain: str
    call_id: str
    contract_id: str | None = None
    creator: str | None = None
    stake_token: str | None = None
    total_stake_yes: str
    total_stake_no: str
    start_ts: int | None = None
    end_ts: int | None = None
    status: str
    outcome: str
    final_price: str | None = None
    oracle: str | None = None

    @field_validator("total_stake_yes", "total_stake_no", "final_price", mode="before")
    @classmethod
    def _coerce_big_int(cls, value: Any) -> str | None:
        if value is None:
            return None
        return str(int(value))


class Call(CallBase):
    extra: dict[str, Any] | None = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class CallList(BaseModel):
    total: int
    items: list[Call]


class Payout(BaseModel):
    chain: str
    call_id: str
    stake: str
    side: bool
    outcome: bool
    payout: str
    long_total: str
    short_total: str


class ChainStatistics(BaseModel):
    total_events: int
    events_by_type: dict[str, int] = Field(default_factory=dict)
    last_indexed_height: int | None = None


class IndexerStatus(BaseModel):
    chain: str
    state: str
    is_running: bool
    initialized: bool
    cursor: int | None = None
    last_indexed_height: int | None = None
    last_polled_at: datetime | None = None
    consecutive_failures: int
    events_stored: int
    events_skipped: int


class ServiceStatus(BaseModel):
    is_running: bool
    stellar_enabled: bool
    base_enabled: bool
    current_ledger: int | None = None
    current_block: int | None = None
    indexers: list[IndexerStatus] = Field(default_factory=list)

