from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    JSON,
    BigInteger,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from .db import Base


class ChainType(str, Enum):
    BASE = "base"
    STELLAR = "stellar"


class CallStatus(str, Enum):
    ACTIVE = "active"
    SETTLED = "settled"
    DISPUTED = "disputed"


class CallOutcome(str, Enum):
    UNKNOWN = "unknown"
    TRUE = "true"
    FALSE = "false"

    @classmethod
    def from_bool(cls, value: bool) -> "CallOutcome":
        return cls.TRUE if value else cls.FALSE


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BigUnsigned(TypeDecorator):
    """Lossless unbounded non-negative integer.

    Stored as NUMERIC(78, 0) on PostgreSQL and as decimal text elsewhere so
    uint256 token amounts survive SQLite, which caps integers at 64 bits.
    """

    impl = String(80)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(Numeric(78, 0))
        return dialect.type_descriptor(String(80))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        number = int(value)
        if number < 0:
            raise ValueError(f"BigUnsigned columns reject negative values: {number}")
        if dialect.name == "postgresql":
            return number
        return str(number)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return int(value)


class ChainEventRecord(Base):
    __tablename__ = "chain_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chain: Mapped[str] = mapped_column(String(16), nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(128), nullable=False)
    contract_id: Mapped[str] = mapped_column(String(128), nullable=False)
    ledger_height: Mapped[int] = mapped_column(BigInteger, nullable=False)
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    event_sequence: Mapped[int] = mapped_column(BigInteger, nullable=False)
    event_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    occurred_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("chain", "tx_hash", "event_sequence", name="uq_chain_event_key"),
        Index("ix_chain_events_chain_type", "chain", "event_type"),
        Index("ix_chain_events_contract", "contract_id"),
        Index("ix_chain_events_created_at", "created_at"),
    )


class CallRecord(Base):
    __tablename__ = "calls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chain: Mapped[str] = mapped_column(String(16), nullable=False)
    call_id: Mapped[str] = mapped_column(String(80), nullable=False)
    contract_id: Mapped[str | None] = mapped_column(String(128), nullable=True)
    creator: Mapped[str | None] = mapped_column(String(128), nullable=True)
    stake_token: Mapped[str | None] = mapped_column(String(128), nullable=True)
    total_stake_yes: Mapped[int] = mapped_column(BigUnsigned(), nullable=False, default=0)
    total_stake_no: Mapped[int] = mapped_column(BigUnsigned(), nullable=False, default=0)
    start_ts: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    end_ts: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=CallStatus.ACTIVE.value)
    outcome: Mapped[str] = mapped_column(String(16), nullable=False, default=CallOutcome.UNKNOWN.value)
    final_price: Mapped[int | None] = mapped_column(BigUnsigned(), nullable=True)
    oracle: Mapped[str | None] = mapped_column(String(128), nullable=True)
    extra: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    __table_args__ = (
        UniqueConstraint("chain", "call_id", name="uq_call_scope"),
        Index("ix_calls_status_end_ts", "status", "end_ts"),
    )
