"""Chain event persistence helpers."""

from __future__ import annotations

from sqlalchemy import desc, func, select
from sqlalchemy.orm import Session

from app.domain import ChainEvent
from app.models import ChainEventRecord, ChainType

from .base import insert_if_absent
from .types import EventStatistics

EVENT_KEY_COLUMNS = ("chain", "tx_hash", "event_sequence")


class EventRepository:
    """Encapsulate the append-only chain event table."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def insert_if_absent(self, event: ChainEvent) -> bool:
        values = {
            "chain": event.chain.value,
            "tx_hash": event.tx_hash,
            "contract_id": event.contract_id,
            "ledger_height": event.ledger_height,
            "event_type": event.event_type,
            "event_sequence": event.event_sequence,
            "event_data": dict(event.event_data),
            "occurred_at": event.occurred_at,
        }
        return insert_if_absent(self._session, ChainEventRecord, values, EVENT_KEY_COLUMNS)

    # ------------------------------------------------------------------
    # Queries

    def list_by_type(
        self,
        event_type: str,
        *,
        chain: ChainType | None = None,
        limit: int | None = None,
    ) -> list[ChainEventRecord]:
        query = select(ChainEventRecord).where(ChainEventRecord.event_type == event_type)
        if chain is not None:
            query = query.where(ChainEventRecord.chain == chain.value)
        query = query.order_by(desc(ChainEventRecord.created_at), desc(ChainEventRecord.id))
        if limit:
            query = query.limit(limit)
        return list(self._session.execute(query).scalars().all())

    def list_by_contract(
        self,
        contract_id: str,
        *,
        chain: ChainType | None = None,
        limit: int | None = None,
    ) -> list[ChainEventRecord]:
        query = select(ChainEventRecord).where(ChainEventRecord.contract_id == contract_id)
        if chain is not None:
            query = query.where(ChainEventRecord.chain == chain.value)
        query = query.order_by(
            desc(ChainEventRecord.ledger_height), desc(ChainEventRecord.event_sequence)
        )
        if limit:
            query = query.limit(limit)
        return list(self._session.execute(query).scalars().all())

    def statistics(self, chain: ChainType) -> EventStatistics:
        query = (
            select(ChainEventRecord.event_type, func.count(ChainEventRecord.id))
            .where(ChainEventRecord.chain == chain.value)
            .group_by(ChainEventRecord.event_type)
        )
        by_type = {event_type: int(total) for event_type, total in self._session.execute(query).all()}
        return EventStatistics(total_events=sum(by_type.values()), events_by_type=by_type)


__all__ = ["EventRepository"]
