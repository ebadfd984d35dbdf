from __future__ import annotations

from sqlalchemy.orm import Session

from app.repositories import EventRepository

from .models import ChainEventRecord, ChainType


def list_events_by_type(
    session: Session,
    event_type: str,
    *,
    chain: ChainType | None = None,
    limit: int | None = None,
) -> list[ChainEventRecord]:
    return EventRepository(session).list_by_type(event_type, chain=chain, limit=limit)


def list_events_by_contract(
    session: Session,
    contract_id: str,
    *,
    chain: ChainType | None = None,
    limit: int | None = None,
) -> list[ChainEventRecord]:
    return EventRepository(session).list_by_contract(contract_id, chain=chain, limit=limit)
