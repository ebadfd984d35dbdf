"""Idempotent event persistence with call aggregation."""

from __future__ import annotations

from loguru import logger
from sqlalchemy.orm import Session, sessionmaker

from app.db import SessionLocal, session_scope
from app.domain import CallCreated, ChainEvent, OutcomeSubmitted, StakeAdded
from app.models import CallRecord, ChainEventRecord, ChainType
from app.repositories import CallRepository, EventRepository, EventStatistics

from .normalize import mutation_for_event


class EventStore:
    """Exactly-once effect on top of at-least-once delivery.

    Each ``store`` call runs in its own transaction: the event row is inserted
    only if its (chain, tx_hash, event_sequence) key is free, and the call
    aggregate is mutated only when that insert actually happened.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or SessionLocal

    def store(self, event: ChainEvent) -> bool:
        """Persist ``event``; returns False when it was already stored.

        Raises :class:`EventDecodeError` when the payload cannot be turned into
        a call mutation; nothing is written in that case.
        """

        mutation = mutation_for_event(event)
        with session_scope(self._session_factory) as session:
            inserted = EventRepository(session).insert_if_absent(event)
            if not inserted:
                logger.debug(
                    "Event already indexed: {}:{}:{}", event.chain.value, event.tx_hash, event.event_sequence
                )
                return False

            calls = CallRepository(session)
            if isinstance(mutation, CallCreated):
                calls.apply_created(event.chain, mutation, contract_id=event.contract_id)
            elif isinstance(mutation, StakeAdded):
                calls.apply_stake(event.chain, mutation, contract_id=event.contract_id)
            elif isinstance(mutation, OutcomeSubmitted):
                calls.apply_outcome(event.chain, mutation, contract_id=event.contract_id)

        logger.info(
            "Stored {} event {} from contract {} at height {}",
            event.chain.value,
            event.event_type,
            event.contract_id,
            event.ledger_height,
        )
        return True

    # ------------------------------------------------------------------
    # Queries

    def events_by_type(
        self, event_type: str, *, chain: ChainType | None = None, limit: int | None = None
    ) -> list[ChainEventRecord]:
        with session_scope(self._session_factory) as session:
            records = EventRepository(session).list_by_type(event_type, chain=chain, limit=limit)
            session.expunge_all()
            return records

    def events_by_contract(
        self, contract_id: str, *, chain: ChainType | None = None, limit: int | None = None
    ) -> list[ChainEventRecord]:
        with session_scope(self._session_factory) as session:
            records = EventRepository(session).list_by_contract(contract_id, chain=chain, limit=limit)
            session.expunge_all()
            return records

    def statistics(self, chain: ChainType) -> EventStatistics:
        with session_scope(self._session_factory) as session:
            return EventRepository(session).statistics(chain)

    def get_call(self, chain: ChainType, call_id: str) -> CallRecord | None:
        with session_scope(self._session_factory) as session:
            record = CallRepository(session).get_call(chain, call_id)
            session.expunge_all()
            return record


__all__ = ["EventStore"]
