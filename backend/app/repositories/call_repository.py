"""Call aggregate persistence helpers."""

from __future__ import annotations

from typing import Any

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.domain import CallCreated, OutcomeSubmitted, StakeAdded
from app.models import CallOutcome, CallRecord, CallStatus, ChainType

from .base import insert_if_absent
from .types import StaleCallVersion

CALL_KEY_COLUMNS = ("chain", "call_id")
CAS_MAX_ATTEMPTS = 8


class CallRepository:
    """Encapsulate call creation, stake aggregation and settlement writes."""

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Mutations

    def ensure_call(self, chain: ChainType, call_id: str, *, contract_id: str | None = None) -> bool:
        """Create an active placeholder row for the call if none exists."""

        values: dict[str, Any] = {
            "chain": chain.value,
            "call_id": call_id,
            "contract_id": contract_id,
            "total_stake_yes": 0,
            "total_stake_no": 0,
            "status": CallStatus.ACTIVE.value,
            "outcome": CallOutcome.UNKNOWN.value,
            "version": 0,
        }
        return insert_if_absent(self._session, CallRecord, values, CALL_KEY_COLUMNS)

    def apply_created(self, chain: ChainType, mutation: CallCreated, *, contract_id: str | None) -> None:
        self.ensure_call(chain, mutation.call_id, contract_id=contract_id)

        metadata: dict[str, Any] = {}
        if contract_id is not None:
            metadata["contract_id"] = contract_id
        if mutation.creator is not None:
            metadata["creator"] = mutation.creator
        if mutation.stake_token is not None:
            metadata["stake_token"] = mutation.stake_token
        if mutation.start_ts is not None:
            metadata["start_ts"] = mutation.start_ts
        if mutation.end_ts is not None:
            metadata["end_ts"] = mutation.end_ts
        if mutation.extra:
            metadata["extra"] = dict(mutation.extra)
        if metadata:
            # Metadata never touches the stake columns, so no version check.
            self._session.execute(
                update(CallRecord)
                .where(CallRecord.chain == chain.value, CallRecord.call_id == mutation.call_id)
                .values(**metadata)
                .execution_options(synchronize_session=False)
            )

        if mutation.initial_yes:
            self.add_stake(chain, mutation.call_id, position=True, amount=mutation.initial_yes)
        if mutation.initial_no:
            self.add_stake(chain, mutation.call_id, position=False, amount=mutation.initial_no)

    def apply_stake(self, chain: ChainType, mutation: StakeAdded, *, contract_id: str | None) -> int | None:
        self.ensure_call(chain, mutation.call_id, contract_id=contract_id)
        return self.add_stake(chain, mutation.call_id, position=mutation.position, amount=mutation.amount)

    def add_stake(self, chain: ChainType, call_id: str, *, position: bool, amount: int) -> int | None:
        """Atomically add ``amount`` to one side of the call's pool.

        Uses compare-and-set on ``version`` and returns the new side total, or
        None when the call is already settled and the stake was ignored.
        """

        if amount < 0:
            raise ValueError(f"Stake amount must be non-negative, got {amount}")
        column = CallRecord.total_stake_yes if position else CallRecord.total_stake_no

        for _ in range(CAS_MAX_ATTEMPTS):
            row = self._session.execute(
                select(CallRecord.id, CallRecord.version, CallRecord.status, column).where(
                    CallRecord.chain == chain.value, CallRecord.call_id == call_id
                )
            ).one_or_none()
            if row is None:
                raise LookupError(f"Call {chain.value}:{call_id} does not exist")

            record_id, version, status, current = row
            if status == CallStatus.SETTLED.value:
                logger.warning(
                    "Ignoring stake of {} on settled call {}:{}", amount, chain.value, call_id
                )
                return None

            new_total = int(current or 0) + amount
            result = self._session.execute(
                update(CallRecord)
                .where(CallRecord.id == record_id, CallRecord.version == version)
                .values({column.key: new_total, "version": version + 1})
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return new_total
            logger.debug("Call {}:{} version moved past {}, retrying", chain.value, call_id, version)

        raise StaleCallVersion(
            f"Could not update stake on call {chain.value}:{call_id} after {CAS_MAX_ATTEMPTS} attempts"
        )

    def apply_outcome(self, chain: ChainType, mutation: OutcomeSubmitted, *, contract_id: str | None) -> bool:
        self.ensure_call(chain, mutation.call_id, contract_id=contract_id)
        result = self._session.execute(
            update(CallRecord)
            .where(
                CallRecord.chain == chain.value,
                CallRecord.call_id == mutation.call_id,
                CallRecord.status != CallStatus.SETTLED.value,
            )
            .values(
                status=CallStatus.SETTLED.value,
                outcome=CallOutcome.from_bool(mutation.outcome).value,
                final_price=mutation.final_price,
                oracle=mutation.oracle,
                version=CallRecord.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(
                "Call {}:{} is already settled; ignoring repeated outcome", chain.value, mutation.call_id
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Queries

    def get_call(self, chain: ChainType, call_id: str) -> CallRecord | None:
        query = select(CallRecord).where(CallRecord.chain == chain.value, CallRecord.call_id == call_id)
        return self._session.execute(query).scalar_one_or_none()

    def list_calls(
        self,
        *,
        chain: ChainType | None = None,
        status: CallStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[CallRecord]:
        query = select(CallRecord)
        if chain is not None:
            query = query.where(CallRecord.chain == chain.value)
        if status is not None:
            query = query.where(CallRecord.status == status.value)
        query = query.order_by(CallRecord.end_ts.asc().nulls_last(), CallRecord.id.asc())
        query = query.limit(limit).offset(offset)
        return list(self._session.execute(query).scalars().all())


__all__ = ["CallRepository"]
