"""Read-side conveniences over the call aggregate."""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.models import CallOutcome, CallRecord, CallStatus, ChainType
from app.repositories import CallRepository
from app.schemas import Payout
from oracle.payout import calculate_payout


class CallNotFound(LookupError):
    pass


class CallNotSettled(ValueError):
    pass


@dataclass(slots=True)
class CallQuery:
    chain: ChainType | None = None
    status: CallStatus | None = None
    limit: int = 50
    offset: int = 0


class CallService:
    """Payouts are derived from the stored pools at read time, never persisted."""

    def __init__(self, session: Session):
        self._repo = CallRepository(session)

    def get_call(self, chain: ChainType, call_id: str) -> CallRecord | None:
        return self._repo.get_call(chain, call_id)

    def list_calls(self, query: CallQuery) -> list[CallRecord]:
        return self._repo.list_calls(
            chain=query.chain, status=query.status, limit=query.limit, offset=query.offset
        )

    def payout(self, chain: ChainType, call_id: str, *, stake: int, side: bool) -> Payout:
        call = self._repo.get_call(chain, call_id)
        if call is None:
            raise CallNotFound(f"Call {chain.value}:{call_id} not found")
        if call.status != CallStatus.SETTLED.value or call.outcome == CallOutcome.UNKNOWN.value:
            raise CallNotSettled(f"Call {chain.value}:{call_id} has not been settled")

        outcome = call.outcome == CallOutcome.TRUE.value
        long_total = int(call.total_stake_yes or 0)
        short_total = int(call.total_stake_no or 0)
        amount = calculate_payout(stake, side, outcome, long_total, short_total)
        return Payout(
            chain=chain.value,
            call_id=call_id,
            stake=str(stake),
            side=side,
            outcome=outcome,
            payout=str(amount),
            long_total=str(long_total),
            short_total=str(short_total),
        )
