from __future__ import annotations

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError

from app.domain import ChainEvent
from app.models import ChainEventRecord, ChainType
from app.repositories import CallRepository, StaleCallVersion
from app.repositories.base import insert_if_absent
from app.repositories.call_repository import CAS_MAX_ATTEMPTS
from indexer.errors import EventDecodeError
from indexer.store import EventStore


def _event(event_type, data, *, tx="0x01", seq=0, height=1, chain=ChainType.BASE, contract="0xcontract"):
    return ChainEvent(
        chain=chain,
        tx_hash=tx,
        contract_id=contract,
        ledger_height=height,
        event_type=event_type,
        event_sequence=seq,
        event_data=data,
    )


def _created(call_id="1", stake="0", **kwargs):
    return _event(
        "CallCreated",
        {"callId": call_id, "creator": "0xabc", "stakeToken": "0xtoken", "stakeAmount": stake, "startTs": "10", "endTs": "20"},
        **kwargs,
    )


def _stake(amount, position=True, call_id="1", **kwargs):
    return _event("StakeAdded", {"callId": call_id, "position": position, "amount": str(amount)}, **kwargs)


def _outcome(outcome=True, price="105", call_id="1", **kwargs):
    return _event("OutcomeSubmitted", {"callId": call_id, "outcome": outcome, "finalPrice": price}, **kwargs)


def test_duplicate_event_is_stored_once(event_store):
    event = _stake(5, tx="0xaa", seq=1)

    assert event_store.store(event) is True
    assert event_store.store(event) is False

    stats = event_store.statistics(ChainType.BASE)
    assert stats.total_events == 1
    assert event_store.get_call(ChainType.BASE, "1").total_stake_yes == 5


def test_same_tx_and_sequence_on_other_chain_is_distinct(event_store):
    assert event_store.store(_stake(5, tx="0xaa", seq=1)) is True
    stellar = _event("StakeAdded", {"topic_1": "1", "data_0": ["GSTAKER", True, "5"]}, tx="0xaa", seq=1, chain=ChainType.STELLAR)
    assert event_store.store(stellar) is True


@pytest.mark.parametrize("order", [(0, 1, 2), (2, 1, 0), (1, 2, 0)])
def test_aggregates_are_order_independent(session_factory, order):
    store = EventStore(session_factory)
    events = [
        _created(stake="100", tx="0x01"),
        _stake(40, tx="0x02"),
        _stake(7, position=False, tx="0x03"),
    ]

    for index in order:
        assert store.store(events[index]) is True

    call = store.get_call(ChainType.BASE, "1")
    assert call.total_stake_yes == 140
    assert call.total_stake_no == 7
    assert call.creator == "0xabc"
    assert call.end_ts == 20
    assert call.status == "active"


def test_stake_for_unknown_call_creates_placeholder(event_store):
    event_store.store(_stake(3, call_id="77", tx="0x09"))

    call = event_store.get_call(ChainType.BASE, "77")
    assert call is not None
    assert call.status == "active"
    assert call.end_ts is None
    assert call.total_stake_yes == 3


def test_outcome_is_terminal(event_store):
    event_store.store(_created(tx="0x01"))
    event_store.store(_outcome(outcome=True, price="105", tx="0x02"))
    event_store.store(_outcome(outcome=False, price="1", tx="0x03"))
    event_store.store(_stake(50, tx="0x04"))

    call = event_store.get_call(ChainType.BASE, "1")
    assert call.status == "settled"
    assert call.outcome == "true"
    assert call.final_price == 105
    assert call.total_stake_yes == 0
    assert event_store.statistics(ChainType.BASE).total_events == 4


def test_unknown_event_type_is_stored_without_call(event_store):
    assert event_store.store(_event("CallDisputed", {"callId": "1"})) is True

    assert event_store.get_call(ChainType.BASE, "1") is None
    assert event_store.statistics(ChainType.BASE).events_by_type == {"CallDisputed": 1}


def test_malformed_event_raises_and_writes_nothing(event_store):
    with pytest.raises(EventDecodeError):
        event_store.store(_event("StakeAdded", {"callId": "1", "position": True}))

    assert event_store.statistics(ChainType.BASE).total_events == 0


def test_uint256_totals_are_lossless(event_store):
    big = 2**255 + 12345
    event_store.store(_stake(big, tx="0x01"))
    event_store.store(_stake(big, tx="0x02"))

    assert event_store.get_call(ChainType.BASE, "1").total_stake_yes == 2 * big


def test_queries(event_store):
    event_store.store(_stake(1, tx="0x01", height=5, contract="0xA"))
    event_store.store(_stake(1, tx="0x02", height=9, contract="0xA"))
    event_store.store(_created(tx="0x03", height=7, contract="0xB"))

    by_contract = event_store.events_by_contract("0xA")
    assert [event.ledger_height for event in by_contract] == [9, 5]
    assert len(event_store.events_by_type("StakeAdded", chain=ChainType.BASE)) == 2
    assert event_store.events_by_type("StakeAdded", chain=ChainType.STELLAR) == []
    assert len(event_store.events_by_type("StakeAdded", limit=1)) == 1

    stats = event_store.statistics(ChainType.BASE)
    assert stats.total_events == 3
    assert stats.events_by_type == {"StakeAdded": 2, "CallCreated": 1}


def _cas_session(rows, rowcounts):
    session = MagicMock()
    selects = iter(rows)
    updates = iter(rowcounts)

    def execute(statement):
        result = MagicMock()
        if statement.is_select:
            result.one_or_none.return_value = next(selects)
        else:
            result.rowcount = next(updates)
        return result

    session.execute.side_effect = execute
    return session


def test_stake_update_retries_when_version_moves():
    session = _cas_session(rows=[(1, 4, "active", 10), (1, 5, "active", 15)], rowcounts=[0, 1])

    total = CallRepository(session).add_stake(ChainType.BASE, "1", position=True, amount=3)

    assert total == 18
    assert session.execute.call_count == 4


def test_stake_update_gives_up_after_repeated_conflicts():
    attempts = CAS_MAX_ATTEMPTS
    session = _cas_session(rows=[(1, n, "active", 0) for n in range(attempts)], rowcounts=[0] * attempts)

    with pytest.raises(StaleCallVersion):
        CallRepository(session).add_stake(ChainType.BASE, "1", position=False, amount=1)


def _savepoint_session():
    session = MagicMock()
    session.get_bind.return_value.dialect.name = "mysql"
    return session


def test_insert_if_absent_uses_savepoint_on_other_dialects():
    session = _savepoint_session()

    assert insert_if_absent(session, ChainEventRecord, {"tx_hash": "0x01"}, ("chain", "tx_hash")) is True

    session.begin_nested.assert_called_once()
    assert not session.execute.call_args.args[0].is_select


def test_insert_if_absent_reports_duplicate_on_other_dialects():
    session = _savepoint_session()
    session.execute.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

    assert insert_if_absent(session, ChainEventRecord, {"tx_hash": "0x01"}, ("chain", "tx_hash")) is False
    session.begin_nested.return_value.__exit__.assert_called_once()
