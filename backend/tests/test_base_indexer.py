from __future__ import annotations

from eth_abi import encode
from eth_utils import to_checksum_address

from app.models import ChainType
from indexer.base_chain import BaseIndexer, BaseIndexerConfig
from indexer.evm_logs import CALL_CREATED, OUTCOME_SUBMITTED, STAKE_ADDED, lookup_abi

CONTRACT = "0x00000000000000000000000000000000000000aa"
CREATOR = to_checksum_address("0x1111111111111111111111111111111111111111")
STAKER = to_checksum_address("0x2222222222222222222222222222222222222222")
TOKEN = to_checksum_address("0x3333333333333333333333333333333333333333")
PAIR_ID = bytes.fromhex("ab" * 32)


def _topic(abi_type, value):
    return "0x" + encode([abi_type], [value]).hex()


def _log(abi, indexed, data_types, data_values, *, block=10, log_index=0, tx_hash="0x" + "aa" * 32):
    return {
        "address": CONTRACT,
        "topics": [abi.topic0] + [_topic(t, v) for t, v in indexed],
        "data": "0x" + encode(data_types, data_values).hex(),
        "blockNumber": hex(block),
        "logIndex": hex(log_index),
        "transactionHash": tx_hash,
    }


def _call_created_log(call_id=1, stake=1000, **kwargs):
    return _log(
        CALL_CREATED,
        [("uint256", call_id), ("address", CREATOR)],
        ["address", "uint256", "uint256", "uint256", "address", "bytes32", "string"],
        [TOKEN, stake, 1700000000, 1700086400, TOKEN, PAIR_ID, "bafy-cid"],
        **kwargs,
    )


def _stake_log(call_id=1, position=True, amount=10, **kwargs):
    return _log(
        STAKE_ADDED,
        [("uint256", call_id), ("address", STAKER)],
        ["bool", "uint256"],
        [position, amount],
        **kwargs,
    )


def _outcome_log(call_id=1, outcome=False, price=95, **kwargs):
    return _log(
        OUTCOME_SUBMITTED,
        [("uint256", call_id)],
        ["bool", "uint256", "address"],
        [outcome, price, STAKER],
        **kwargs,
    )


def _indexer(store, rpc, **config):
    return BaseIndexer(
        store,
        BaseIndexerConfig(rpc_url="https://base.test/rpc", contract_address=CONTRACT, **config),
        rpc=rpc,
        sleep=lambda _: None,
    )


def test_event_signatures():
    assert CALL_CREATED.signature == (
        "CallCreated(uint256,address,address,uint256,uint256,uint256,address,bytes32,string)"
    )
    assert STAKE_ADDED.signature == "StakeAdded(uint256,address,bool,uint256)"
    assert OUTCOME_SUBMITTED.signature == "OutcomeSubmitted(uint256,bool,uint256,address)"
    assert lookup_abi(STAKE_ADDED.topic0.upper().replace("0X", "0x")) is STAKE_ADDED


def test_decode_call_created(event_store, fake_rpc_factory):
    indexer = _indexer(event_store, fake_rpc_factory())

    event = indexer.decode_event(_call_created_log(block=0x1F, log_index=3))

    assert event.chain is ChainType.BASE
    assert event.event_type == "CallCreated"
    assert event.ledger_height == 31
    assert event.event_sequence == 3
    assert event.event_data == {
        "callId": "1",
        "creator": CREATOR,
        "stakeToken": TOKEN,
        "stakeAmount": "1000",
        "startTs": "1700000000",
        "endTs": "1700086400",
        "tokenAddress": TOKEN,
        "pairId": "0x" + "ab" * 32,
        "ipfsCID": "bafy-cid",
    }


def test_unknown_topic_is_skipped(event_store, fake_rpc_factory):
    indexer = _indexer(event_store, fake_rpc_factory())
    log = _stake_log()
    log["topics"][0] = "0x" + "00" * 32

    assert indexer.decode_event(log) is None
    assert indexer.decode_event(dict(log, topics=[])) is None


def test_logs_are_fetched_in_block_batches(event_store, fake_rpc_factory):
    rpc = fake_rpc_factory({"eth_blockNumber": hex(4500), "eth_getLogs": []})
    indexer = _indexer(event_store, rpc)

    assert indexer.poll_once() is True

    ranges = [
        (int(params[0]["fromBlock"], 16), int(params[0]["toBlock"], 16))
        for method, params in rpc.calls
        if method == "eth_getLogs"
    ]
    assert ranges == [(1, 2000), (2001, 4000), (4001, 4500)]
    assert all(params[0]["address"] == CONTRACT for method, params in rpc.calls if method == "eth_getLogs")
    assert indexer.cursor == 4501


def test_full_cycle_aggregates_call(event_store, fake_rpc_factory):
    logs = [
        _stake_log(amount=5, log_index=0, tx_hash="0x" + "01" * 32),
        _call_created_log(stake=1000, log_index=1, tx_hash="0x" + "02" * 32),
        _stake_log(position=False, amount=2**200, log_index=2, tx_hash="0x" + "03" * 32),
        _outcome_log(log_index=3, tx_hash="0x" + "04" * 32),
    ]
    rpc = fake_rpc_factory({"eth_blockNumber": hex(12), "eth_getLogs": logs})
    indexer = _indexer(event_store, rpc, start_height=10)

    assert indexer.poll_once() is True

    call = event_store.get_call(ChainType.BASE, "1")
    assert call.total_stake_yes == 1005
    assert call.total_stake_no == 2**200
    assert call.creator == CREATOR
    assert call.end_ts == 1700086400
    assert call.extra == {"tokenAddress": TOKEN, "pairId": "0x" + "ab" * 32, "ipfsCID": "bafy-cid"}
    assert call.status == "settled"
    assert call.outcome == "false"
    assert call.final_price == 95


def test_corrupt_log_data_is_skipped(event_store, fake_rpc_factory):
    corrupt = dict(_stake_log(log_index=0), data="0x1234")
    rpc = fake_rpc_factory({"eth_blockNumber": hex(10), "eth_getLogs": [corrupt, _stake_log(log_index=1)]})
    indexer = _indexer(event_store, rpc, start_height=10)

    assert indexer.poll_once() is True
    assert indexer.get_status().events_skipped == 1
    assert event_store.get_call(ChainType.BASE, "1").total_stake_yes == 10
