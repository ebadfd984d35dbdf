from __future__ import annotations

import threading
from unittest.mock import MagicMock, patch

import pytest

from app.domain import ChainEvent
from app.models import ChainType
from indexer.chain_indexer import ChainIndexer, IndexerConfig, IndexerState
from indexer.errors import EventDecodeError, RpcError


class ScriptedIndexer(ChainIndexer):
    """Concrete indexer whose chain access is driven by the test."""

    chain = ChainType.BASE

    def __init__(
        self, store, config=None, *, head=lambda: 10, events=lambda start, end: [], sleeps=None, rpc=None, inject_rpc=True
    ):
        self.head = head
        self.events = events
        self.sleeps = sleeps if sleeps is not None else []
        self.ranges: list[tuple[int, int]] = []
        rpc = (rpc or MagicMock()) if inject_rpc else None
        super().__init__(store, config, rpc=rpc, sleep=self.sleeps.append)

    def fetch_head(self) -> int:
        return self.head()

    def fetch_events(self, start, end):
        self.ranges.append((start, end))
        return self.events(start, end)

    def decode_event(self, raw):
        if raw == "garbage":
            raise ValueError("cannot decode")
        if raw is None:
            return None
        return ChainEvent(
            chain=self.chain,
            tx_hash=f"0x{raw:064x}",
            contract_id="0xcontract",
            ledger_height=raw,
            event_type="StakeAdded",
            event_sequence=0,
            event_data={"callId": "1", "position": True, "amount": "1"},
        )


def _config(**overrides) -> IndexerConfig:
    values = {"rpc_url": "https://rpc.test", "max_retries": 3, "retry_delay_ms": 5000, "poll_interval_ms": 60000}
    values.update(overrides)
    return IndexerConfig(**values)


@pytest.fixture
def store():
    mock = MagicMock()
    mock.store.return_value = True
    return mock


def test_uninitialized_indexer_is_inert(store):
    indexer = ScriptedIndexer(store)

    assert indexer.start() is False
    assert indexer.poll_once() is False
    assert indexer.state is IndexerState.IDLE
    indexer.stop()
    assert indexer.state is IndexerState.IDLE


def test_cursor_advances_to_head_plus_one(store):
    heads = iter([10, 10, 15])
    indexer = ScriptedIndexer(store, _config(start_height=3), head=lambda: next(heads))

    assert indexer.poll_once() is True
    assert indexer.cursor == 11
    assert indexer.poll_once() is True
    assert indexer.poll_once() is True

    assert indexer.ranges == [(3, 10), (11, 15)]
    assert indexer.cursor == 16


def test_default_start_used_when_unset(store):
    indexer = ScriptedIndexer(store, _config(), head=lambda: 5)

    indexer.poll_once()

    assert indexer.ranges == [(1, 5)]


def test_retry_bound_leaves_cursor_unchanged(store):
    attempts = []

    def failing_head():
        attempts.append(1)
        raise RpcError("eth_blockNumber", "boom")

    indexer = ScriptedIndexer(store, _config(start_height=7), head=failing_head)

    assert indexer.poll_once() is False

    assert len(attempts) == 4
    assert indexer.sleeps == [5.0, 5.0, 5.0]
    assert indexer.cursor == 7
    assert indexer.get_status().consecutive_failures == 4
    store.store.assert_not_called()


def test_recovers_within_retry_limit(store):
    outcomes = iter([RpcError("m", "a"), RpcError("m", "b"), 12])

    def flaky_head():
        value = next(outcomes)
        if isinstance(value, Exception):
            raise value
        return value

    indexer = ScriptedIndexer(store, _config(start_height=12), head=flaky_head, events=lambda s, e: [12])

    assert indexer.poll_once() is True
    assert len(indexer.sleeps) == 2
    assert indexer.cursor == 13
    assert indexer.get_status().consecutive_failures == 0


def test_store_failure_fails_cycle(store):
    store.store.side_effect = RuntimeError("database unavailable")
    indexer = ScriptedIndexer(store, _config(start_height=1, max_retries=1), events=lambda s, e: [5])

    assert indexer.poll_once() is False
    assert indexer.cursor == 1
    assert store.store.call_count == 2


def test_single_bad_event_does_not_abort_batch(store):
    store.store.side_effect = [EventDecodeError("missing amount"), True]
    indexer = ScriptedIndexer(
        store, _config(start_height=1), events=lambda s, e: ["garbage", None, 3, 4]
    )

    assert indexer.poll_once() is True

    status = indexer.get_status()
    assert status.events_stored == 1
    assert status.events_skipped == 3
    assert indexer.cursor == 11


def test_overlapping_tick_is_skipped(store):
    entered = threading.Event()
    release = threading.Event()

    def slow_head():
        entered.set()
        release.wait(timeout=5)
        return 10

    indexer = ScriptedIndexer(store, _config(start_height=1), head=slow_head)
    results: list[bool] = []
    worker = threading.Thread(target=lambda: results.append(indexer.poll_once()))
    worker.start()
    try:
        assert entered.wait(timeout=5)
        assert indexer.poll_once() is False
    finally:
        release.set()
        worker.join(timeout=5)

    assert results == [True]


def test_stop_mid_fetch_discards_results(store):
    entered = threading.Event()
    release = threading.Event()

    def slow_events(start, end):
        entered.set()
        release.wait(timeout=5)
        return [1, 2, 3]

    indexer = ScriptedIndexer(store, _config(start_height=1), events=slow_events)

    assert indexer.start() is True
    assert indexer.start() is False
    worker = indexer._thread
    assert entered.wait(timeout=5)

    indexer.stop()
    release.set()
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert indexer.state is IndexerState.STOPPED
    assert indexer.cursor == 1
    store.store.assert_not_called()


def test_stop_interrupts_retry_wait(store):
    failed = threading.Event()

    def failing_head():
        failed.set()
        raise RpcError("getLatestLedger", "down")

    indexer = ScriptedIndexer(store, _config(retry_delay_ms=60000), head=failing_head)

    indexer.start()
    worker = indexer._thread
    assert failed.wait(timeout=5)
    indexer.stop()
    worker.join(timeout=5)

    assert not worker.is_alive()
    assert indexer.sleeps == []


def test_restart_after_stop(store):
    polled = threading.Event()

    def head():
        polled.set()
        return 1

    indexer = ScriptedIndexer(store, _config(start_height=1), head=head)

    indexer.start()
    first_worker = indexer._thread
    assert polled.wait(timeout=5)
    indexer.stop()
    first_worker.join(timeout=5)
    polled.clear()

    assert indexer.start() is True
    assert indexer.state is IndexerState.RUNNING
    assert polled.wait(timeout=5)
    indexer.stop()


def test_status_to_dict(store):
    indexer = ScriptedIndexer(store, _config(start_height=1), events=lambda s, e: [2])
    indexer.poll_once()

    payload = indexer.get_status().to_dict()

    assert payload["chain"] == "base"
    assert payload["state"] == "idle"
    assert payload["is_running"] is False
    assert payload["cursor"] == 11
    assert payload["last_indexed_height"] == 10
    assert payload["events_stored"] == 1
    assert payload["last_polled_at"] is not None


@patch("indexer.chain_indexer.JsonRpcClient")
def test_reinitialize_rebuilds_owned_rpc_client(mock_client_cls, store):
    first, second = MagicMock(rpc_url="https://rpc.test"), MagicMock(rpc_url="https://rpc.other")
    mock_client_cls.side_effect = [first, second]
    indexer = ScriptedIndexer(store, inject_rpc=False)

    indexer.initialize(_config())
    indexer.initialize(_config())
    assert indexer.rpc is first
    assert mock_client_cls.call_count == 1

    indexer.initialize(_config(rpc_url="https://rpc.other"))

    assert indexer.rpc is second
    first.close.assert_called_once()
    mock_client_cls.assert_called_with("https://rpc.other")


def test_reinitialize_keeps_injected_rpc_client(store):
    injected = MagicMock(rpc_url="https://rpc.test")
    indexer = ScriptedIndexer(store, rpc=injected)

    indexer.initialize(_config())
    indexer.initialize(_config(rpc_url="https://rpc.other"))

    assert indexer.rpc is injected
    injected.close.assert_not_called()
