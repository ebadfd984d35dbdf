"""Polling loop shared by every chain indexer.

Lifecycle: IDLE -> RUNNING -> STOPPED (-> RUNNING again on restart). Each
running indexer owns one background thread and one stop event; ticks are
serialised by a non-blocking lock so a slow cycle makes the next tick skip
instead of racing it on the same cursor.

A cycle fetches the chain head, pulls every event in [cursor, head], decodes
and stores them, and only then moves the cursor to head + 1. Failed cycles
are retried a bounded number of times and otherwise abandoned with the cursor
untouched, so the same range is fetched again on the next tick. Duplicates
that result from that are absorbed by the store's dedup key.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from loguru import logger

from app.domain import ChainEvent
from app.models import ChainType
from app.repositories import EventStatistics

from .errors import EventDecodeError
from .rpc import JsonRpcClient
from .store import EventStore


class IndexerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


@dataclass(slots=True)
class IndexerConfig:
    rpc_url: str
    poll_interval_ms: int = 12000
    start_height: int | None = None
    max_retries: int = 3
    retry_delay_ms: int = 5000


@dataclass(slots=True)
class IndexerStatus:
    chain: str
    state: str
    initialized: bool
    cursor: int | None
    last_indexed_height: int | None
    last_polled_at: datetime | None
    consecutive_failures: int
    events_stored: int
    events_skipped: int

    @property
    def is_running(self) -> bool:
        return self.state == IndexerState.RUNNING.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "chain": self.chain,
            "state": self.state,
            "is_running": self.is_running,
            "initialized": self.initialized,
            "cursor": self.cursor,
            "last_indexed_height": self.last_indexed_height,
            "last_polled_at": self.last_polled_at.isoformat() if self.last_polled_at else None,
            "consecutive_failures": self.consecutive_failures,
            "events_stored": self.events_stored,
            "events_skipped": self.events_skipped,
        }


class CycleCancelled(Exception):
    """The indexer was stopped while a cycle was in flight."""


class ChainIndexer(ABC):
    """Abstract timer-driven indexer; subclasses supply the chain specifics."""

    chain: ChainType
    height_label = "block"

    def __init__(
        self,
        store: EventStore | None = None,
        config: IndexerConfig | None = None,
        *,
        rpc: JsonRpcClient | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._store = store or EventStore()
        self._rpc = rpc
        self._owns_rpc = rpc is None
        self._sleep = sleep
        self.config: IndexerConfig | None = None

        self._state = IndexerState.IDLE
        self._state_lock = threading.Lock()
        self._tick_lock = threading.Lock()
        self._generation = 0
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

        self._cursor: int | None = None
        self._last_indexed_height: int | None = None
        self._last_polled_at: datetime | None = None
        self._consecutive_failures = 0
        self._events_stored = 0
        self._events_skipped = 0

        if config is not None:
            self.initialize(config)

    # ------------------------------------------------------------------
    # Chain specifics

    @abstractmethod
    def fetch_head(self) -> int:
        """Return the latest ledger/block height known to the RPC node."""

    @abstractmethod
    def fetch_events(self, start: int, end: int) -> Iterable[Any]:
        """Return raw events for the inclusive height range [start, end]."""

    @abstractmethod
    def decode_event(self, raw: Any) -> ChainEvent | None:
        """Decode one raw event; None or an exception skips it."""

    def default_start_height(self, head: int) -> int:
        return 1

    def describe_targets(self) -> str:
        return ""

    # ------------------------------------------------------------------
    # Lifecycle

    def initialize(self, config: IndexerConfig) -> None:
        self.config = config
        if self._owns_rpc and (self._rpc is None or self._rpc.rpc_url != config.rpc_url):
            if self._rpc is not None:
                self._rpc.close()
            self._rpc = JsonRpcClient(config.rpc_url)
        if config.start_height is not None:
            self._cursor = config.start_height
        logger.info("{} indexer initialized with RPC: {}", self.chain.value, config.rpc_url)
        targets = self.describe_targets()
        if targets:
            logger.info("{} indexer monitoring: {}", self.chain.value, targets)

    @property
    def initialized(self) -> bool:
        return self.config is not None

    @property
    def state(self) -> IndexerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is IndexerState.RUNNING

    @property
    def cursor(self) -> int | None:
        return self._cursor

    @property
    def rpc(self) -> JsonRpcClient:
        if self._rpc is None:
            raise RuntimeError(f"{self.chain.value} indexer has no RPC client; call initialize() first")
        return self._rpc

    def start(self) -> bool:
        if self.config is None:
            logger.warning(
                "{} indexer not initialized. Call initialize() first.", self.chain.value
            )
            return False

        with self._state_lock:
            if self._state is IndexerState.RUNNING:
                logger.warning("{} indexer is already running", self.chain.value)
                return False
            self._state = IndexerState.RUNNING
            self._generation += 1
            generation = self._generation
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(generation, stop_event),
                name=f"{self.chain.value}-indexer",
                daemon=True,
            )
            self._stop_event = stop_event
            self._thread = thread

        logger.info("Starting {} indexer...", self.chain.value)
        thread.start()
        return True

    def stop(self) -> None:
        with self._state_lock:
            if self._state is not IndexerState.RUNNING:
                return
            self._state = IndexerState.STOPPED
            self._generation += 1
            stop_event, self._stop_event = self._stop_event, None
            self._thread = None

        if stop_event is not None:
            stop_event.set()
        logger.info("{} indexer stopped", self.chain.value)

    def close(self) -> None:
        self.stop()
        if self._rpc is not None:
            self._rpc.close()

    def join(self, timeout: float | None = None) -> None:
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    # ------------------------------------------------------------------
    # Polling

    def poll_once(self) -> bool:
        """Run one cycle on the caller's thread.

        Returns True when the cursor advanced or there was nothing new, False
        when the tick was skipped, abandoned or cancelled.
        """

        if self.config is None:
            logger.warning("{} indexer not initialized; nothing to poll", self.chain.value)
            return False
        with self._state_lock:
            generation = self._generation
            stop_event = self._stop_event
        return self._tick(generation, stop_event)

    def _run_loop(self, generation: int, stop_event: threading.Event) -> None:
        assert self.config is not None
        interval = self.config.poll_interval_ms / 1000
        while not stop_event.is_set():
            try:
                self._tick(generation, stop_event)
            except Exception:  # noqa: BLE001
                logger.exception("Error during {} event polling", self.chain.value)
            if stop_event.wait(interval):
                break

    def _tick(self, generation: int, stop_event: threading.Event | None) -> bool:
        if not self._tick_lock.acquire(blocking=False):
            logger.debug("{} poll cycle still in flight; skipping tick", self.chain.value)
            return False
        try:
            return self._run_with_retries(generation, stop_event)
        finally:
            self._tick_lock.release()

    def _run_with_retries(self, generation: int, stop_event: threading.Event | None) -> bool:
        assert self.config is not None
        max_retries = self.config.max_retries
        delay = self.config.retry_delay_ms / 1000

        for attempt in range(max_retries + 1):
            if not self._is_current(generation):
                return False
            try:
                self._run_cycle(generation)
            except CycleCancelled:
                logger.info("{} indexer stopped mid-cycle; discarding results", self.chain.value)
                return False
            except Exception as exc:  # noqa: BLE001
                self._consecutive_failures += 1
                if attempt < max_retries:
                    logger.warning(
                        "Failed to fetch {} events (attempt {}/{}), retrying: {}",
                        self.chain.value,
                        attempt + 1,
                        max_retries,
                        exc,
                    )
                    if self._wait(delay, stop_event):
                        return False
                    continue
                logger.error(
                    "Max retries reached, skipping this {} poll cycle: {}", self.chain.value, exc
                )
                return False
            self._consecutive_failures = 0
            return True
        return False

    def _wait(self, seconds: float, stop_event: threading.Event | None) -> bool:
        """Sleep between retries; True means the indexer was stopped meanwhile."""

        if stop_event is not None:
            return stop_event.wait(seconds)
        self._sleep(seconds)
        return False

    def _is_current(self, generation: int) -> bool:
        return self._generation == generation

    def _ensure_current(self, generation: int) -> None:
        if not self._is_current(generation):
            raise CycleCancelled()

    def _run_cycle(self, generation: int) -> None:
        head = self.fetch_head()
        self._ensure_current(generation)

        start = self._cursor if self._cursor is not None else self.default_start_height(head)
        if start > head:
            logger.debug("No new {}s to process on {}", self.height_label, self.chain.value)
            with self._state_lock:
                self._ensure_current(generation)
                self._cursor = start
                self._last_polled_at = datetime.now(timezone.utc)
            return

        logger.debug(
            "Fetching {} events from {} {} to {}", self.chain.value, self.height_label, start, head
        )
        raw_events = list(self.fetch_events(start, head))
        self._ensure_current(generation)

        for raw in raw_events:
            try:
                event = self.decode_event(raw)
            except Exception:  # noqa: BLE001
                logger.exception("Error parsing {} event; skipping", self.chain.value)
                self._events_skipped += 1
                continue
            if event is None:
                self._events_skipped += 1
                continue

            self._ensure_current(generation)
            try:
                stored = self._store.store(event)
            except EventDecodeError as exc:
                logger.error(
                    "Skipping malformed {} event {}:{}: {}",
                    event.event_type,
                    event.tx_hash,
                    event.event_sequence,
                    exc,
                )
                self._events_skipped += 1
                continue
            if stored:
                self._events_stored += 1

        with self._state_lock:
            self._ensure_current(generation)
            self._cursor = head + 1
            self._last_indexed_height = head
            self._last_polled_at = datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # Reporting

    def get_status(self) -> IndexerStatus:
        return IndexerStatus(
            chain=self.chain.value,
            state=self._state.value,
            initialized=self.initialized,
            cursor=self._cursor,
            last_indexed_height=self._last_indexed_height,
            last_polled_at=self._last_polled_at,
            consecutive_failures=self._consecutive_failures,
            events_stored=self._events_stored,
            events_skipped=self._events_skipped,
        )

    def statistics(self) -> EventStatistics:
        stats = self._store.statistics(self.chain)
        stats.last_indexed_height = self._last_indexed_height
        return stats

    def events_by_type(self, event_type: str, *, limit: int | None = None):
        return self._store.events_by_type(event_type, chain=self.chain, limit=limit)

    def events_by_contract(self, contract_id: str, *, limit: int | None = None):
        return self._store.events_by_contract(contract_id, chain=self.chain, limit=limit)


__all__ = [
    "ChainIndexer",
    "CycleCancelled",
    "IndexerConfig",
    "IndexerState",
    "IndexerStatus",
]
