from __future__ import annotations

import threading
import time
from collections.abc import Callable

from loguru import logger

from app.core.config import get_settings

from .service import OracleService, OutcomeLogic, PendingSettlement, PriceSource
from .signer import SignedOutcome


class OracleMonitor:
    """Settles registered calls once their end timestamp has passed.

    Entries leave the pending map only after a successful submission; a failed
    attempt stays registered and is retried on the next sweep.
    """

    def __init__(
        self,
        oracle: OracleService,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.oracle = oracle
        self._clock = clock
        self._pending: dict[int, PendingSettlement] = {}
        self._lock = threading.Lock()
        self._sweep_lock = threading.Lock()
        self._stop_event: threading.Event | None = None
        self._thread: threading.Thread | None = None

    def register_call(
        self,
        call_id: int,
        end_ts: int,
        price_source: PriceSource,
        outcome_logic: OutcomeLogic,
    ) -> None:
        with self._lock:
            self._pending[call_id] = PendingSettlement(call_id, end_ts, price_source, outcome_logic)
        logger.debug("Registered call {} for settlement at {}", call_id, end_ts)

    def unregister_call(self, call_id: int) -> bool:
        with self._lock:
            return self._pending.pop(call_id, None) is not None

    def pending_calls(self) -> dict[int, PendingSettlement]:
        with self._lock:
            return dict(self._pending)

    @property
    def is_running(self) -> bool:
        return self._stop_event is not None

    def run_once(self, now: int | None = None) -> list[SignedOutcome]:
        """One sweep over the due calls; returns the submissions that succeeded."""

        if not self._sweep_lock.acquire(blocking=False):
            logger.debug("Oracle sweep already in progress; skipping")
            return []
        try:
            current = int(self._clock()) if now is None else now
            with self._lock:
                due = [entry for entry in self._pending.values() if current >= entry.end_ts]

            settled: list[SignedOutcome] = []
            for entry in due:
                try:
                    final_price = entry.price_source()
                    outcome = bool(entry.outcome_logic(final_price))
                    signed = self.oracle.settle_call(
                        entry.call_id, outcome, final_price, current, entry.end_ts
                    )
                except Exception:  # noqa: BLE001
                    logger.exception("Error settling call {}", entry.call_id)
                    continue
                if signed is None:
                    continue

                with self._lock:
                    if self._pending.get(entry.call_id) is entry:
                        del self._pending[entry.call_id]
                settled.append(signed)
                logger.info("Settled call {}", entry.call_id)
            return settled
        finally:
            self._sweep_lock.release()

    def start(self, interval_seconds: float | None = None) -> bool:
        if interval_seconds is None:
            interval_seconds = get_settings().oracle_monitor_interval_seconds
        if self._stop_event is not None:
            logger.warning("Oracle monitor is already running")
            return False
        stop_event = threading.Event()
        thread = threading.Thread(
            target=self._run_loop,
            args=(interval_seconds, stop_event),
            name="oracle-monitor",
            daemon=True,
        )
        self._stop_event = stop_event
        self._thread = thread
        thread.start()
        logger.info("Oracle monitor started (interval={}s)", interval_seconds)
        return True

    def stop(self) -> None:
        stop_event, self._stop_event = self._stop_event, None
        self._thread = None
        if stop_event is None:
            return
        stop_event.set()
        logger.info("Oracle monitor stopped")

    def _run_loop(self, interval_seconds: float, stop_event: threading.Event) -> None:
        while not stop_event.wait(interval_seconds):
            try:
                self.run_once()
            except Exception:  # noqa: BLE001
                logger.exception("Oracle monitor sweep failed")


__all__ = ["OracleMonitor"]
