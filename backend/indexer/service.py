"""Facade that runs the Stellar and Base indexers side by side."""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from loguru import logger

from app.core.config import Settings, get_settings
from app.models import ChainEventRecord, ChainType

from .base_chain import BaseIndexer, BaseIndexerConfig
from .chain_indexer import ChainIndexer
from .stellar import StellarIndexer, StellarIndexerConfig
from .store import EventStore


class MultiChainIndexerService:
    def __init__(
        self,
        stellar: StellarIndexer | None = None,
        base: BaseIndexer | None = None,
        *,
        store: EventStore | None = None,
    ) -> None:
        self.store = store or EventStore()
        self.stellar = stellar or StellarIndexer(self.store)
        self.base = base or BaseIndexer(self.store)
        self._running = False

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        store: EventStore | None = None,
        chains: Iterable[str] | None = None,
    ) -> "MultiChainIndexerService":
        cfg = settings or get_settings()
        selected = {chain.lower() for chain in chains} if chains else {chain.value for chain in ChainType}
        store = store or EventStore()
        service = cls(StellarIndexer(store), BaseIndexer(store), store=store)

        if ChainType.STELLAR.value not in selected:
            logger.info("Stellar indexer not selected")
        elif cfg.stellar_rpc_url and cfg.stellar_contract_ids:
            service.stellar.initialize(
                StellarIndexerConfig(
                    rpc_url=cfg.stellar_rpc_url,
                    contract_ids=list(cfg.stellar_contract_ids),
                    start_height=cfg.stellar_start_ledger,
                    poll_interval_ms=cfg.indexer_poll_interval_ms,
                    max_retries=cfg.indexer_max_retries,
                    retry_delay_ms=cfg.indexer_retry_delay_ms,
                )
            )
        else:
            logger.info("Stellar indexer disabled: STELLAR_RPC_URL or STELLAR_CONTRACT_IDS not set")

        if ChainType.BASE.value not in selected:
            logger.info("Base indexer not selected")
        elif cfg.base_rpc_url and cfg.base_contract_address:
            service.base.initialize(
                BaseIndexerConfig(
                    rpc_url=cfg.base_rpc_url,
                    contract_address=cfg.base_contract_address,
                    block_batch_size=cfg.base_block_batch_size,
                    start_height=cfg.base_start_block,
                    poll_interval_ms=cfg.indexer_poll_interval_ms,
                    max_retries=cfg.indexer_max_retries,
                    retry_delay_ms=cfg.indexer_retry_delay_ms,
                )
            )
        else:
            logger.info("Base indexer disabled: BASE_RPC_URL or BASE_CONTRACT_ADDRESS not set")

        return service

    @property
    def indexers(self) -> tuple[ChainIndexer, ...]:
        return (self.stellar, self.base)

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        logger.info("Starting multi-chain indexer service...")
        for indexer in self.indexers:
            if not indexer.initialized:
                continue
            try:
                indexer.start()
            except Exception:  # noqa: BLE001
                logger.exception("Failed to start {} indexer", indexer.chain.value)
        self._running = True
        logger.info("Multi-chain indexer service started")

    def stop(self) -> None:
        logger.info("Stopping multi-chain indexer service...")
        for indexer in self.indexers:
            try:
                indexer.stop()
            except Exception:  # noqa: BLE001
                logger.exception("Failed to stop {} indexer", indexer.chain.value)
        self._running = False
        logger.info("Multi-chain indexer service stopped")

    def close(self) -> None:
        self.stop()
        for indexer in self.indexers:
            indexer.close()

    def poll_once(self) -> dict[str, bool]:
        """One synchronous cycle per enabled chain."""

        results: dict[str, bool] = {}
        for indexer in self.indexers:
            if not indexer.initialized:
                continue
            try:
                results[indexer.chain.value] = indexer.poll_once()
            except Exception:  # noqa: BLE001
                logger.exception("{} poll failed", indexer.chain.value)
                results[indexer.chain.value] = False
        return results

    def status(self) -> dict[str, Any]:
        return {
            "is_running": self._running,
            "stellar_enabled": self.stellar.initialized,
            "base_enabled": self.base.initialized,
            "current_ledger": self.stellar.cursor,
            "current_block": self.base.cursor,
            "indexers": [indexer.get_status().to_dict() for indexer in self.indexers],
        }

    def statistics(self) -> dict[str, Any]:
        stats: dict[str, Any] = {}
        for indexer in self.indexers:
            chain_stats = indexer.statistics()
            stats[indexer.chain.value] = {
                "total_events": chain_stats.total_events,
                "events_by_type": dict(chain_stats.events_by_type),
                "last_indexed_height": chain_stats.last_indexed_height,
            }
        return stats

    def events_by_type(
        self, event_type: str, *, chain: ChainType | None = None, limit: int | None = None
    ) -> list[ChainEventRecord]:
        return self.store.events_by_type(event_type, chain=chain, limit=limit)

    def events_by_contract(
        self, contract_id: str, *, chain: ChainType | None = None, limit: int | None = None
    ) -> list[ChainEventRecord]:
        return self.store.events_by_contract(contract_id, chain=chain, limit=limit)


__all__ = ["MultiChainIndexerService"]
