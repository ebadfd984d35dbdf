from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from loguru import logger

from app.domain import ChainEvent
from app.models import ChainType

from .chain_indexer import ChainIndexer, IndexerConfig
from .errors import EventDecodeError, RpcError
from .evm_logs import decode_log_fields, lookup_abi


@dataclass(slots=True)
class BaseIndexerConfig(IndexerConfig):
    contract_address: str = ""
    block_batch_size: int = 2000


def _hex_to_int(value: Any, *, field: str) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(str(value), 16)
    except (TypeError, ValueError) as exc:
        raise EventDecodeError(f"Log field {field} is not a hex quantity: {value!r}") from exc


class BaseIndexer(ChainIndexer):
    """Polls ``eth_getLogs`` for the call contract on Base."""

    chain = ChainType.BASE
    height_label = "block"

    config: BaseIndexerConfig | None

    def describe_targets(self) -> str:
        return self.config.contract_address if self.config is not None else ""

    def fetch_head(self) -> int:
        result = self.rpc.call("eth_blockNumber")
        try:
            return int(result, 16)
        except (TypeError, ValueError) as exc:
            raise RpcError("eth_blockNumber", f"unexpected block number {result!r}") from exc

    def fetch_events(self, start: int, end: int) -> list[dict[str, Any]]:
        assert self.config is not None
        batch = max(self.config.block_batch_size, 1)
        logs: list[dict[str, Any]] = []
        from_block = start
        while from_block <= end:
            to_block = min(from_block + batch - 1, end)
            chunk = self.rpc.call(
                "eth_getLogs",
                [
                    {
                        "fromBlock": hex(from_block),
                        "toBlock": hex(to_block),
                        "address": self.config.contract_address,
                    }
                ],
            )
            chunk = chunk or []
            if chunk:
                logger.debug(
                    "Found {} logs in blocks {}-{} for {}",
                    len(chunk),
                    from_block,
                    to_block,
                    self.config.contract_address,
                )
            logs.extend(chunk)
            from_block = to_block + 1
        return logs

    def decode_event(self, raw: dict[str, Any]) -> ChainEvent | None:
        topics = raw.get("topics") or []
        if not topics:
            logger.debug("Skipping anonymous log in tx {}", raw.get("transactionHash"))
            return None

        abi = lookup_abi(topics[0])
        if abi is None:
            logger.debug("Skipping log with unknown topic0 {}", topics[0])
            return None

        tx_hash = raw.get("transactionHash")
        if not tx_hash:
            raise EventDecodeError(f"{abi.name} log has no transactionHash")

        return ChainEvent(
            chain=self.chain,
            tx_hash=tx_hash,
            contract_id=raw.get("address") or (self.config.contract_address if self.config else ""),
            ledger_height=_hex_to_int(raw.get("blockNumber"), field="blockNumber"),
            event_type=abi.name,
            event_sequence=_hex_to_int(raw.get("logIndex"), field="logIndex"),
            event_data=decode_log_fields(abi, raw),
        )


__all__ = ["BaseIndexer", "BaseIndexerConfig"]
