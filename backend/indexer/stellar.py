from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Iterable

from dateutil import parser as date_parser
from loguru import logger
from stellar_sdk.xdr import SCValType

from app.domain import ChainEvent, EventType
from app.models import ChainType

from .chain_indexer import ChainIndexer, IndexerConfig
from .errors import EventDecodeError, RpcError
from .scval import decode_scval, parse_xdr, to_native

EVENT_NAME_MAP: dict[str, str] = {
    "CallCreated": EventType.CALL_CREATED.value,
    "StakeAdded": EventType.STAKE_ADDED.value,
    "OutcomeSubmitted": EventType.OUTCOME_SUBMITTED.value,
}

DEFAULT_LOOKBACK_LEDGERS = 100
PAGE_LIMIT = 100


@dataclass(slots=True)
class StellarIndexerConfig(IndexerConfig):
    contract_ids: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SorobanEventEnvelope:
    contract_id: str
    payload: dict[str, Any]


def event_sequence_from_id(event_id: str | None) -> int:
    """``"<toid>-<n>"`` -> n; anything else -> 0."""

    if not event_id or "-" not in event_id:
        return 0
    tail = event_id.split("-", 1)[1]
    try:
        return int(tail)
    except ValueError:
        return 0


def _topics(payload: dict[str, Any]) -> list[str]:
    topics = payload.get("topic")
    if topics is None:
        topics = payload.get("topics")
    if topics is None and isinstance(payload.get("contract"), dict):
        topics = payload["contract"].get("topics")
    return list(topics or [])


def _data(payload: dict[str, Any]) -> str | None:
    value = payload.get("value")
    if isinstance(value, dict):
        value = value.get("xdr")
    if value is None:
        value = payload.get("data")
    if value is None and isinstance(payload.get("contract"), dict):
        value = payload["contract"].get("data")
    return value


def _parse_closed_at(raw: Any) -> datetime | None:
    if not raw:
        return None
    try:
        return date_parser.isoparse(str(raw))
    except (TypeError, ValueError):
        logger.debug("Unparseable ledgerClosedAt value {}", raw)
        return None


class StellarIndexer(ChainIndexer):
    """Polls Soroban RPC ``getEvents`` for the configured contracts."""

    chain = ChainType.STELLAR
    height_label = "ledger"

    config: StellarIndexerConfig | None

    def describe_targets(self) -> str:
        if self.config is None:
            return ""
        return ", ".join(self.config.contract_ids)

    def default_start_height(self, head: int) -> int:
        return max(head - DEFAULT_LOOKBACK_LEDGERS, 1)

    def fetch_head(self) -> int:
        result = self.rpc.call("getLatestLedger")
        try:
            return int(result["sequence"])
        except (KeyError, TypeError, ValueError) as exc:
            raise RpcError("getLatestLedger", f"missing ledger sequence in {result!r}") from exc

    def fetch_events(self, start: int, end: int) -> list[SorobanEventEnvelope]:
        assert self.config is not None
        collected: list[SorobanEventEnvelope] = []
        for contract_id in self.config.contract_ids:
            events = list(self._fetch_contract_events(contract_id, start, end))
            if not events:
                logger.debug("No events found for contract {}", contract_id)
                continue
            logger.debug("Found {} events for contract {}", len(events), contract_id)
            collected.extend(SorobanEventEnvelope(contract_id, event) for event in events)
        return collected

    def _fetch_contract_events(
        self, contract_id: str, start: int, end: int
    ) -> Iterable[dict[str, Any]]:
        filters = [{"type": "contract", "contractIds": [contract_id]}]
        params: dict[str, Any] = {
            "startLedger": start,
            "filters": filters,
            "pagination": {"limit": PAGE_LIMIT},
        }
        while True:
            result = self.rpc.call("getEvents", params) or {}
            page = result.get("events") or []
            for event in page:
                ledger = int(event.get("ledger", 0))
                if ledger > end:
                    return
                yield event

            cursor = result.get("cursor")
            if cursor is None and page:
                cursor = page[-1].get("pagingToken") or page[-1].get("id")
            if len(page) < PAGE_LIMIT or not cursor:
                return
            params = {"filters": filters, "pagination": {"cursor": cursor, "limit": PAGE_LIMIT}}

    def decode_event(self, raw: SorobanEventEnvelope) -> ChainEvent:
        payload = raw.payload
        tx_hash = payload.get("txHash")
        if not tx_hash:
            raise EventDecodeError(f"Soroban event {payload.get('id')} has no txHash")

        topics = [parse_xdr(topic) for topic in _topics(payload)]
        event_type = EventType.UNKNOWN.value
        if topics and topics[0].type == SCValType.SCV_SYMBOL:
            symbol = to_native(decode_scval(topics[0]))
            event_type = EVENT_NAME_MAP.get(symbol, symbol)

        event_data: dict[str, Any] = {}
        for index, topic in enumerate(topics[1:], start=1):
            event_data[f"topic_{index}"] = to_native(decode_scval(topic))
        data = _data(payload)
        if data is not None:
            event_data["data_0"] = to_native(decode_scval(parse_xdr(data)))

        return ChainEvent(
            chain=self.chain,
            tx_hash=tx_hash,
            contract_id=raw.contract_id,
            ledger_height=int(payload.get("ledger", 0)),
            event_type=event_type,
            event_sequence=event_sequence_from_id(payload.get("id")),
            event_data=event_data,
            occurred_at=_parse_closed_at(payload.get("ledgerClosedAt")),
        )


__all__ = [
    "EVENT_NAME_MAP",
    "SorobanEventEnvelope",
    "StellarIndexer",
    "StellarIndexerConfig",
    "event_sequence_from_id",
]
