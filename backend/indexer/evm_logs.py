"""ABI decoding of the call contract's EVM logs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from eth_abi import decode
from eth_utils import decode_hex, keccak, to_checksum_address

from .errors import EventDecodeError


@dataclass(frozen=True, slots=True)
class EventParam:
    name: str
    abi_type: str
    indexed: bool = False


@dataclass(frozen=True, slots=True)
class EventAbi:
    name: str
    params: tuple[EventParam, ...]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(param.abi_type for param in self.params)})"

    @property
    def topic0(self) -> str:
        return "0x" + keccak(text=self.signature).hex()

    @property
    def indexed_params(self) -> tuple[EventParam, ...]:
        return tuple(param for param in self.params if param.indexed)

    @property
    def data_params(self) -> tuple[EventParam, ...]:
        return tuple(param for param in self.params if not param.indexed)


CALL_CREATED = EventAbi(
    "CallCreated",
    (
        EventParam("callId", "uint256", indexed=True),
        EventParam("creator", "address", indexed=True),
        EventParam("stakeToken", "address"),
        EventParam("stakeAmount", "uint256"),
        EventParam("startTs", "uint256"),
        EventParam("endTs", "uint256"),
        EventParam("tokenAddress", "address"),
        EventParam("pairId", "bytes32"),
        EventParam("ipfsCID", "string"),
    ),
)

STAKE_ADDED = EventAbi(
    "StakeAdded",
    (
        EventParam("callId", "uint256", indexed=True),
        EventParam("staker", "address", indexed=True),
        EventParam("position", "bool"),
        EventParam("amount", "uint256"),
    ),
)

OUTCOME_SUBMITTED = EventAbi(
    "OutcomeSubmitted",
    (
        EventParam("callId", "uint256", indexed=True),
        EventParam("outcome", "bool"),
        EventParam("finalPrice", "uint256"),
        EventParam("oracle", "address"),
    ),
)

EVENT_ABIS: dict[str, EventAbi] = {abi.topic0: abi for abi in (CALL_CREATED, STAKE_ADDED, OUTCOME_SUBMITTED)}


def _as_bytes(value: Any) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    return decode_hex(str(value)) if value else b""


def _normalize_topic(value: Any) -> str:
    return "0x" + _as_bytes(value).hex()


def _render(abi_type: str, value: Any) -> Any:
    if abi_type == "address":
        return to_checksum_address(value)
    if abi_type.startswith(("uint", "int")):
        return str(value)
    if abi_type.startswith("bytes"):
        return "0x" + bytes(value).hex()
    if abi_type == "string":
        return value
    if abi_type == "bool":
        return bool(value)
    return value


def lookup_abi(topic0: Any) -> EventAbi | None:
    return EVENT_ABIS.get(_normalize_topic(topic0).lower())


def decode_log_fields(abi: EventAbi, log: dict[str, Any]) -> dict[str, Any]:
    """Decode indexed topics and the data blob into ``{param name: value}``."""

    topics = log.get("topics") or []
    indexed = abi.indexed_params
    if len(topics) < len(indexed) + 1:
        raise EventDecodeError(
            f"{abi.name} log expects {len(indexed) + 1} topics, got {len(topics)}"
        )

    fields: dict[str, Any] = {}
    try:
        for param, topic in zip(indexed, topics[1:]):
            (value,) = decode([param.abi_type], _as_bytes(topic))
            fields[param.name] = _render(param.abi_type, value)

        data_params = abi.data_params
        values = decode([param.abi_type for param in data_params], _as_bytes(log.get("data")))
    except Exception as exc:  # noqa: BLE001
        raise EventDecodeError(f"Failed to ABI-decode {abi.name} log: {exc}") from exc

    for param, value in zip(data_params, values):
        fields[param.name] = _render(param.abi_type, value)

    ordered = {param.name: fields[param.name] for param in abi.params}
    return ordered


__all__ = [
    "CALL_CREATED",
    "EVENT_ABIS",
    "EventAbi",
    "EventParam",
    "OUTCOME_SUBMITTED",
    "STAKE_ADDED",
    "decode_log_fields",
    "lookup_abi",
]
