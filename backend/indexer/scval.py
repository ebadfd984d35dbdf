"""Decoding of Soroban ``SCVal`` values into JSON-friendly Python values.

Decoding happens in two steps: ``decode_scval`` produces a tagged variant
(``Scalar``, ``Vector``, ``Map`` or ``Unknown``) and ``to_native`` collapses it
into plain Python. Integers of every width are rendered as decimal strings so
u128/i128 amounts survive JSON round trips without precision loss.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from stellar_sdk import scval
from stellar_sdk.address import Address, AddressType
from stellar_sdk.xdr import SCVal, SCValType

from .errors import EventDecodeError


@dataclass(frozen=True, slots=True)
class Scalar:
    value: str | bool | None


@dataclass(frozen=True, slots=True)
class Vector:
    items: tuple["DecodedValue", ...]


@dataclass(frozen=True, slots=True)
class Map:
    entries: tuple[tuple["DecodedValue", "DecodedValue"], ...]


@dataclass(frozen=True, slots=True)
class Unknown:
    type_name: str


DecodedValue = Scalar | Vector | Map | Unknown


_INTEGER_READERS: dict[SCValType, Callable[[SCVal], int]] = {
    SCValType.SCV_U32: scval.from_uint32,
    SCValType.SCV_I32: scval.from_int32,
    SCValType.SCV_U64: scval.from_uint64,
    SCValType.SCV_I64: scval.from_int64,
    SCValType.SCV_TIMEPOINT: scval.from_timepoint,
    SCValType.SCV_DURATION: scval.from_duration,
    SCValType.SCV_U128: scval.from_uint128,
    SCValType.SCV_I128: scval.from_int128,
    SCValType.SCV_U256: scval.from_uint256,
    SCValType.SCV_I256: scval.from_int256,
}


def format_address(address: Address) -> str:
    """Accounts as ``G...`` strkeys, contracts as the hex contract id."""

    if address.type == AddressType.CONTRACT:
        return address.key.hex()
    return address.address


def decode_scval(value: SCVal) -> DecodedValue:
    kind = value.type

    reader = _INTEGER_READERS.get(kind)
    if reader is not None:
        return Scalar(str(reader(value)))
    if kind == SCValType.SCV_BOOL:
        return Scalar(scval.from_bool(value))
    if kind == SCValType.SCV_VOID:
        return Scalar(None)
    if kind == SCValType.SCV_SYMBOL:
        return Scalar(scval.from_symbol(value))
    if kind == SCValType.SCV_STRING:
        raw = scval.from_string(value)
        return Scalar(raw.decode("utf-8", errors="replace") if isinstance(raw, bytes) else str(raw))
    if kind == SCValType.SCV_BYTES:
        return Scalar(scval.from_bytes(value).hex())
    if kind == SCValType.SCV_ADDRESS:
        return Scalar(format_address(scval.from_address(value)))
    if kind == SCValType.SCV_VEC:
        items = value.vec.sc_vec if value.vec is not None else []
        return Vector(tuple(decode_scval(item) for item in items))
    if kind == SCValType.SCV_MAP:
        entries = value.map.sc_map if value.map is not None else []
        return Map(tuple((decode_scval(entry.key), decode_scval(entry.val)) for entry in entries))
    return Unknown(kind.name)


def to_native(decoded: DecodedValue) -> Any:
    if isinstance(decoded, Scalar):
        return decoded.value
    if isinstance(decoded, Vector):
        return [to_native(item) for item in decoded.items]
    if isinstance(decoded, Map):
        result: dict[str, Any] = {}
        for key, val in decoded.entries:
            native_key = to_native(key)
            result[native_key if isinstance(native_key, str) else str(native_key)] = to_native(val)
        return result
    if isinstance(decoded, Unknown):
        return None
    raise TypeError(f"Unexpected decoded value {decoded!r}")


def parse_xdr(encoded: str) -> SCVal:
    try:
        return SCVal.from_xdr(encoded)
    except Exception as exc:  # noqa: BLE001
        raise EventDecodeError(f"Invalid SCVal XDR: {encoded[:32]!r}") from exc


def decode_xdr(encoded: str) -> Any:
    """Base64 XDR string straight to native Python."""

    return to_native(decode_scval(parse_xdr(encoded)))


__all__ = [
    "DecodedValue",
    "Map",
    "Scalar",
    "Unknown",
    "Vector",
    "decode_scval",
    "decode_xdr",
    "format_address",
    "parse_xdr",
    "to_native",
]
