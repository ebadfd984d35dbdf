"""Canonical outcome message signed by the oracle.

Layout (33 bytes, big-endian)::

    0   8  call id      u64
    8   1  outcome      u8 (1 = true)
    9  16  final price  u128, upper 64 bits then lower 64 bits
   25   8  timestamp    u64

The on-chain verifier rebuilds the same bytes, so the layout must not drift.
"""

from __future__ import annotations

import struct
from dataclasses import dataclass

MESSAGE_LENGTH = 33
U64_MAX = (1 << 64) - 1
U128_MAX = (1 << 128) - 1

_LAYOUT = struct.Struct(">QBQQQ")


@dataclass(frozen=True, slots=True)
class OutcomeData:
    call_id: int
    outcome: bool
    final_price: int
    timestamp: int


def _check_range(name: str, value: int, upper: int) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{name} must be an integer, got {type(value).__name__}")
    if value < 0 or value > upper:
        raise ValueError(f"{name} {value} is outside [0, {upper}]")
    return value


def build_outcome_message(call_id: int, outcome: bool, final_price: int, timestamp: int) -> bytes:
    _check_range("call_id", call_id, U64_MAX)
    _check_range("final_price", final_price, U128_MAX)
    _check_range("timestamp", timestamp, U64_MAX)
    return _LAYOUT.pack(
        call_id,
        1 if outcome else 0,
        final_price >> 64,
        final_price & U64_MAX,
        timestamp,
    )


def parse_outcome_message(message: bytes) -> OutcomeData:
    if len(message) != MESSAGE_LENGTH:
        raise ValueError(f"Outcome message must be {MESSAGE_LENGTH} bytes, got {len(message)}")
    call_id, outcome, price_hi, price_lo, timestamp = _LAYOUT.unpack(message)
    if outcome not in (0, 1):
        raise ValueError(f"Outcome byte must be 0 or 1, got {outcome}")
    return OutcomeData(
        call_id=call_id,
        outcome=outcome == 1,
        final_price=(price_hi << 64) | price_lo,
        timestamp=timestamp,
    )


def can_settle_call(now: int, end_ts: int) -> bool:
    return now >= end_ts


__all__ = [
    "MESSAGE_LENGTH",
    "OutcomeData",
    "U128_MAX",
    "U64_MAX",
    "build_outcome_message",
    "can_settle_call",
    "parse_outcome_message",
]
