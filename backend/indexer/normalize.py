"""Translate decoded event payloads into call aggregate mutations.

Base logs arrive with ABI parameter names (``callId``, ``stakeAmount``...).
Soroban events arrive as ``topic_<n>``/``data_0`` entries where ``data_0`` is
either a struct (map keyed by field name) or a tuple (vector in field order).
Both shapes are flattened into one field view before interpretation.
"""

from __future__ import annotations

from typing import Any, Mapping

from app.domain import CallCreated, CallMutation, ChainEvent, EventType, OutcomeSubmitted, StakeAdded
from app.models import ChainType

from .errors import EventDecodeError

# Field order of tuple-shaped Soroban payloads; call id travels in topic_1.
STELLAR_POSITIONAL_FIELDS: dict[str, tuple[str, ...]] = {
    EventType.CALL_CREATED.value: ("token", "long_tokens", "short_tokens", "end_ts"),
    EventType.STAKE_ADDED.value: ("staker", "position", "amount"),
    EventType.OUTCOME_SUBMITTED.value: ("outcome", "final_price", "oracle"),
}

_CALL_ID_KEYS = ("call_id", "callId", "id")
_CREATOR_KEYS = ("creator",)
_TOKEN_KEYS = ("stake_token", "stakeToken", "token")
_START_KEYS = ("start_ts", "startTs")
_END_KEYS = ("end_ts", "endTs")
_YES_KEYS = ("stakeAmount", "stake_amount", "long_tokens", "longTokens")
_NO_KEYS = ("short_tokens", "shortTokens")
_POSITION_KEYS = ("position", "is_long", "isLong", "side")
_AMOUNT_KEYS = ("amount",)
_STAKER_KEYS = ("staker", "user")
_OUTCOME_KEYS = ("outcome",)
_PRICE_KEYS = ("final_price", "finalPrice")
_ORACLE_KEYS = ("oracle",)


def _first(fields: Mapping[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in fields and fields[key] is not None:
            return fields[key]
    return None


def _as_int(value: Any, *, field: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise EventDecodeError(f"Field {field} must be numeric, got a boolean")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text, 16) if text.lower().startswith("0x") else int(text)
        except ValueError as exc:
            raise EventDecodeError(f"Field {field} is not an integer: {value!r}") from exc
    raise EventDecodeError(f"Field {field} has unsupported type {type(value).__name__}")


def _as_bool(value: Any, *, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "1", "yes", "long"}:
            return True
        if lowered in {"false", "0", "no", "short"}:
            return False
    raise EventDecodeError(f"Field {field} is not a boolean: {value!r}")


def _as_text(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _require(value: Any, field: str, event: ChainEvent) -> Any:
    if value is None:
        raise EventDecodeError(
            f"{event.event_type} event {event.tx_hash}:{event.event_sequence} is missing {field}"
        )
    return value


def flatten_payload(event: ChainEvent) -> dict[str, Any]:
    payload = dict(event.event_data)
    if event.chain is not ChainType.STELLAR:
        return payload

    fields: dict[str, Any] = {}
    data = payload.get("data_0")
    if isinstance(data, Mapping):
        fields.update({str(key): value for key, value in data.items()})
    elif isinstance(data, list):
        names = STELLAR_POSITIONAL_FIELDS.get(event.event_type, ())
        fields.update(dict(zip(names, data)))
    elif data is not None:
        names = STELLAR_POSITIONAL_FIELDS.get(event.event_type, ())
        if names:
            fields[names[0]] = data

    if "topic_1" in payload:
        fields.setdefault("call_id", payload["topic_1"])
    return fields


def mutation_for_event(event: ChainEvent) -> CallMutation | None:
    """Return the call mutation implied by ``event`` or None for other types."""

    if event.event_type not in STELLAR_POSITIONAL_FIELDS:
        return None

    fields = flatten_payload(event)
    raw_call_id = _require(_first(fields, _CALL_ID_KEYS), "call id", event)
    call_id = str(_as_int(raw_call_id, field="call_id"))

    if event.event_type == EventType.CALL_CREATED.value:
        extra = {
            key: fields[key]
            for key in ("tokenAddress", "pairId", "ipfsCID")
            if fields.get(key) is not None
        }
        return CallCreated(
            call_id=call_id,
            creator=_as_text(_first(fields, _CREATOR_KEYS)),
            stake_token=_as_text(_first(fields, _TOKEN_KEYS)),
            start_ts=_as_int(_first(fields, _START_KEYS), field="start_ts"),
            end_ts=_as_int(_first(fields, _END_KEYS), field="end_ts"),
            initial_yes=_as_int(_first(fields, _YES_KEYS), field="initial_yes") or 0,
            initial_no=_as_int(_first(fields, _NO_KEYS), field="initial_no") or 0,
            extra=extra or None,
        )

    if event.event_type == EventType.STAKE_ADDED.value:
        amount = _as_int(_require(_first(fields, _AMOUNT_KEYS), "amount", event), field="amount")
        if amount < 0:
            raise EventDecodeError(f"Stake amount must be non-negative, got {amount}")
        return StakeAdded(
            call_id=call_id,
            position=_as_bool(_require(_first(fields, _POSITION_KEYS), "position", event), field="position"),
            amount=amount,
            staker=_as_text(_first(fields, _STAKER_KEYS)),
        )

    return OutcomeSubmitted(
        call_id=call_id,
        outcome=_as_bool(_require(_first(fields, _OUTCOME_KEYS), "outcome", event), field="outcome"),
        final_price=_as_int(_first(fields, _PRICE_KEYS), field="final_price"),
        oracle=_as_text(_first(fields, _ORACLE_KEYS)),
    )


__all__ = ["STELLAR_POSITIONAL_FIELDS", "flatten_payload", "mutation_for_event"]
