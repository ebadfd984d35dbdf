from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from app.core.config import Settings, get_settings

from .audit import STATUS_FAILED, STATUS_SUBMITTED, AuditEntry, AuditTrail
from .errors import SettlementError
from .message import can_settle_call
from .signer import OracleSigner, SignedOutcome, generate_oracle_keypair

PriceSource = Callable[[], int]
OutcomeLogic = Callable[[int], bool]
Relay = Callable[[dict[str, Any]], Any]


@dataclass(frozen=True, slots=True)
class PendingSettlement:
    call_id: int
    end_ts: int
    price_source: PriceSource
    outcome_logic: OutcomeLogic


class OracleService:
    """Signs outcomes for ended calls and hands them to the transaction relay."""

    def __init__(
        self,
        signer: OracleSigner,
        *,
        contract_address: str | None = None,
        relay: Relay | None = None,
        audit: AuditTrail | None = None,
    ) -> None:
        self.signer = signer
        self.contract_address = contract_address
        self.relay = relay
        self.audit = audit or AuditTrail()

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        contract_address: str | None = None,
        relay: Relay | None = None,
    ) -> "OracleService":
        cfg = settings or get_settings()
        seed = cfg.oracle_seed
        if seed is None:
            raise SettlementError("ORACLE_SEED_HEX is not configured")
        signer = OracleSigner(generate_oracle_keypair(seed))
        audit = AuditTrail(cfg.oracle_audit_log_path or None)
        return cls(signer, contract_address=contract_address, relay=relay, audit=audit)

    @property
    def public_key_hex(self) -> str:
        return self.signer.public_key.hex()

    def settle_call(
        self,
        call_id: int,
        outcome: bool,
        final_price: int,
        now: int,
        end_ts: int,
    ) -> SignedOutcome | None:
        """Sign and relay the outcome; returns None while the call is still open."""

        if not can_settle_call(now, end_ts):
            logger.info(
                "Call {} cannot be settled yet. End time: {}, Current: {}", call_id, end_ts, now
            )
            return None

        signed: SignedOutcome | None = None
        try:
            signed = self.signer.sign_outcome(call_id, outcome, final_price, now)
            if self.relay is not None:
                self.relay(signed.to_submission())
        except Exception as exc:
            self._record(call_id, outcome, final_price, now, signed, STATUS_FAILED, str(exc))
            logger.error("Settlement of call {} failed: {}", call_id, exc)
            raise SettlementError(f"Failed to settle call {call_id}: {exc}") from exc

        self._record(call_id, outcome, final_price, now, signed, STATUS_SUBMITTED, None)
        logger.info(
            "Settled call {} outcome={} final_price={} at {}", call_id, outcome, final_price, now
        )
        return signed

    def settle_calls_from_price_feed(
        self, calls: Iterable[PendingSettlement], now: int
    ) -> list[SignedOutcome]:
        submissions: list[SignedOutcome] = []
        for call in calls:
            if not can_settle_call(now, call.end_ts):
                logger.info("Skipping call {} - not yet ready for settlement", call.call_id)
                continue
            try:
                final_price = call.price_source()
                outcome = bool(call.outcome_logic(final_price))
                signed = self.settle_call(call.call_id, outcome, final_price, now, call.end_ts)
                if signed is not None:
                    submissions.append(signed)
            except Exception:  # noqa: BLE001
                logger.exception("Error settling call {}", call.call_id)
        return submissions

    def audit_entries(self) -> list[AuditEntry]:
        return self.audit.entries()

    def export_audit_trail(self) -> str:
        return self.audit.export_json()

    def _record(
        self,
        call_id: int,
        outcome: bool,
        final_price: int,
        now: int,
        signed: SignedOutcome | None,
        status: str,
        error: str | None,
    ) -> None:
        self.audit.add_entry(
            AuditEntry(
                timestamp=now,
                call_id=call_id,
                outcome=outcome,
                final_price=final_price,
                oracle_address=self.public_key_hex,
                signature=signed.signature.hex() if signed is not None else None,
                status=status,
                error=error,
            )
        )


__all__ = ["OracleService", "OutcomeLogic", "PendingSettlement", "PriceSource", "Relay"]
