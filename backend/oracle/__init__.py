"""Outcome signing, payout arithmetic and settlement scheduling."""

from .audit import AuditEntry, AuditTrail
from .errors import SettlementError
from .message import OutcomeData, build_outcome_message, can_settle_call, parse_outcome_message
from .monitor import OracleMonitor
from .payout import calculate_payout
from .service import OracleService, PendingSettlement
from .signer import (
    OracleKeypair,
    OracleSigner,
    SignedOutcome,
    format_oracle_address,
    generate_oracle_keypair,
    is_valid_public_key_format,
    is_valid_signature_format,
    verify_outcome_signature,
    verify_signed_outcome,
)

__all__ = [
    "AuditEntry",
    "AuditTrail",
    "OracleKeypair",
    "OracleMonitor",
    "OracleService",
    "OracleSigner",
    "OutcomeData",
    "PendingSettlement",
    "SettlementError",
    "SignedOutcome",
    "build_outcome_message",
    "calculate_payout",
    "can_settle_call",
    "format_oracle_address",
    "generate_oracle_keypair",
    "is_valid_public_key_format",
    "is_valid_signature_format",
    "parse_outcome_message",
    "verify_outcome_signature",
    "verify_signed_outcome",
]
