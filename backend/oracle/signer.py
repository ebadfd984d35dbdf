from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from nacl.exceptions import BadSignatureError, CryptoError
from nacl.signing import SigningKey, VerifyKey

from .message import OutcomeData, build_outcome_message

SEED_LENGTH = 32
PUBLIC_KEY_LENGTH = 32
SECRET_KEY_LENGTH = 64
SIGNATURE_LENGTH = 64


@dataclass(frozen=True, slots=True)
class OracleKeypair:
    """Ed25519 keypair; ``secret_key`` is the libsodium layout seed || public key."""

    public_key: bytes
    secret_key: bytes

    @property
    def seed(self) -> bytes:
        return self.secret_key[:SEED_LENGTH]

    @property
    def public_key_hex(self) -> str:
        return self.public_key.hex()

    def __repr__(self) -> str:
        return f"OracleKeypair(public_key={self.public_key.hex()!r})"


@dataclass(frozen=True, slots=True)
class SignedOutcome:
    call_id: int
    outcome: bool
    final_price: int
    timestamp: int
    oracle_pubkey: bytes
    signature: bytes

    @property
    def message(self) -> bytes:
        return build_outcome_message(self.call_id, self.outcome, self.final_price, self.timestamp)

    def to_submission(self) -> dict[str, Any]:
        return {
            "call_id": self.call_id,
            "outcome": self.outcome,
            "final_price": self.final_price,
            "timestamp": self.timestamp,
            "oracle_pubkey": self.oracle_pubkey,
            "signature": self.signature,
        }

    def to_json_dict(self) -> dict[str, Any]:
        return {
            "call_id": str(self.call_id),
            "outcome": self.outcome,
            "final_price": str(self.final_price),
            "timestamp": str(self.timestamp),
            "oracle_pubkey": self.oracle_pubkey.hex(),
            "signature": self.signature.hex(),
        }


def generate_oracle_keypair(seed: bytes | None = None) -> OracleKeypair:
    """Derive the oracle keypair from a 32-byte seed, or a random one."""

    if seed is None:
        signing_key = SigningKey.generate()
    else:
        if len(seed) != SEED_LENGTH:
            raise ValueError(f"Oracle seed must be {SEED_LENGTH} bytes, got {len(seed)}")
        signing_key = SigningKey(bytes(seed))
    public_key = bytes(signing_key.verify_key)
    return OracleKeypair(public_key=public_key, secret_key=bytes(signing_key) + public_key)


class OracleSigner:
    def __init__(self, keypair: OracleKeypair) -> None:
        if len(keypair.secret_key) != SECRET_KEY_LENGTH:
            raise ValueError(f"Oracle secret key must be {SECRET_KEY_LENGTH} bytes")
        self._signing_key = SigningKey(keypair.seed)
        derived = bytes(self._signing_key.verify_key)
        if derived != keypair.public_key:
            raise ValueError("Oracle public key does not match its secret key")
        self._public_key = derived

    @property
    def public_key(self) -> bytes:
        return self._public_key

    def sign_message(self, message: bytes) -> bytes:
        return self._signing_key.sign(message).signature

    def sign_outcome(
        self, call_id: int, outcome: bool, final_price: int, timestamp: int
    ) -> SignedOutcome:
        message = build_outcome_message(call_id, outcome, final_price, timestamp)
        return SignedOutcome(
            call_id=call_id,
            outcome=outcome,
            final_price=final_price,
            timestamp=timestamp,
            oracle_pubkey=self._public_key,
            signature=self.sign_message(message),
        )

    def sign_outcomes(self, outcomes: Iterable[OutcomeData]) -> list[SignedOutcome]:
        return [
            self.sign_outcome(item.call_id, item.outcome, item.final_price, item.timestamp)
            for item in outcomes
        ]


def is_valid_signature_format(signature: bytes) -> bool:
    return isinstance(signature, (bytes, bytearray)) and len(signature) == SIGNATURE_LENGTH


def is_valid_public_key_format(public_key: bytes) -> bool:
    return isinstance(public_key, (bytes, bytearray)) and len(public_key) == PUBLIC_KEY_LENGTH


def verify_outcome_signature(message: bytes, signature: bytes, public_key: bytes) -> bool:
    if not is_valid_signature_format(signature) or not is_valid_public_key_format(public_key):
        return False
    try:
        VerifyKey(bytes(public_key)).verify(bytes(message), bytes(signature))
    except (BadSignatureError, CryptoError, ValueError, TypeError):
        return False
    return True


def verify_signed_outcome(signed: SignedOutcome) -> bool:
    try:
        message = signed.message
    except ValueError:
        return False
    return verify_outcome_signature(message, signed.signature, signed.oracle_pubkey)


def format_oracle_address(address: str) -> str:
    if len(address) < 8:
        return address
    return f"{address[:4]}...{address[-4:]}"


__all__ = [
    "OracleKeypair",
    "OracleSigner",
    "SignedOutcome",
    "format_oracle_address",
    "generate_oracle_keypair",
    "is_valid_public_key_format",
    "is_valid_signature_format",
    "verify_outcome_signature",
    "verify_signed_outcome",
]
