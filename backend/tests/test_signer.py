from __future__ import annotations

import pytest

from oracle.message import OutcomeData, build_outcome_message
from oracle.signer import (
    OracleSigner,
    SignedOutcome,
    format_oracle_address,
    generate_oracle_keypair,
    is_valid_public_key_format,
    is_valid_signature_format,
    verify_outcome_signature,
    verify_signed_outcome,
)

SEED = bytes(range(32))


@pytest.fixture
def signer() -> OracleSigner:
    return OracleSigner(generate_oracle_keypair(SEED))


def test_keypair_from_seed_is_deterministic():
    first = generate_oracle_keypair(SEED)
    second = generate_oracle_keypair(SEED)

    assert first.public_key == second.public_key
    assert len(first.public_key) == 32
    assert len(first.secret_key) == 64
    assert first.secret_key[:32] == SEED
    assert first.secret_key[32:] == first.public_key


def test_random_keypairs_differ():
    assert generate_oracle_keypair().public_key != generate_oracle_keypair().public_key


def test_seed_must_be_32_bytes():
    with pytest.raises(ValueError):
        generate_oracle_keypair(b"short")


def test_signer_rejects_mismatched_keypair():
    keypair = generate_oracle_keypair(SEED)
    other = generate_oracle_keypair(bytes(32))
    with pytest.raises(ValueError):
        OracleSigner(type(keypair)(public_key=other.public_key, secret_key=keypair.secret_key))


def test_two_signatures_over_same_message_both_verify(signer):
    message = build_outcome_message(1, True, 105, 1000001)

    first = signer.sign_outcome(1, True, 105, 1000001)
    second = signer.sign_outcome(1, True, 105, 1000001)

    assert verify_outcome_signature(message, first.signature, signer.public_key)
    assert verify_outcome_signature(message, second.signature, signer.public_key)
    assert verify_signed_outcome(first)


def test_signed_outcome_submission_tuple(signer):
    signed = signer.sign_outcome(1, True, 105, 1000001)
    submission = signed.to_submission()

    assert set(submission) == {"call_id", "outcome", "final_price", "timestamp", "oracle_pubkey", "signature"}
    assert submission["oracle_pubkey"] == signer.public_key
    assert len(submission["signature"]) == 64


def test_tampered_fields_fail_verification(signer):
    signed = signer.sign_outcome(1, True, 105, 1000001)
    tampered = SignedOutcome(
        call_id=signed.call_id,
        outcome=False,
        final_price=signed.final_price,
        timestamp=signed.timestamp,
        oracle_pubkey=signed.oracle_pubkey,
        signature=signed.signature,
    )

    assert verify_signed_outcome(tampered) is False


def test_wrong_key_fails_verification(signer):
    message = build_outcome_message(1, True, 105, 1000001)
    signature = signer.sign_message(message)
    other = generate_oracle_keypair(bytes(32))

    assert verify_outcome_signature(message, signature, other.public_key) is False


@pytest.mark.parametrize(
    "signature, public_key",
    [
        (b"\x00" * 63, b"\x00" * 32),
        (b"\x00" * 64, b"\x00" * 31),
        (b"", b""),
    ],
)
def test_malformed_lengths_return_false(signature, public_key):
    message = build_outcome_message(1, True, 105, 1000001)
    assert verify_outcome_signature(message, signature, public_key) is False


def test_out_of_range_signed_outcome_is_not_valid(signer):
    signed = signer.sign_outcome(1, True, 105, 1000001)
    broken = SignedOutcome(
        call_id=-1,
        outcome=True,
        final_price=105,
        timestamp=1000001,
        oracle_pubkey=signed.oracle_pubkey,
        signature=signed.signature,
    )
    assert verify_signed_outcome(broken) is False


def test_sign_outcomes_batch(signer):
    batch = signer.sign_outcomes(
        [OutcomeData(2, True, 110, 1000001), OutcomeData(3, False, 95, 1000001)]
    )

    assert [item.call_id for item in batch] == [2, 3]
    assert all(verify_signed_outcome(item) for item in batch)


def test_format_helpers():
    assert is_valid_signature_format(b"\x01" * 64)
    assert not is_valid_signature_format(b"\x01" * 65)
    assert is_valid_public_key_format(b"\x01" * 32)
    assert not is_valid_public_key_format("a" * 32)
    assert format_oracle_address("abcdef123456") == "abcd...3456"
    assert format_oracle_address("short") == "short"
