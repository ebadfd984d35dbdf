from __future__ import annotations

from decimal import Decimal

import pytest

from app.schemas import CallBase, IndexerStatus


def test_call_base_coerces_big_integer_fields():
    """Verify that pool totals and prices are rendered as exact decimal strings."""
    call = CallBase(
        chain="base",
        call_id="1",
        total_stake_yes=2**255,
        total_stake_no=Decimal("540"),
        status="settled",
        outcome="true",
        final_price=105,
    )
    assert call.total_stake_yes == str(2**255)
    assert call.total_stake_no == "540"
    assert call.final_price == "105"


def test_call_base_keeps_missing_price():
    call = CallBase(
        chain="stellar",
        call_id="9",
        total_stake_yes="0",
        total_stake_no="0",
        status="active",
        outcome="unknown",
    )
    assert call.final_price is None


def test_call_base_rejects_non_numeric_totals():
    with pytest.raises(ValueError):
        CallBase(
            chain="base",
            call_id="1",
            total_stake_yes="lots",
            total_stake_no="0",
            status="active",
            outcome="unknown",
        )


def test_indexer_status_from_status_dict():
    status = IndexerStatus.model_validate(
        {
            "chain": "base",
            "state": "idle",
            "is_running": False,
            "initialized": False,
            "consecutive_failures": 0,
            "events_stored": 0,
            "events_skipped": 0,
        }
    )
    assert status.cursor is None
    assert status.last_polled_at is None
