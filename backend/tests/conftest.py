from __future__ import annotations

import sys
from pathlib import Path
from typing import Any

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import pytest

from app.core.config import Settings
from app.db import build_db_components, init_db
from indexer.store import EventStore


@pytest.fixture
def test_settings(tmp_path, monkeypatch) -> Settings:
    settings = Settings(
        database_url=f"sqlite:///{tmp_path/'callindex.db'}",
        stellar_rpc_url="https://soroban.test/rpc",
        stellar_contract_ids="CCONTRACTONE,CCONTRACTTWO",
        base_rpc_url="https://base.test/rpc",
        base_contract_address="0x00000000000000000000000000000000000000aa",
        indexer_retry_delay_ms=0,
        oracle_seed_hex="01" * 32,
        oracle_audit_log_path=str(tmp_path / "audit.jsonl"),
    )
    monkeypatch.setattr("app.core.config.get_settings", lambda: settings)
    monkeypatch.setattr("app.core.config.settings", settings)
    return settings


@pytest.fixture
def session_factory():
    engine, factory = build_db_components("sqlite:///:memory:")
    init_db(bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def event_store(session_factory) -> EventStore:
    return EventStore(session_factory)


class FakeRpc:
    """Scripted JSON-RPC double: ``responses[method]`` is a value, exception or callable."""

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[tuple[str, Any]] = []
        self.closed = False

    def call(self, method: str, params: Any = None) -> Any:
        self.calls.append((method, params))
        response = self.responses[method]
        if isinstance(response, BaseException):
            raise response
        if callable(response):
            return response(params)
        return response

    def methods(self) -> list[str]:
        return [method for method, _ in self.calls]

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_rpc_factory():
    return FakeRpc
