"""Append-only record of every settlement attempt."""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from loguru import logger

STATUS_SUBMITTED = "submitted"
STATUS_FAILED = "failed"


@dataclass(frozen=True, slots=True)
class AuditEntry:
    timestamp: int
    call_id: int
    outcome: bool
    final_price: int
    oracle_address: str
    signature: str | None
    status: str = STATUS_SUBMITTED
    error: str | None = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        # u64/u128 fields are written as decimal strings.
        payload["timestamp"] = str(self.timestamp)
        payload["call_id"] = str(self.call_id)
        payload["final_price"] = str(self.final_price)
        payload["recorded_at"] = self.recorded_at.isoformat()
        return payload


class AuditTrail:
    def __init__(self, path: str | Path | None = None) -> None:
        self._entries: list[AuditEntry] = []
        self._lock = threading.Lock()
        self.path = Path(path) if path else None
        if self.path is not None:
            self.path.parent.mkdir(parents=True, exist_ok=True)

    def add_entry(self, entry: AuditEntry) -> None:
        line = json.dumps(entry.to_json_dict(), sort_keys=True)
        with self._lock:
            self._entries.append(entry)
            if self.path is not None:
                with self.path.open("a", encoding="utf-8") as handle:
                    handle.write(line + "\n")
        logger.debug("Audit {} for call {}", entry.status, entry.call_id)

    def entries(self) -> list[AuditEntry]:
        with self._lock:
            return list(self._entries)

    def export_json(self) -> str:
        return json.dumps([entry.to_json_dict() for entry in self.entries()])

    def clear(self) -> None:
        """Forget in-memory entries; the file on disk is never truncated."""

        with self._lock:
            self._entries.clear()


__all__ = ["AuditEntry", "AuditTrail", "STATUS_FAILED", "STATUS_SUBMITTED"]
