from __future__ import annotations


class SettlementError(RuntimeError):
    """Raised when signing or relaying a settlement fails."""


__all__ = ["SettlementError"]
