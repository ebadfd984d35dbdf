from __future__ import annotations

from typing import Any


class RpcError(Exception):
    """Raised when a JSON-RPC endpoint answers with an error object or garbage."""

    def __init__(self, method: str, message: str, *, code: int | None = None, data: Any = None) -> None:
        super().__init__(f"{method}: {message}" + (f" (code={code})" if code is not None else ""))
        self.method = method
        self.code = code
        self.data = data


class EventDecodeError(ValueError):
    """Raised when a single chain event cannot be decoded; the batch carries on."""


__all__ = ["EventDecodeError", "RpcError"]
