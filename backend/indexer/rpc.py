from __future__ import annotations

import itertools
from typing import Any

import httpx
from loguru import logger

from app.core.config import settings

from .errors import RpcError


class JsonRpcClient:
    """Thin JSON-RPC 2.0 wrapper shared by the Soroban and EVM indexers."""

    def __init__(
        self,
        rpc_url: str,
        *,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.timeout = timeout or settings.rpc_timeout_seconds
        self._ids = itertools.count(1)
        client_kwargs: dict[str, Any] = {"timeout": self.timeout}
        if transport is not None:
            client_kwargs["transport"] = transport
        self.client = httpx.Client(**client_kwargs)

    def call(self, method: str, params: Any = None) -> Any:
        payload: dict[str, Any] = {"jsonrpc": "2.0", "id": next(self._ids), "method": method}
        if params is not None:
            payload["params"] = params
        logger.debug("RPC {} {} params={}", self.rpc_url, method, params)
        response = self.client.post(self.rpc_url, json=payload)
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as exc:
            raise RpcError(method, "response is not valid JSON") from exc

        if not isinstance(body, dict):
            raise RpcError(method, f"unexpected response type {type(body).__name__}")
        error = body.get("error")
        if error:
            if isinstance(error, dict):
                raise RpcError(
                    method,
                    str(error.get("message") or "unknown error"),
                    code=error.get("code"),
                    data=error.get("data"),
                )
            raise RpcError(method, str(error))
        if "result" not in body:
            raise RpcError(method, "response has neither result nor error")
        return body["result"]

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "JsonRpcClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["JsonRpcClient"]
