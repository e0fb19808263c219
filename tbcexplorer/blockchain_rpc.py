"""JSON-RPC client for the blockchain node."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any

import requests

JSONRPC_VERSION = "1.0"
REQUEST_ID = "blockchain_client"

log = logging.getLogger(__name__)


@dataclass
class NodeConfig:
    """Connection settings for the node; ``timeout`` is in seconds, 0 means none."""

    url: str
    user: str = ""
    password: str = ""
    timeout: int = 0


class RpcError(Exception):
    """Raised when a node RPC call fails or the node reports an error."""

    def __init__(self, message: str, code: int | None = None) -> None:
        self.message = message
        self.code = code
        if code is None:
            super().__init__(message)
        else:
            super().__init__(f"RPC call error: {message} (code: {code})")


def check_node_config(config: NodeConfig | None) -> None:
    """Validate node settings, raising ``ValueError`` when they are unusable."""
    if config is None:
        raise ValueError("blockchain RPC configuration is missing")
    if not config.url:
        raise ValueError("blockchain RPC URL is not configured")
    log.info("blockchain RPC client ready, server: %s", config.url)


class NodeRpcClient:
    """Sends JSON-RPC 1.0 requests to the node over HTTP POST."""

    def __init__(self, config: NodeConfig, session: Any = None) -> None:
        self.config = config
        self._session = session if session is not None else requests.Session()

    def call(self, method: str, params: Any, full_response: bool = False) -> Any:
        """Invoke ``method``; return the result, or the whole reply if ``full_response``."""
        payload = {
            "jsonrpc": JSONRPC_VERSION,
            "id": REQUEST_ID,
            "method": method,
            "params": params,
        }
        try:
            body = json.dumps(payload)
        except (TypeError, ValueError) as exc:
            raise RpcError(f"failed to serialise RPC request: {exc}") from exc

        auth = None
        if self.config.user and self.config.password:
            auth = (self.config.user, self.config.password)

        log.debug("sending blockchain RPC request: method=%s, params=%r", method, params)
        try:
            response = self._session.post(
                self.config.url,
                data=body,
                headers={"Content-Type": "application/json"},
                auth=auth,
                timeout=self.config.timeout or None,
            )
            raw = response.content
        except requests.RequestException as exc:
            raise RpcError(f"failed to send RPC request: {exc}") from exc

        try:
            reply = json.loads(raw)
        except ValueError as exc:
            log.error("failed to parse RPC response: %r", raw)
            raise RpcError(f"failed to parse RPC response: {exc}") from exc
        if not isinstance(reply, dict):
            log.error("failed to parse RPC response: %r", raw)
            raise RpcError("failed to parse RPC response: expected an object")

        error = reply.get("error")
        if error is not None:
            if not isinstance(error, dict):
                raise RpcError(f"failed to parse RPC response: malformed error {error!r}")
            message = str(error.get("message", ""))
            code = error.get("code", 0)
            log.warning("RPC call error: %s (code: %s)", message, code)
            raise RpcError(message, code)

        if full_response:
            return {
                "jsonrpc": reply.get("jsonrpc", ""),
                "id": reply.get("id", ""),
                "result": reply.get("result"),
                "error": None,
            }
        return reply.get("result")